"""Translate clang-format replacement reports into character-offset edits."""

from .apply import apply_edits, apply_result
from .assembler import EditAssembler, FormatRun, FormatState
from .config import FormatterSettings, LanguageSettings, load_settings, resolve_request
from .errors import (
    ApplyFailure,
    ConfigError,
    FormatCancelled,
    FormatFailure,
    FormatterError,
    MalformedOutput,
    ToolNotFound,
)
from .invoker import CancellationToken, ProcessInvoker, build_command
from .models import CursorHint, Edit, FormatRequest, FormatResult, ProcessOutcome, Replacement
from .offsets import OffsetTranslator, char_range_to_bytes
from .resolver import BinaryResolver
from .stream import CursorEvent, EndOfStream, ReplacementEvent, ReplacementStreamParser

__all__ = [
    "ApplyFailure",
    "BinaryResolver",
    "CancellationToken",
    "ConfigError",
    "CursorEvent",
    "CursorHint",
    "Edit",
    "EditAssembler",
    "EndOfStream",
    "FormatCancelled",
    "FormatFailure",
    "FormatRequest",
    "FormatResult",
    "FormatRun",
    "FormatState",
    "FormatterError",
    "FormatterSettings",
    "LanguageSettings",
    "MalformedOutput",
    "OffsetTranslator",
    "ProcessInvoker",
    "ProcessOutcome",
    "Replacement",
    "ReplacementEvent",
    "ReplacementStreamParser",
    "ToolNotFound",
    "apply_edits",
    "apply_result",
    "build_command",
    "char_range_to_bytes",
    "load_settings",
    "resolve_request",
]
