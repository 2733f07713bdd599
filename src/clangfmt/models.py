"""Typed payloads exchanged between the stages of the formatting pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Tuple

ResultStatus = Literal["completed", "tool-not-found"]

DEFAULT_EXECUTABLE = "clang-format"


@dataclass(frozen=True, slots=True)
class FormatRequest:
    """Fully resolved description of one formatting call.

    ``start`` and ``end`` are character offsets into ``text``. Leaving both
    unset formats the whole document; a zero-length range asks the tool to
    format around that point and report where the caret should go.
    """

    text: str
    start: int | None = None
    end: int | None = None
    style: str = "file"
    fallback_style: str = "none"
    assume_filename: str = ""
    extra_args: Tuple[str, ...] = ()
    executable: str = DEFAULT_EXECUTABLE
    working_directory: Path | None = None

    def __post_init__(self) -> None:
        if (self.start is None) != (self.end is None):
            raise ValueError("start and end must be provided together")
        if self.start is not None and self.end is not None:
            if not 0 <= self.start <= self.end <= len(self.text):
                raise ValueError(
                    f"invalid range [{self.start}, {self.end}) for text of length {len(self.text)}"
                )
        if not isinstance(self.extra_args, tuple):
            object.__setattr__(self, "extra_args", tuple(self.extra_args))

    @property
    def has_range(self) -> bool:
        return self.start is not None

    @property
    def is_cursor_query(self) -> bool:
        return self.start is not None and self.start == self.end


@dataclass(frozen=True, slots=True)
class Replacement:
    """One span substitution reported by the tool, in UTF-8 bytes."""

    offset: int
    length: int
    text: str


@dataclass(frozen=True, slots=True)
class CursorHint:
    """Caret position reported by the tool for point format requests."""

    offset: int


@dataclass(frozen=True, slots=True)
class Edit:
    """Character-offset substitution applicable to the source text."""

    start: int
    end: int
    text: str

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"edit start {self.start} is after end {self.end}")

    def to_dict(self) -> dict[str, object]:
        return {"start": self.start, "end": self.end, "text": self.text}


@dataclass(frozen=True, slots=True)
class FormatResult:
    """Ordered edits plus the optional new caret position."""

    edits: Tuple[Edit, ...] = ()
    cursor: int | None = None
    incomplete_format: bool = False
    status: ResultStatus = "completed"
    notice: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.edits and self.cursor is None

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "edits": [edit.to_dict() for edit in self.edits],
            "cursor": self.cursor,
            "incomplete_format": self.incomplete_format,
            "notice": self.notice,
        }


@dataclass(slots=True)
class ProcessOutcome:
    """Exit status and accumulated streams of one tool invocation."""

    command: Tuple[str, ...]
    cwd: Path | None
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.stderr.strip()


__all__ = [
    "CursorHint",
    "DEFAULT_EXECUTABLE",
    "Edit",
    "FormatRequest",
    "FormatResult",
    "ProcessOutcome",
    "Replacement",
    "ResultStatus",
]
