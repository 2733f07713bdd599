"""Error taxonomy shared by the formatting pipeline."""

from __future__ import annotations

from typing import Any, Mapping


class FormatterError(RuntimeError):
    """Base class for every failure surfaced by the formatting pipeline."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class ToolNotFound(FormatterError):
    """Raised when the formatter executable cannot be located or started."""

    def __init__(self, executable: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(
            f"The '{executable}' command is not available. "
            "Check the configured executable and ensure clang-format is installed.",
            details=details,
        )
        self.executable = executable


class FormatFailure(FormatterError):
    """Raised when the tool exits non-zero or writes diagnostics."""

    def __init__(
        self,
        message: str,
        *,
        diagnostics: str = "",
        exit_code: int | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.diagnostics = diagnostics
        self.exit_code = exit_code


class MalformedOutput(FormatterError):
    """Raised when the replacement report violates the expected structure."""


class FormatCancelled(FormatterError):
    """Raised when a format request is cancelled before the tool exits."""

    def __init__(self, message: str = "Format request cancelled.", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ApplyFailure(FormatterError):
    """Raised when a resolved edit list cannot be applied to a document."""


class ConfigError(FormatterError):
    """Raised when formatter settings cannot be loaded or resolved."""


__all__ = [
    "ApplyFailure",
    "ConfigError",
    "FormatCancelled",
    "FormatFailure",
    "FormatterError",
    "MalformedOutput",
    "ToolNotFound",
]
