"""Formatter settings loaded from YAML and resolved into format requests."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError
from .models import DEFAULT_EXECUTABLE, FormatRequest

DEFAULT_CONFIG_NAME = "clangfmt.yaml"
DEFAULT_STYLE = "file"
DEFAULT_FALLBACK_STYLE = "none"

LANGUAGE_ALIASES: Dict[str, str] = {"proto3": "proto"}

KNOWN_LANGUAGES: tuple[str, ...] = (
    "cpp",
    "c",
    "csharp",
    "objective-c",
    "objective-cpp",
    "java",
    "javascript",
    "json",
    "typescript",
    "proto",
    "proto3",
    "textproto",
    "apex",
    "glsl",
    "hlsl",
    "cuda",
    "cuda-cpp",
    "metal",
)

_PLACEHOLDER_RE = re.compile(r"\$\{(?P<name>[A-Za-z][A-Za-z0-9_]*)(?::(?P<arg>[^}]*))?\}")

_EXTENSION_LANGUAGES: Dict[str, str] = {
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".hh": "cpp",
    ".hpp": "cpp",
    ".hxx": "cpp",
    ".cs": "csharp",
    ".m": "objective-c",
    ".mm": "objective-cpp",
    ".java": "java",
    ".js": "javascript",
    ".mjs": "javascript",
    ".json": "json",
    ".ts": "typescript",
    ".proto": "proto",
    ".textproto": "textproto",
    ".cls": "apex",
    ".glsl": "glsl",
    ".hlsl": "hlsl",
    ".cu": "cuda-cpp",
    ".cuh": "cuda-cpp",
    ".metal": "metal",
}


class SettingsModel(BaseModel):
    """Base model rejecting unknown keys."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class LanguageSettings(SettingsModel):
    """Per-language overrides."""

    enable: bool = True
    style: Optional[str] = None
    fallback_style: Optional[str] = Field(default=None, alias="fallbackStyle")
    assume_filename: Optional[str] = Field(default=None, alias="assumeFilename")


class FormatterSettings(SettingsModel):
    """Top-level formatter configuration."""

    executable: str = DEFAULT_EXECUTABLE
    style: str = DEFAULT_STYLE
    fallback_style: str = Field(default=DEFAULT_FALLBACK_STYLE, alias="fallbackStyle")
    assume_filename: str = Field(default="", alias="assumeFilename")
    extra_args: List[str] = Field(default_factory=list, alias="additionalArguments")
    languages: Dict[str, LanguageSettings] = Field(default_factory=dict, alias="language")

    def language_settings(self, language: str | None) -> LanguageSettings:
        """Return the overrides for ``language`` (aliases applied)."""

        if not language:
            return LanguageSettings()
        key = canonical_language(language)
        return self.languages.get(key) or self.languages.get(language) or LanguageSettings()


def canonical_language(language: str) -> str:
    """Map language identifiers onto the key used for overrides."""

    key = language.strip().lower()
    return LANGUAGE_ALIASES.get(key, key)


def language_for_path(path: Path | str) -> str | None:
    """Guess the language identifier from a file extension."""

    return _EXTENSION_LANGUAGES.get(Path(path).suffix.lower())


def load_settings(config_path: Path | str | None = None) -> FormatterSettings:
    """Load settings from ``config_path``; a missing file yields defaults."""

    path = Path(config_path or DEFAULT_CONFIG_NAME)
    if not path.exists():
        return FormatterSettings()
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}", details={"path": path.as_posix()}) from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.", details={"path": path.as_posix()})
    section = data.get("clang-format", data)
    if not isinstance(section, dict):
        raise ConfigError("The clang-format section must be a mapping.", details={"path": path.as_posix()})
    return parse_settings(section)


def parse_settings(data: Mapping[str, Any]) -> FormatterSettings:
    """Validate a raw mapping into :class:`FormatterSettings`."""

    try:
        return FormatterSettings.model_validate(dict(data))
    except ValidationError as error:
        raise ConfigError(f"Invalid formatter settings: {error}") from error


def substitute_placeholders(
    value: str,
    *,
    workspace_root: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Expand ``${workspaceRoot}``, ``${workspaceFolder}``, ``${cwd}`` and ``${env:NAME}``."""

    environ = os.environ if env is None else env

    def _replace(match: re.Match[str]) -> str:
        name = match.group("name")
        arg = match.group("arg")
        if name == "env" and arg is not None:
            return environ.get(arg, "")
        if name in ("workspaceRoot", "workspaceFolder"):
            if workspace_root is None:
                return match.group(0)
            return str(workspace_root)
        if name == "cwd":
            return str(Path.cwd())
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, value)


def _pick_style(override: str | None, configured: str, default: str) -> str:
    for candidate in (override, configured):
        if candidate is not None and candidate.strip():
            return candidate.strip()
    return default


def resolve_request(
    settings: FormatterSettings,
    *,
    text: str,
    filename: Path | str | None = None,
    language: str | None = None,
    start: int | None = None,
    end: int | None = None,
    workspace_root: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> FormatRequest:
    """Collapse ``settings`` and document state into one :class:`FormatRequest`."""

    overrides = settings.language_settings(language)
    if not overrides.enable:
        raise ConfigError(f"Formatting is disabled for language '{language}'.", details={"language": language})

    root = Path(workspace_root).resolve() if workspace_root is not None else None

    def _expand(value: str) -> str:
        return substitute_placeholders(value, workspace_root=root, env=env)

    executable = os.path.expanduser(_expand(settings.executable.strip() or DEFAULT_EXECUTABLE))
    style = _expand(_pick_style(overrides.style, settings.style, DEFAULT_STYLE))
    fallback_style = _expand(
        _pick_style(overrides.fallback_style, settings.fallback_style, DEFAULT_FALLBACK_STYLE)
    )

    assume_filename = overrides.assume_filename or settings.assume_filename
    if assume_filename:
        assume_filename = _expand(assume_filename)
    elif filename is not None:
        assume_filename = str(filename)

    working_directory: Path | None = None
    if filename is not None:
        parent = Path(filename).resolve().parent
        if parent.is_dir():
            working_directory = parent
    if working_directory is None:
        working_directory = root

    return FormatRequest(
        text=text,
        start=start,
        end=end,
        style=style,
        fallback_style=fallback_style,
        assume_filename=assume_filename,
        extra_args=tuple(_expand(arg) for arg in settings.extra_args),
        executable=executable,
        working_directory=working_directory,
    )


__all__ = [
    "DEFAULT_CONFIG_NAME",
    "FormatterSettings",
    "KNOWN_LANGUAGES",
    "LANGUAGE_ALIASES",
    "LanguageSettings",
    "canonical_language",
    "language_for_path",
    "load_settings",
    "parse_settings",
    "resolve_request",
    "substitute_placeholders",
]
