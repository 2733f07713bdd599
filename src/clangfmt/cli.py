"""CLI commands for formatting files through clang-format replacement reports."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .apply import apply_result
from .assembler import EditAssembler
from .config import (
    DEFAULT_CONFIG_NAME,
    KNOWN_LANGUAGES,
    FormatterSettings,
    canonical_language,
    language_for_path,
    load_settings,
    resolve_request,
)
from .errors import ApplyFailure, ConfigError, FormatCancelled, FormatFailure, MalformedOutput
from .resolver import BinaryResolver

APP_HELP = "Format files with clang-format using its replacement report."

app = typer.Typer(help=APP_HELP)


def _configure_logging(verbose: bool) -> None:
    """Route library logs to stderr when verbose output is requested."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load(config: str) -> FormatterSettings:
    """Load settings or exit with a readable message."""
    try:
        return load_settings(Path(config))
    except ConfigError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error


@app.command("format")
def format_file(
    path: Path = typer.Argument(..., help="File to format."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the formatter settings file.",
    ),
    language: Optional[str] = typer.Option(
        None,
        "--language",
        "-l",
        help="Language identifier for per-language overrides (guessed from the extension).",
    ),
    start: Optional[int] = typer.Option(None, "--start", help="Range start as a character offset."),
    end: Optional[int] = typer.Option(None, "--end", help="Range end as a character offset."),
    in_place: bool = typer.Option(False, "--in-place", "-i", help="Write the formatted text back to PATH."),
    as_json: bool = typer.Option(False, "--json", help="Print the edit list instead of the formatted text."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Format PATH and print, write back, or describe the result."""
    _configure_logging(verbose)
    if not path.is_file():
        raise typer.BadParameter(f"File not found: {path}")

    settings = _load(config)
    language_id = canonical_language(language) if language else language_for_path(path)
    if language and language_id not in KNOWN_LANGUAGES:
        typer.echo(f"Warning: unknown language '{language}'; using global settings.", err=True)

    try:
        text = path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as error:
        typer.echo(f"Cannot format {path}: file is not valid UTF-8 ({error})", err=True)
        raise typer.Exit(code=1) from error
    try:
        request = resolve_request(
            settings,
            text=text,
            filename=path,
            language=language_id,
            start=start,
            end=end,
            workspace_root=Path.cwd(),
        )
    except (ConfigError, ValueError) as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error

    assembler = EditAssembler(resolver=BinaryResolver())
    try:
        result = asyncio.run(assembler.run(request))
    except KeyboardInterrupt:
        typer.echo("Formatting cancelled.", err=True)
        raise typer.Exit(code=130)
    except FormatCancelled as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=130) from error
    except (FormatFailure, MalformedOutput) as error:
        typer.echo(f"Cannot format {path}: {error}", err=True)
        raise typer.Exit(code=1) from error

    if result.status == "tool-not-found":
        typer.echo(result.notice, err=True)
        return

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    try:
        formatted, _cursor = apply_result(text, result)
    except ApplyFailure as error:
        typer.echo(f"Failed to apply edits: {error}", err=True)
        raise typer.Exit(code=1) from error

    if in_place:
        if formatted != text:
            path.write_bytes(formatted.encode("utf-8"))
            typer.echo(f"Formatted {path} ({len(result.edits)} edit(s)).")
        else:
            typer.echo(f"{path} already formatted.")
        return
    typer.echo(formatted, nl=False)


@app.command()
def which(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the formatter settings file.",
    )
) -> None:
    """Print the executable that would be used for formatting."""
    settings = _load(config)
    request = resolve_request(settings, text="", workspace_root=Path.cwd())
    typer.echo(BinaryResolver().resolve(request.executable))


if __name__ == "__main__":
    app()
