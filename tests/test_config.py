from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
import yaml

from clangfmt.config import (
    FormatterSettings,
    canonical_language,
    language_for_path,
    load_settings,
    parse_settings,
    resolve_request,
    substitute_placeholders,
)
from clangfmt.errors import ConfigError


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "absent.yaml")

    assert settings == FormatterSettings()
    assert settings.executable == "clang-format"
    assert settings.style == "file"
    assert settings.fallback_style == "none"


def test_load_settings_reads_clang_format_section(tmp_path: Path) -> None:
    config_path = tmp_path / "clangfmt.yaml"
    config_path.write_text(
        textwrap.dedent(
            """
            clang-format:
              executable: /opt/llvm/bin/clang-format
              style: Google
              fallbackStyle: LLVM
              additionalArguments: ["--sort-includes"]
              language:
                cpp:
                  style: "{BasedOnStyle: Mozilla, IndentWidth: 8}"
                java:
                  enable: false
            """
        ).lstrip(),
        encoding="utf-8",
    )

    settings = load_settings(config_path)

    assert settings.executable == "/opt/llvm/bin/clang-format"
    assert settings.fallback_style == "LLVM"
    assert settings.extra_args == ["--sort-includes"]
    assert settings.language_settings("cpp").style == "{BasedOnStyle: Mozilla, IndentWidth: 8}"
    assert settings.language_settings("java").enable is False


def test_load_settings_accepts_snake_case_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "clangfmt.yaml"
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump({"style": "Chromium", "fallback_style": "WebKit", "extra_args": ["-Werror"]}, handle)

    settings = load_settings(config_path)

    assert settings.style == "Chromium"
    assert settings.fallback_style == "WebKit"
    assert settings.extra_args == ["-Werror"]


@pytest.mark.parametrize(
    "content",
    [
        "style: [unterminated\n",
        "- just\n- a list\n",
        "stlye: typo\n",
        "clang-format: nope\n",
    ],
)
def test_invalid_settings_raise_config_error(tmp_path: Path, content: str) -> None:
    config_path = tmp_path / "clangfmt.yaml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(config_path)


def test_language_override_takes_precedence_and_blank_falls_back() -> None:
    settings = parse_settings(
        {
            "style": "  ",
            "fallbackStyle": "",
            "language": {"proto": {"style": "Google"}},
        }
    )

    proto = resolve_request(settings, text="", language="proto3")
    plain = resolve_request(settings, text="", language="c")

    assert proto.style == "Google"
    assert proto.fallback_style == "none"
    assert plain.style == "file"


def test_disabled_language_raises() -> None:
    settings = parse_settings({"language": {"java": {"enable": False}}})

    with pytest.raises(ConfigError):
        resolve_request(settings, text="", language="java")


def test_placeholders_are_expanded(tmp_path: Path) -> None:
    settings = parse_settings(
        {
            "executable": "${workspaceRoot}/bin/clang-format",
            "style": "file:${env:STYLE_DIR}/.clang-format",
            "additionalArguments": ["--Wno-error=${env:MISSING}unknown"],
        }
    )

    request = resolve_request(
        settings,
        text="int x;",
        workspace_root=tmp_path,
        env={"STYLE_DIR": "/styles"},
    )

    assert request.executable == f"{tmp_path.resolve()}/bin/clang-format"
    assert request.style == "file:/styles/.clang-format"
    assert request.extra_args == ("--Wno-error=unknown",)


def test_unknown_placeholders_are_left_alone() -> None:
    assert substitute_placeholders("${unknown} ${workspaceFolder}") == "${unknown} ${workspaceFolder}"


def test_assume_filename_and_working_directory_follow_the_file(tmp_path: Path) -> None:
    source = tmp_path / "src" / "main.cc"
    source.parent.mkdir()
    source.write_text("int main(){}", encoding="utf-8")

    request = resolve_request(FormatterSettings(), text="int main(){}", filename=source, start=0, end=3)

    assert request.assume_filename == str(source)
    assert request.working_directory == source.parent.resolve()
    assert (request.start, request.end) == (0, 3)


def test_untitled_documents_run_in_the_workspace_root(tmp_path: Path) -> None:
    settings = parse_settings({"assumeFilename": "${workspaceRoot}/untitled.cpp"})

    request = resolve_request(
        settings,
        text="",
        filename=tmp_path / "missing-dir" / "Untitled-1",
        workspace_root=tmp_path,
    )

    assert request.working_directory == tmp_path.resolve()
    assert request.assume_filename == f"{tmp_path.resolve()}/untitled.cpp"


def test_language_helpers() -> None:
    assert canonical_language(" Proto3 ") == "proto"
    assert language_for_path("include/widget.HPP") == "cpp"
    assert language_for_path("README.md") is None


def test_resolve_request_rejects_invalid_ranges() -> None:
    with pytest.raises(ValueError):
        resolve_request(FormatterSettings(), text="abc", start=2, end=1)
    with pytest.raises(ValueError):
        resolve_request(FormatterSettings(), text="abc", start=1)
