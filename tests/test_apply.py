from __future__ import annotations

import pytest

from clangfmt.apply import apply_edits, apply_result
from clangfmt.errors import ApplyFailure
from clangfmt.models import Edit, FormatResult


def test_apply_edits_in_order() -> None:
    text = "int  a=1;\nint b;"
    edits = [
        Edit(start=3, end=5, text=" "),
        Edit(start=6, end=7, text=" = "),
        Edit(start=16, end=16, text="\n"),
    ]

    assert apply_edits(text, edits) == "int a = 1;\nint b;\n"


def test_adjacent_edits_are_allowed() -> None:
    assert apply_edits("abcd", [Edit(0, 2, "X"), Edit(2, 4, "Y")]) == "XY"


def test_no_edits_returns_text_unchanged() -> None:
    assert apply_edits("unchanged", []) == "unchanged"


def test_overlapping_edits_fail() -> None:
    with pytest.raises(ApplyFailure) as excinfo:
        apply_edits("abcdef", [Edit(0, 3, "x"), Edit(2, 4, "y")])

    assert excinfo.value.details["index"] == 1


def test_descending_edits_fail() -> None:
    with pytest.raises(ApplyFailure):
        apply_edits("abcdef", [Edit(4, 5, "x"), Edit(0, 1, "y")])


def test_out_of_bounds_edit_fails() -> None:
    with pytest.raises(ApplyFailure):
        apply_edits("abc", [Edit(2, 5, "x")])


def test_edit_rejects_inverted_span() -> None:
    with pytest.raises(ValueError):
        Edit(start=3, end=1, text="")


def test_apply_result_returns_cursor() -> None:
    result = FormatResult(edits=(Edit(0, 0, "// "),), cursor=7)

    assert apply_result("note", result) == ("// note", 7)
