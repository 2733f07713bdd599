"""Apply assembled edits to an in-memory document."""

from __future__ import annotations

from typing import Iterable, List, Tuple

from .errors import ApplyFailure
from .models import Edit, FormatResult


def apply_edits(text: str, edits: Iterable[Edit]) -> str:
    """Return ``text`` with ``edits`` applied.

    Edits must be ascending and non-overlapping in character space. Any
    violation raises :class:`ApplyFailure` and nothing is applied.
    """

    pieces: List[str] = []
    position = 0
    for index, edit in enumerate(edits):
        if edit.end > len(text):
            raise ApplyFailure(
                f"edit #{index} [{edit.start}, {edit.end}) exceeds document length {len(text)}",
                details={"index": index, "start": edit.start, "end": edit.end},
            )
        if edit.start < position:
            raise ApplyFailure(
                f"edit #{index} starts at {edit.start} before the previous edit ended at {position}",
                details={"index": index, "start": edit.start, "previous_end": position},
            )
        pieces.append(text[position : edit.start])
        pieces.append(edit.text)
        position = edit.end
    pieces.append(text[position:])
    return "".join(pieces)


def apply_result(text: str, result: FormatResult) -> Tuple[str, int | None]:
    """Apply ``result`` and return the new text with the new caret position."""

    return apply_edits(text, result.edits), result.cursor


__all__ = ["apply_edits", "apply_result"]
