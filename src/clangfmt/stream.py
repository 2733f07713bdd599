"""Incremental parser for clang-format's ``-output-replacements-xml`` report.

The report looks like::

    <?xml version='1.0'?>
    <replacements xml:space='preserve' incomplete_format='false'>
    <cursor>10</cursor>
    <replacement offset='3' length='0'>&#10;</replacement>
    </replacements>

Chunks are fed as they arrive from the subprocess. Every ``replacement`` and
``cursor`` element is translated into character offsets as soon as its end tag
is seen, so the translator sees offsets in emission order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Union
from xml.etree.ElementTree import Element, ParseError, XMLPullParser

from .errors import MalformedOutput
from .models import CursorHint, Edit, Replacement
from .offsets import OffsetTranslator

ROOT_TAG = "replacements"
REPLACEMENT_TAG = "replacement"
CURSOR_TAG = "cursor"

_DECIMAL_RE = re.compile(r"^\s*([0-9]+)\s*$")


@dataclass(frozen=True, slots=True)
class ReplacementEvent:
    """A replacement together with its character-offset edit."""

    replacement: Replacement
    edit: Edit


@dataclass(frozen=True, slots=True)
class CursorEvent:
    """The tool's caret hint and its character position in the source.

    ``position`` is ``None`` when the hint lies past the end of the source,
    which happens when formatting grows the text ahead of the caret.
    """

    hint: CursorHint
    position: int | None


@dataclass(frozen=True, slots=True)
class EndOfStream:
    """Emitted once after the root element closes."""

    incomplete_format: bool = False


StreamEvent = Union[ReplacementEvent, CursorEvent, EndOfStream]


def _parse_decimal(value: str | None, *, what: str) -> int:
    """Parse a non-negative decimal field or raise :class:`MalformedOutput`."""
    if value is None:
        raise MalformedOutput(f"missing {what}")
    match = _DECIMAL_RE.match(value)
    if not match:
        raise MalformedOutput(f"{what} is not a decimal number: {value!r}", details={what: value})
    return int(match.group(1))


class ReplacementStreamParser:
    """Push parser turning report chunks into replacement and cursor events."""

    def __init__(self, translator: OffsetTranslator) -> None:
        self._translator = translator
        self._parser: XMLPullParser | None = XMLPullParser(events=("start", "end"))
        self._root: Element | None = None
        self._depth = 0
        self._seen_root = False
        self._seen_cursor = False
        self._finished = False
        self._incomplete_format = False
        self._failed = False
        self._received = 0

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        """Consume ``chunk`` and return the events it completed."""

        parser = self._require_open()
        self._received += len(chunk)
        try:
            parser.feed(chunk)
            return self._drain(parser)
        except ParseError as error:
            self._fail()
            raise MalformedOutput(f"invalid replacement report: {error}") from error
        except MalformedOutput:
            self._fail()
            raise

    def close(self) -> List[StreamEvent]:
        """Signal end of input and return the remaining events."""

        parser = self._require_open()
        if self._received == 0:
            self._fail()
            raise MalformedOutput("formatter produced no output")
        try:
            parser.close()
            events = self._drain(parser)
        except ParseError as error:
            self._fail()
            raise MalformedOutput(f"invalid replacement report: {error}") from error
        except MalformedOutput:
            self._fail()
            raise
        self._parser = None
        if not self._finished:
            self._fail()
            raise MalformedOutput(f"report ended before </{ROOT_TAG}>")
        return events

    def _require_open(self) -> XMLPullParser:
        if self._failed:
            raise MalformedOutput("parser already failed")
        if self._parser is None:
            raise MalformedOutput("parser already closed")
        return self._parser

    def _fail(self) -> None:
        self._failed = True
        self._parser = None

    def _drain(self, parser: XMLPullParser) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        for kind, element in parser.read_events():
            if kind == "start":
                self._on_start(element)
                continue
            self._depth -= 1
            if self._depth == 0:
                self._finished = True
                events.append(EndOfStream(incomplete_format=self._incomplete_format))
            else:
                events.append(self._on_child(element))
                if self._root is not None:
                    self._root.remove(element)
        return events

    def _on_start(self, element: Element) -> None:
        if self._depth == 0:
            if self._seen_root or element.tag != ROOT_TAG:
                raise MalformedOutput(f"unexpected root element <{element.tag}>")
            self._seen_root = True
            self._root = element
            flag = element.get("incomplete_format", "false").strip().lower()
            self._incomplete_format = flag == "true"
        elif self._depth == 1:
            if element.tag not in (REPLACEMENT_TAG, CURSOR_TAG):
                raise MalformedOutput(f"unexpected element <{element.tag}>")
        else:
            raise MalformedOutput(f"unexpected nested element <{element.tag}>")
        self._depth += 1

    def _on_child(self, element: Element) -> StreamEvent:
        if element.tag == CURSOR_TAG:
            if self._seen_cursor:
                raise MalformedOutput("report contains more than one cursor")
            self._seen_cursor = True
            offset = _parse_decimal(element.text, what="cursor offset")
            position = None
            if offset <= self._translator.byte_length:
                position = self._translator.translate(offset)
            return CursorEvent(hint=CursorHint(offset=offset), position=position)

        offset = _parse_decimal(element.get("offset"), what="offset")
        length = _parse_decimal(element.get("length"), what="length")
        replacement = Replacement(offset=offset, length=length, text=element.text or "")
        start = self._translator.translate(offset)
        end = start + self._translator.translate_length(offset, length)
        return ReplacementEvent(replacement=replacement, edit=Edit(start=start, end=end, text=replacement.text))


__all__ = [
    "CursorEvent",
    "EndOfStream",
    "ReplacementEvent",
    "ReplacementStreamParser",
    "StreamEvent",
]
