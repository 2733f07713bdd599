"""Conversions between UTF-8 byte offsets and character offsets.

clang-format reports positions in bytes of the UTF-8 encoded input, while a
Python ``str`` is addressed by code point. Multi-byte sequences collapse to a
single character, so every translated point needs a re-decode of the bytes
before it. :class:`OffsetTranslator` keeps the last translated point cached so
that the usual ascending stream of offsets decodes each byte only once.
"""

from __future__ import annotations

from typing import Tuple

from .errors import MalformedOutput


class OffsetTranslator:
    """Translate byte positions in ``text.encode("utf-8")`` into characters."""

    def __init__(self, text: str) -> None:
        self._data = text.encode("utf-8")
        self._last_byte = 0
        self._last_char = 0

    @property
    def byte_length(self) -> int:
        return len(self._data)

    def translate(self, byte_offset: int) -> int:
        """Return the character offset matching ``byte_offset``."""

        if byte_offset == 0:
            return 0
        self._check_bounds(byte_offset, 0)
        if byte_offset >= self._last_byte:
            consumed = self._count_chars(self._last_byte, byte_offset)
            self._last_char += consumed
        else:
            # Backward seek, e.g. a cursor reported after later replacements.
            self._last_char = self._count_chars(0, byte_offset)
        self._last_byte = byte_offset
        return self._last_char

    def translate_length(self, byte_offset: int, byte_length: int) -> int:
        """Return the number of characters spanned by ``byte_length`` bytes."""

        if byte_length == 0:
            return 0
        self._check_bounds(byte_offset, byte_length)
        return self._count_chars(byte_offset, byte_offset + byte_length)

    def _check_bounds(self, byte_offset: int, byte_length: int) -> None:
        if byte_offset < 0 or byte_length < 0:
            raise MalformedOutput(
                f"negative byte position (offset={byte_offset}, length={byte_length})",
                details={"offset": byte_offset, "length": byte_length},
            )
        if byte_offset + byte_length > len(self._data):
            raise MalformedOutput(
                f"byte span [{byte_offset}, {byte_offset + byte_length}) exceeds "
                f"source size {len(self._data)}",
                details={"offset": byte_offset, "length": byte_length, "size": len(self._data)},
            )

    def _count_chars(self, begin: int, end: int) -> int:
        try:
            return len(self._data[begin:end].decode("utf-8"))
        except UnicodeDecodeError as error:
            raise MalformedOutput(
                f"byte span [{begin}, {end}) splits a multi-byte character",
                details={"begin": begin, "end": end},
            ) from error


def char_range_to_bytes(text: str, start: int, end: int) -> Tuple[int, int]:
    """Encode the character range ``[start, end)`` as a byte ``(offset, length)``."""

    if not 0 <= start <= end <= len(text):
        raise ValueError(f"invalid range [{start}, {end}) for text of length {len(text)}")
    offset = len(text[:start].encode("utf-8"))
    length = len(text[start:end].encode("utf-8"))
    return offset, length


__all__ = ["OffsetTranslator", "char_range_to_bytes"]
