"""Caret and selection spans measured in absolute character offsets."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Iterator

_START_KEYS = ("start", "selection_start", "selectionStart")
_END_KEYS = ("end", "selection_end", "selectionEnd")


def _offset(value: Any, label: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"TextRange {label} must be an integer") from exc
    return max(0, number)


def _lookup(mapping: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


@dataclass(slots=True, frozen=True)
class TextRange:
    """Half-open ``[start, end)`` span inside a chapter's text.

    Negative offsets become 0 and reversed bounds are swapped, the way text
    inputs report a selection dragged backwards.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        low, high = sorted((_offset(self.start, "start"), _offset(self.end, "end")))
        object.__setattr__(self, "start", low)
        object.__setattr__(self, "end", high)

    def __iter__(self) -> Iterator[int]:
        return iter((self.start, self.end))

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def is_caret(self) -> bool:
        return self.start == self.end

    def to_tuple(self) -> tuple[int, int]:
        return (self.start, self.end)

    def text_of(self, text: str) -> str:
        """Return the characters of ``text`` covered by the span."""

        return text[self.start : self.end]

    def replace_in(self, text: str, replacement: str) -> str:
        """Return ``text`` with the covered characters swapped for ``replacement``."""

        return text[: self.start] + replacement + text[self.end :]

    def clamp(self, *, upper: int | None = None) -> TextRange:
        """Pull both ends inside ``[0, upper]``; a span past the end collapses there."""

        if upper is None:
            return self
        limit = max(0, upper)
        return TextRange(min(self.start, limit), min(self.end, limit))

    def shift(self, delta: int) -> TextRange:
        return TextRange(self.start + delta, self.end + delta)

    @classmethod
    def caret(cls, position: int) -> TextRange:
        return cls(position, position)

    @classmethod
    def zero(cls) -> TextRange:
        return cls(0, 0)

    @classmethod
    def from_value(cls, value: Any) -> TextRange:
        """Coerce what an editor surface reports into a :class:`TextRange`.

        Accepts a range, a bare caret offset, a ``(start, end)`` pair, a
        mapping keyed ``start``/``end`` (or ``selectionStart``/``selectionEnd``)
        and any object exposing ``start``/``end`` attributes.
        """

        if isinstance(value, TextRange):
            return value
        if isinstance(value, bool):
            raise TypeError("Unsupported TextRange input")
        if isinstance(value, int):
            return cls.caret(value)
        if isinstance(value, Mapping):
            start = _lookup(value, _START_KEYS)
            end = _lookup(value, _END_KEYS)
            if start is None:
                raise ValueError("TextRange mappings require a start offset")
            return cls(start, start if end is None else end)
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            if len(value) != 2:
                raise ValueError("TextRange sequences must have exactly two entries")
            return cls(value[0], value[1])
        start = getattr(value, "start", None)
        end = getattr(value, "end", None)
        if start is None or end is None:
            raise TypeError("Unsupported TextRange input")
        return cls(start, end)


__all__ = ["TextRange"]
