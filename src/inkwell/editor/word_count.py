"""Character counts for the active chapter and the whole book.

Markdown structure characters, newlines and ASCII spaces are stripped and
the remaining characters counted, which approximates word counts for CJK
text. Tabs and the ideographic space (U+3000) used for paragraph indents
are kept.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Pattern

from ..events import (
    ActiveChapterChanged,
    ChapterAdded,
    ChapterContentChanged,
    ChapterDeleted,
    Event,
    EventBus,
    WordCountsChanged,
)
from .document_model import Chapter

if TYPE_CHECKING:  # pragma: no cover
    from .document_store import DocumentStore

LOGGER = logging.getLogger(__name__)

MARKDOWN_STRIP_PATTERN: Pattern[str] = re.compile(r"[#*>\-`\[\]()\n ]")


def count_characters(text: str, *, strip_pattern: Pattern[str] = MARKDOWN_STRIP_PATTERN) -> int:
    """Return the length of ``text`` once markup characters are removed."""

    if not text:
        return 0
    return len(strip_pattern.sub("", text))


def count_book(chapters: Iterable[Chapter], *, strip_pattern: Pattern[str] = MARKDOWN_STRIP_PATTERN) -> int:
    return sum(count_characters(chapter.content, strip_pattern=strip_pattern) for chapter in chapters)


@dataclass(slots=True, frozen=True)
class WordCounts:
    current: int = 0
    total: int = 0


class WordCountAggregator:
    """Keeps :class:`WordCounts` in sync with a document store.

    Subscribes to store events and recomputes whenever the active chapter's
    content or the chapter collection changes.
    """

    def __init__(
        self,
        store: DocumentStore,
        event_bus: EventBus,
        *,
        strip_pattern: Pattern[str] = MARKDOWN_STRIP_PATTERN,
    ) -> None:
        self._store = store
        self._bus = event_bus
        self._strip_pattern = strip_pattern
        self._per_chapter: dict[str, int] = {}
        self._counts = WordCounts()
        self.recompute()
        for event_type in (ChapterContentChanged, ChapterAdded, ChapterDeleted, ActiveChapterChanged):
            event_bus.subscribe(event_type, self._on_store_changed)

    @property
    def counts(self) -> WordCounts:
        return self._counts

    def chapter_count(self, chapter_id: str) -> int:
        """Return the cached count for one chapter."""
        if chapter_id not in self._per_chapter:
            self._per_chapter[chapter_id] = count_characters(
                self._store.get_chapter(chapter_id).content,
                strip_pattern=self._strip_pattern,
            )
        return self._per_chapter[chapter_id]

    def recompute(self) -> WordCounts:
        per_chapter = {
            chapter.chapter_id: count_characters(chapter.content, strip_pattern=self._strip_pattern)
            for chapter in self._store.chapters
        }
        self._per_chapter = per_chapter
        current = per_chapter.get(self._store.active_chapter.chapter_id, 0)
        total = sum(per_chapter[chapter.chapter_id] for chapter in self._store.chapters)
        previous = self._counts
        self._counts = WordCounts(current=current, total=total)
        if self._counts != previous:
            self._bus.publish(WordCountsChanged(current=current, total=total))
        return self._counts

    def close(self) -> None:
        for event_type in (ChapterContentChanged, ChapterAdded, ChapterDeleted, ActiveChapterChanged):
            self._bus.unsubscribe(event_type, self._on_store_changed)

    def _on_store_changed(self, event: Event) -> None:
        LOGGER.debug("Recomputing word counts after %s", type(event).__name__)
        self.recompute()


__all__ = [
    "MARKDOWN_STRIP_PATTERN",
    "WordCountAggregator",
    "WordCounts",
    "count_book",
    "count_characters",
]
