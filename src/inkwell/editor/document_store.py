"""Document store domain manager.

Single source of truth for book metadata, the ordered chapter collection and
the active chapter. Every mutation replaces the chapter tuple wholesale and
publishes an event so consumers can react without polling.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Iterator

from ..events import (
    ActiveChapterChanged,
    ChapterAdded,
    ChapterContentChanged,
    ChapterDeleted,
    ChapterMemoChanged,
    ChapterRenamed,
    ChaptersReordered,
    EventBus,
    MetadataChanged,
)
from .document_model import BookMetadata, Chapter, CoverImage, default_chapter, new_identifier

LOGGER = logging.getLogger(__name__)


class LastChapterError(RuntimeError):
    """Raised when deleting a chapter would leave the book empty."""


class DocumentStore:
    """Domain manager for the manuscript and its chapters.

    Events Emitted:
        - ChapterAdded / ChapterDeleted: collection membership changes
        - ActiveChapterChanged: edits now target another chapter
        - ChapterContentChanged / ChapterRenamed / ChapterMemoChanged
        - ChaptersReordered: a chapter moved
        - MetadataChanged: book metadata fields were replaced
    """

    def __init__(
        self,
        event_bus: EventBus | None = None,
        *,
        metadata: BookMetadata | None = None,
        chapters: Iterable[Chapter] | None = None,
        active_chapter_id: str | None = None,
    ) -> None:
        self._bus = event_bus or EventBus()
        self._metadata = metadata or BookMetadata()
        initial = tuple(chapters) if chapters is not None else (default_chapter(),)
        if not initial:
            raise ValueError("A book requires at least one chapter")
        ids = [chapter.chapter_id for chapter in initial]
        if len(set(ids)) != len(ids):
            raise ValueError("Chapter identifiers must be unique")
        self._chapters: tuple[Chapter, ...] = initial
        self._retired_ids: set[str] = set()
        self._active_id = active_chapter_id if active_chapter_id in ids else ids[0]

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def metadata(self) -> BookMetadata:
        return self._metadata

    @property
    def chapters(self) -> tuple[Chapter, ...]:
        return self._chapters

    def iter_chapters(self) -> Iterator[Chapter]:
        return iter(self._chapters)

    def chapter_count(self) -> int:
        return len(self._chapters)

    def chapter_ids(self) -> tuple[str, ...]:
        return tuple(chapter.chapter_id for chapter in self._chapters)

    def find_chapter_index(self, chapter_id: str) -> int | None:
        for index, chapter in enumerate(self._chapters):
            if chapter.chapter_id == chapter_id:
                return index
        return None

    def get_chapter(self, chapter_id: str) -> Chapter:
        """Return the chapter with ``chapter_id``.

        Raises:
            KeyError: If the chapter is not part of the book.
        """
        index = self.find_chapter_index(chapter_id)
        if index is None:
            raise KeyError(f"Unknown chapter_id: {chapter_id}")
        return self._chapters[index]

    @property
    def active_chapter_id(self) -> str:
        """Identifier of the active chapter, falling back to the first chapter."""
        if self.find_chapter_index(self._active_id) is None:
            return self._chapters[0].chapter_id
        return self._active_id

    @property
    def active_chapter(self) -> Chapter:
        index = self.find_chapter_index(self._active_id)
        return self._chapters[index if index is not None else 0]

    # ------------------------------------------------------------------
    # Active chapter mutations
    # ------------------------------------------------------------------

    def replace_chapter_content(self, content: str, *, source: str = "typed") -> bool:
        """Replace the active chapter's content.

        Returns:
            ``True`` when the content changed, ``False`` for no-ops.

        Emits:
            ChapterContentChanged: When the content changed.
        """
        updated = self._update_active(lambda chapter: chapter.with_content(content), "content")
        if updated is None:
            return False
        self._bus.publish(ChapterContentChanged(
            chapter_id=updated.chapter_id,
            length=len(content),
            source=source,
        ))
        return True

    def rename_chapter(self, title: str) -> bool:
        updated = self._update_active(lambda chapter: chapter.with_title(title), "title")
        if updated is None:
            return False
        self._bus.publish(ChapterRenamed(chapter_id=updated.chapter_id, title=title))
        return True

    def set_chapter_memo(self, memo: str) -> bool:
        updated = self._update_active(lambda chapter: chapter.with_memo(memo), "memo")
        if updated is None:
            return False
        self._bus.publish(ChapterMemoChanged(chapter_id=updated.chapter_id))
        return True

    # ------------------------------------------------------------------
    # Collection lifecycle
    # ------------------------------------------------------------------

    def add_chapter(self) -> Chapter:
        """Append a numbered placeholder chapter and make it active.

        Emits:
            ChapterAdded: After the chapter is appended.
            ActiveChapterChanged: After it becomes active.
        """
        index = len(self._chapters)
        chapter = Chapter.create(index + 1, chapter_id=self._fresh_id())
        self._chapters = self._chapters + (chapter,)
        LOGGER.debug("DocumentStore.add_chapter: chapter_id=%s, index=%d", chapter.chapter_id, index)
        self._bus.publish(ChapterAdded(chapter_id=chapter.chapter_id, index=index))
        self._activate(chapter.chapter_id)
        return chapter

    def delete_chapter(self, chapter_id: str) -> Chapter:
        """Remove a chapter from the book.

        Returns:
            The removed chapter.

        Raises:
            LastChapterError: If it is the only chapter left (state unchanged).
            KeyError: If the chapter is unknown.

        Emits:
            ChapterDeleted: After removal.
            ActiveChapterChanged: If the removed chapter was active.
        """
        index = self.find_chapter_index(chapter_id)
        if index is None:
            raise KeyError(f"Unknown chapter_id: {chapter_id}")
        if len(self._chapters) <= 1:
            LOGGER.warning("DocumentStore.delete_chapter refused: %s is the last chapter", chapter_id)
            raise LastChapterError("At least one chapter must remain")

        was_active = self.active_chapter_id == chapter_id
        removed = self._chapters[index]
        self._chapters = self._chapters[:index] + self._chapters[index + 1 :]
        self._retired_ids.add(chapter_id)
        LOGGER.debug(
            "DocumentStore.delete_chapter: chapter_id=%s, remaining=%d",
            chapter_id,
            len(self._chapters),
        )
        self._bus.publish(ChapterDeleted(chapter_id=chapter_id, remaining=len(self._chapters)))
        if was_active:
            self._activate(self._chapters[0].chapter_id, previous_id=chapter_id)
        return removed

    def set_active_chapter(self, chapter_id: str) -> Chapter:
        """Make ``chapter_id`` the target of edits.

        Raises:
            KeyError: If the chapter is unknown.
        """
        chapter = self.get_chapter(chapter_id)
        if chapter_id != self._active_id:
            self._activate(chapter_id)
        return chapter

    def move_chapter(self, chapter_id: str, new_index: int) -> None:
        """Move a chapter within the sequence and renumber ``order``."""
        index = self.find_chapter_index(chapter_id)
        if index is None:
            raise KeyError(f"Unknown chapter_id: {chapter_id}")
        target = max(0, min(int(new_index), len(self._chapters) - 1))
        if target == index:
            return
        items = list(self._chapters)
        chapter = items.pop(index)
        items.insert(target, chapter)
        self._chapters = tuple(item.with_order(position) for position, item in enumerate(items))
        self._bus.publish(ChaptersReordered(order=self.chapter_ids()))

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def update_metadata(self, **changes: Any) -> BookMetadata:
        """Replace metadata fields; unknown fields raise ``TypeError``."""
        updated = self._metadata.updated(**changes)
        changed = tuple(
            name for name in sorted(changes) if getattr(updated, name) != getattr(self._metadata, name)
        )
        self._metadata = updated
        if changed:
            self._bus.publish(MetadataChanged(fields=changed))
        return updated

    def set_cover(self, cover: CoverImage | None) -> BookMetadata:
        return self.update_metadata(cover=cover)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _update_active(self, transform: Callable[[Chapter], Chapter], label: str) -> Chapter | None:
        index = self.find_chapter_index(self._active_id)
        if index is None:
            LOGGER.debug("DocumentStore: stale active chapter %s; %s update ignored", self._active_id, label)
            return None
        current = self._chapters[index]
        updated = transform(current)
        if updated == current:
            return None
        self._chapters = self._chapters[:index] + (updated,) + self._chapters[index + 1 :]
        return updated

    def _activate(self, chapter_id: str, *, previous_id: str | None = None) -> None:
        previous = previous_id if previous_id is not None else self._active_id
        self._active_id = chapter_id
        LOGGER.debug("DocumentStore: active chapter changed %s -> %s", previous, chapter_id)
        self._bus.publish(ActiveChapterChanged(chapter_id=chapter_id, previous_id=previous))

    def _fresh_id(self) -> str:
        existing = set(self.chapter_ids()) | self._retired_ids
        while True:
            candidate = new_identifier()
            if candidate not in existing:
                return candidate


__all__ = ["DocumentStore", "LastChapterError"]
