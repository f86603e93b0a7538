"""Editor session: the state owner wiring store, history and snapshots together.

All user-facing editing operations go through :class:`EditorSession`. It
feeds typed edits into the debounced history, pushes structural edits
immediately, re-arms the idle snapshot timer on every content change and
resets per-chapter state whenever the active chapter changes.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ..core.ranges import TextRange
from ..events import (
    ActiveChapterChanged,
    EventBus,
    NoticePosted,
    ScrollRequested,
    SelectionRestored,
    SnapshotRestored,
)
from ..services.assistant import AssistantController, AssistantState, AssistantTask, RetryPolicy, WritingAssistant
from ..services.covers import CoverTooLargeError, ingest_cover
from ..services.export import ExportController, ExportService
from ..services.settings import Settings
from ..utils.scheduling import DebounceTimer, Scheduler
from .document_model import AUTO_BACKUP, MANUAL_SAVE, BookMetadata, Chapter, EditorLayout, PreviewConfig, Snapshot
from .document_store import DocumentStore, LastChapterError
from .history import HistoryEngine
from .preview import PreviewDocument, render_chapter
from .selection import Mutation, apply_format, assistant_context, splice_suggestion, wrap_selection
from .snapshots import SnapshotArchive
from .typewriter import TypewriterPositioner, Viewport
from .word_count import WordCountAggregator, WordCounts

LOGGER = logging.getLogger(__name__)

Confirmer = Callable[[str], bool]

DELETE_CONFIRMATION = "Delete this chapter? This cannot be undone."
RESTORE_CONFIRMATION = "Restoring this version will overwrite the current content. Continue?"
RESTORE_MISMATCH_NOTE = " This snapshot was taken from another chapter."
DEFAULT_VIEWPORT = Viewport(width=1280, height=720)


def _always_confirm(message: str) -> bool:
    del message
    return True


def _format_size(size: int) -> str:
    for unit, scale in (("MB", 1024 * 1024), ("KB", 1024)):
        if size >= scale:
            return f"{size / scale:g}{unit}"
    return f"{size} bytes"


class EditorSession:
    """Owns the editing state for one open book.

    Args:
        scheduler: Timer source for the history debounce, the idle snapshot
            and caret restoration.
        store: Document store; a fresh one with a default chapter when omitted.
        event_bus: Bus for editor events. It must be ``store.event_bus`` when
            both are given, since chapter switches arrive on the store's bus.
            A mismatch raises ``ValueError``.
        settings: Tunables (debounce, idle window, retention, cover limit).
        confirm: Callback answering destructive-operation prompts.
        assistant: Optional async writing/research service.
        exporter: Optional async export service.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        store: DocumentStore | None = None,
        event_bus: EventBus | None = None,
        settings: Settings | None = None,
        confirm: Confirmer | None = None,
        assistant: WritingAssistant | None = None,
        exporter: ExportService | None = None,
        viewport: Viewport | None = None,
    ) -> None:
        if store is not None and event_bus is not None and event_bus is not store.event_bus:
            raise ValueError("event_bus must be the bus the document store publishes on")
        self._settings = settings or Settings()
        self._bus = event_bus or (store.event_bus if store is not None else EventBus())
        self._store = store or DocumentStore(self._bus)
        self._scheduler = scheduler
        self._confirm = confirm or _always_confirm
        self._history = HistoryEngine(
            scheduler,
            debounce_seconds=self._settings.history_debounce_seconds,
            max_entries=self._settings.history_limit,
            event_bus=self._bus,
        )
        self._archive = SnapshotArchive(
            scheduler,
            retention=self._settings.snapshot_retention,
            idle_seconds=self._settings.snapshot_idle_seconds,
            event_bus=self._bus,
        )
        self._typewriter = TypewriterPositioner(enabled=self._settings.typewriter_mode)
        self._word_counts = WordCountAggregator(self._store, self._bus)
        self._selection_timer = DebounceTimer(scheduler, 0.0, name="selection restore")
        self._assistant = (
            AssistantController(
                assistant,
                event_bus=self._bus,
                retry=RetryPolicy(
                    max_attempts=self._settings.ai_max_retries,
                    min_seconds=self._settings.ai_retry_min_seconds,
                    max_seconds=self._settings.ai_retry_max_seconds,
                ),
            )
            if assistant is not None
            else None
        )
        self._exporter = ExportController(exporter, self._store, self._bus) if exporter is not None else None
        self._viewport = viewport or DEFAULT_VIEWPORT
        self._selection = TextRange.zero()
        self._scroll_offset = 0.0
        self._preview_config = self._settings.preview
        self._layout = EditorLayout(self._settings.layout)

        self._history.reset(self._store.active_chapter.content)
        self._bus.subscribe(ActiveChapterChanged, self._on_active_chapter_changed)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def history(self) -> HistoryEngine:
        return self._history

    @property
    def snapshots(self) -> SnapshotArchive:
        return self._archive

    @property
    def typewriter(self) -> TypewriterPositioner:
        return self._typewriter

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def metadata(self) -> BookMetadata:
        return self._store.metadata

    @property
    def active_chapter(self) -> Chapter:
        return self._store.active_chapter

    @property
    def content(self) -> str:
        return self._store.active_chapter.content

    @property
    def selection(self) -> TextRange:
        return self._selection

    @property
    def word_counts(self) -> WordCounts:
        return self._word_counts.counts

    @property
    def scroll_offset(self) -> float:
        return self._scroll_offset

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @viewport.setter
    def viewport(self, value: Viewport) -> None:
        self._viewport = value

    @property
    def assistant_state(self) -> AssistantState:
        if self._assistant is None:
            return AssistantState()
        return self._assistant.state

    @property
    def last_export(self) -> bytes | None:
        return self._exporter.last_artifact if self._exporter is not None else None

    @property
    def preview_config(self) -> PreviewConfig:
        return self._preview_config

    @property
    def layout(self) -> EditorLayout:
        return self._layout

    # ------------------------------------------------------------------
    # Typed edits & selection
    # ------------------------------------------------------------------

    def handle_content_input(self, content: str, *, caret: int | None = None) -> bool:
        """Apply a keystroke-level edit coming from the text input.

        The store updates immediately; the history entry waits for the
        debounce window and the idle snapshot timer restarts.
        """
        if caret is not None:
            self._selection = TextRange.caret(caret).clamp(upper=len(content))
        if not self._store.replace_chapter_content(content, source="typed"):
            return False
        self._history.record_typed(self._current_content)
        self._arm_idle_snapshot()
        self._position_typewriter(content)
        return True

    def set_selection(self, start: int, end: int | None = None) -> TextRange:
        """Record the caret/selection reported by the text input."""
        span = TextRange(start, start if end is None else end)
        self._selection = span.clamp(upper=len(self.content))
        return self._selection

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def insert_syntax(self, prefix: str, suffix: str = "") -> Mutation:
        """Wrap the current selection with ``prefix``/``suffix`` (toolbar buttons)."""
        mutation = wrap_selection(self.content, self._selection, prefix, suffix)
        self._apply_structural(mutation, source="format")
        return mutation

    def apply_format(self, action: str) -> Mutation:
        """Apply a named toolbar action such as ``"bold"`` or ``"heading1"``."""
        mutation = apply_format(self.content, self._selection, action)
        self._apply_structural(mutation, source="format")
        return mutation

    def undo(self) -> bool:
        content = self._history.undo()
        if content is None:
            return False
        self._store.replace_chapter_content(content, source="undo")
        self._selection = self._selection.clamp(upper=len(content))
        self._arm_idle_snapshot()
        self._notice("Undone")
        return True

    def redo(self) -> bool:
        content = self._history.redo()
        if content is None:
            return False
        self._store.replace_chapter_content(content, source="redo")
        self._selection = self._selection.clamp(upper=len(content))
        self._arm_idle_snapshot()
        self._notice("Redone")
        return True

    def handle_shortcut(self, key: str, *, ctrl: bool = False, meta: bool = False, shift: bool = False) -> bool:
        """Dispatch editor accelerators; returns ``True`` when the key was handled."""
        if not (ctrl or meta):
            return False
        normalized = key.lower()
        if normalized == "z":
            if shift:
                self.redo()
            else:
                self.undo()
            return True
        if normalized == "y":
            self.redo()
            return True
        if normalized == "s":
            self.save_snapshot()
            return True
        return False

    # ------------------------------------------------------------------
    # Chapters & metadata
    # ------------------------------------------------------------------

    def select_chapter(self, chapter_id: str) -> Chapter:
        return self._store.set_active_chapter(chapter_id)

    def add_chapter(self) -> Chapter:
        chapter = self._store.add_chapter()
        self._notice("Chapter added")
        return chapter

    def delete_chapter(self, chapter_id: str) -> bool:
        """Delete a chapter after confirmation; the last chapter is never deleted."""
        if self._store.chapter_count() <= 1:
            self._notice("At least one chapter must remain", level="error")
            return False
        if not self._confirm(DELETE_CONFIRMATION):
            LOGGER.debug("Chapter deletion declined: %s", chapter_id)
            return False
        try:
            self._store.delete_chapter(chapter_id)
        except LastChapterError:
            self._notice("At least one chapter must remain", level="error")
            return False
        self._notice("Chapter deleted")
        return True

    def rename_chapter(self, title: str) -> bool:
        return self._store.rename_chapter(title)

    def set_chapter_memo(self, memo: str) -> bool:
        return self._store.set_chapter_memo(memo)

    def update_metadata(self, **changes: Any) -> BookMetadata:
        return self._store.update_metadata(**changes)

    def upload_cover(self, data: bytes, mime_type: str) -> bool:
        """Attach a cover image; oversized or invalid files leave metadata untouched."""
        try:
            cover = ingest_cover(data, mime_type, max_bytes=self._settings.cover_max_bytes)
        except CoverTooLargeError:
            limit = _format_size(self._settings.cover_max_bytes)
            self._notice(f"Image is too large; keep it under {limit}", level="error")
            return False
        except ValueError as exc:
            self._notice(str(exc), level="error")
            return False
        self._store.set_cover(cover)
        self._notice("Cover uploaded")
        return True

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def save_snapshot(self, description: str = MANUAL_SAVE) -> Snapshot:
        """Take an explicit snapshot of the active chapter and acknowledge it."""
        snapshot = self._archive.create(self._store.active_chapter_id, self.content, description)
        self._notice("Snapshot saved")
        return snapshot

    def restore_snapshot(self, snapshot: Snapshot | str) -> bool:
        """Overwrite the active chapter with a snapshot after confirmation."""
        resolved = self._archive.get(snapshot) if isinstance(snapshot, str) else snapshot
        active_id = self._store.active_chapter_id
        message = RESTORE_CONFIRMATION
        if resolved.chapter_id != active_id:
            LOGGER.warning(
                "Restoring snapshot %s taken from chapter %s into chapter %s",
                resolved.snapshot_id,
                resolved.chapter_id,
                active_id,
            )
            message += RESTORE_MISMATCH_NOTE
        if not self._confirm(message):
            LOGGER.debug("Snapshot restore declined: %s", resolved.snapshot_id)
            return False
        mutation = Mutation(text=resolved.content, selection=TextRange.caret(len(resolved.content)))
        self._apply_structural(mutation, source="restore")
        self._bus.publish(SnapshotRestored(
            snapshot_id=resolved.snapshot_id,
            chapter_id=active_id,
            origin_chapter_id=resolved.chapter_id,
        ))
        self._notice("Previous version restored")
        return True

    # ------------------------------------------------------------------
    # Assistant & export
    # ------------------------------------------------------------------

    async def request_suggestion(self, task: AssistantTask | str) -> AssistantState:
        """Ask the assistant about the selection (or the whole chapter)."""
        controller = self._require_assistant()
        context = assistant_context(self.content, self._selection)
        return await controller.request_suggestion(context, task)

    async def research(self, query: str) -> AssistantState:
        return await self._require_assistant().search(query)

    def apply_suggestion(self) -> bool:
        """Splice the pending assistant suggestion into the active chapter."""
        controller = self._require_assistant()
        suggestion = controller.state.suggestion
        if not suggestion:
            return False
        mutation = splice_suggestion(self.content, self._selection, suggestion)
        self._apply_structural(mutation, source="assistant")
        controller.take_suggestion()
        self._notice("Suggestion applied")
        return True

    async def export_book(self) -> bytes | None:
        if self._exporter is None:
            raise RuntimeError("No export service configured")
        return await self._exporter.export_book()

    # ------------------------------------------------------------------
    # Presentation state
    # ------------------------------------------------------------------

    def toggle_typewriter(self) -> bool:
        return self._typewriter.toggle()

    def set_layout(self, layout: EditorLayout | str) -> EditorLayout:
        self._layout = EditorLayout(layout)
        return self._layout

    def set_preview_config(self, **changes: Any) -> PreviewConfig:
        payload = self._preview_config.to_dict()
        payload.update(changes)
        self._preview_config = PreviewConfig(**payload)
        return self._preview_config

    def render_preview(self) -> PreviewDocument:
        return render_chapter(self.content, config=self._preview_config)

    def close(self) -> None:
        """Cancel timers and detach listeners."""
        self._history.cancel_pending()
        self._archive.cancel_idle()
        self._selection_timer.cancel()
        self._word_counts.close()
        self._bus.unsubscribe(ActiveChapterChanged, self._on_active_chapter_changed)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _current_content(self) -> str:
        return self._store.active_chapter.content

    def _apply_structural(self, mutation: Mutation, *, source: str) -> None:
        # A pending typed edit must land in history before the structural one.
        self._history.flush()
        if not self._store.replace_chapter_content(mutation.text, source=source):
            LOGGER.debug("Structural %s edit left content unchanged", source)
            return
        self._history.push(mutation.text)
        self._arm_idle_snapshot()
        self._schedule_selection(mutation.selection)

    def _schedule_selection(self, selection: TextRange) -> None:
        chapter_id = self._store.active_chapter_id

        def _restore() -> None:
            if self._store.active_chapter_id != chapter_id:
                return
            self._selection = selection.clamp(upper=len(self.content))
            self._bus.publish(SelectionRestored(
                chapter_id=chapter_id,
                start=self._selection.start,
                end=self._selection.end,
            ))

        self._selection_timer.arm(_restore)

    def _arm_idle_snapshot(self) -> None:
        self._archive.arm_idle(self._auto_backup)

    def _auto_backup(self) -> None:
        self._archive.create(self._store.active_chapter_id, self.content, AUTO_BACKUP)

    def _position_typewriter(self, content: str) -> None:
        offset = self._typewriter.scroll_offset(content, self._selection.end, self._viewport)
        if offset is None:
            return
        self._scroll_offset = offset
        self._bus.publish(ScrollRequested(offset=offset))

    def _on_active_chapter_changed(self, event: ActiveChapterChanged) -> None:
        LOGGER.debug("Resetting editing state for chapter %s", event.chapter_id)
        self._archive.cancel_idle()
        self._selection_timer.cancel()
        self._history.reset(self._store.active_chapter.content)
        self._selection = TextRange.zero()

    def _require_assistant(self) -> AssistantController:
        if self._assistant is None:
            raise RuntimeError("No writing assistant configured")
        return self._assistant

    def _notice(self, message: str, *, level: str = "success") -> None:
        self._bus.publish(NoticePosted(message=message, level=level))


__all__ = ["Confirmer", "EditorSession"]
