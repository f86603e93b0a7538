"""Behavioural tests for :class:`inkwell.editor.session.EditorSession`."""

from __future__ import annotations

import pytest

from inkwell.editor.document_model import AUTO_BACKUP, MANUAL_SAVE, Chapter, ViewMode
from inkwell.editor.document_store import DocumentStore
from inkwell.editor.session import RESTORE_MISMATCH_NOTE, EditorSession
from inkwell.editor.typewriter import Viewport
from inkwell.editor.word_count import WordCounts
from inkwell.events import (
    EventBus,
    NoticePosted,
    ScrollRequested,
    SelectionRestored,
    SnapshotCreated,
    SnapshotRestored,
)
from inkwell.services.settings import Settings

from tests.helpers import EventRecorder, ManualScheduler, StubAssistant, StubExporter


def _notices(recorder: EventRecorder) -> list[tuple[str, str]]:
    return [(event.message, event.level) for event in recorder.of_type(NoticePosted)]


# =============================================================================
# Typed edits and history
# =============================================================================


def test_initial_history_holds_active_content(session: EditorSession) -> None:
    assert session.history.entries == ("Hello",)
    assert session.history.pointer == 0


def test_typed_burst_becomes_one_history_entry(session: EditorSession, scheduler: ManualScheduler) -> None:
    for text in ("Hello ", "Hello w", "Hello wo", "Hello world"):
        session.handle_content_input(text)
        scheduler.advance(0.2)

    assert session.content == "Hello world"
    assert session.history.entries == ("Hello",)

    scheduler.advance(0.6)

    assert session.history.entries == ("Hello", "Hello world")


def test_unchanged_input_is_ignored(session: EditorSession) -> None:
    assert session.handle_content_input("Hello") is False
    assert not session.history.pending
    assert not session.snapshots.idle_pending


def test_undo_back_to_start_and_redo(session: EditorSession, scheduler: ManualScheduler, bus: EventBus) -> None:
    for text in ("Hello there", "Hello there, friend"):
        session.handle_content_input(text)
        scheduler.advance(1)
    recorder = EventRecorder(bus, NoticePosted)

    assert session.undo() and session.undo()
    assert session.content == "Hello"
    assert session.undo() is False
    assert session.redo() and session.redo()
    assert session.content == "Hello there, friend"
    assert session.redo() is False
    assert _notices(recorder) == [("Undone", "success")] * 2 + [("Redone", "success")] * 2


def test_structural_edit_after_pending_typing_keeps_order(session: EditorSession, scheduler: ManualScheduler) -> None:
    session.handle_content_input("Hello there")
    scheduler.advance(0.2)
    session.set_selection(0, 5)

    session.apply_format("bold")

    assert session.content == "**Hello** there"
    assert session.history.entries == ("Hello", "Hello there", "**Hello** there")
    assert not session.history.pending


def test_bold_restores_selection_after_commit(session: EditorSession, scheduler: ManualScheduler, bus: EventBus) -> None:
    session.handle_content_input("Hello World")
    session.set_selection(0, 5)
    recorder = EventRecorder(bus, SelectionRestored)

    mutation = session.apply_format("bold")

    assert mutation.text == "**Hello** World"
    assert recorder.events == []

    scheduler.advance(0)

    assert session.selection.to_tuple() == (0, 9)
    assert (recorder.events[0].start, recorder.events[0].end) == (0, 9)


def test_insert_syntax_at_caret(session: EditorSession, scheduler: ManualScheduler) -> None:
    session.set_selection(5)

    session.insert_syntax("[", "](url)")
    scheduler.advance(0)

    assert session.content == "Hello[](url)"
    assert session.selection.to_tuple() == (6, 6)
    assert session.history.current == "Hello[](url)"


def test_selection_restore_is_dropped_after_chapter_switch(
    session: EditorSession, scheduler: ManualScheduler, bus: EventBus
) -> None:
    session.set_selection(0, 5)
    session.apply_format("italic")
    recorder = EventRecorder(bus, SelectionRestored)

    session.select_chapter("c2")
    scheduler.advance(1)

    assert recorder.events == []
    assert session.selection.to_tuple() == (0, 0)


def test_undo_after_structural_edit(session: EditorSession) -> None:
    session.set_selection(0, 5)
    session.apply_format("heading1")

    assert session.undo()
    assert session.content == "Hello"


# =============================================================================
# Chapter switching
# =============================================================================


def test_chapter_switch_resets_history_and_timers(session: EditorSession, scheduler: ManualScheduler) -> None:
    session.handle_content_input("Hello!")
    assert session.history.pending and session.snapshots.idle_pending

    session.select_chapter("c2")
    scheduler.advance(1000)

    assert session.history.entries == ("World",)
    assert session.history.pointer == 0
    assert len(session.snapshots) == 0
    assert session.store.get_chapter("c1").content == "Hello!"


def test_undo_after_chapter_switch_is_a_no_op(session: EditorSession, scheduler: ManualScheduler) -> None:
    session.handle_content_input("Hello!")
    scheduler.advance(1)
    assert session.history.entries == ("Hello", "Hello!")

    session.select_chapter("c2")

    assert session.undo() is False
    assert session.content == "World"
    assert session.store.get_chapter("c1").content == "Hello!"


def test_session_rejects_bus_other_than_the_stores(scheduler: ManualScheduler, store: DocumentStore) -> None:
    with pytest.raises(ValueError):
        EditorSession(scheduler, store=store, event_bus=EventBus())


def test_session_follows_chapter_switches_on_the_store_bus(scheduler: ManualScheduler) -> None:
    store = DocumentStore(
        EventBus(),
        chapters=(Chapter("c1", "One", "Hello"), Chapter("c2", "Two", "World", order=1)),
    )
    session = EditorSession(scheduler, store=store)

    session.handle_content_input("Hello!")
    session.select_chapter("c2")
    scheduler.advance(1000)

    assert session.history.entries == ("World",)
    assert len(session.snapshots) == 0
    assert session.undo() is False


def test_add_then_delete_original_chapter(scheduler: ManualScheduler) -> None:
    session = EditorSession(scheduler)
    original_id = session.store.active_chapter_id

    added = session.add_chapter()
    assert session.delete_chapter(original_id)

    assert session.store.chapter_count() == 1
    assert session.store.active_chapter_id == added.chapter_id
    assert session.history.entries == (added.content,)


def test_delete_last_chapter_is_refused_without_prompt(scheduler: ManualScheduler, bus: EventBus) -> None:
    prompts: list[str] = []
    store = DocumentStore(bus, chapters=(Chapter("only", "Only", "text"),))
    session = EditorSession(scheduler, store=store, confirm=lambda message: prompts.append(message) or True)
    recorder = EventRecorder(bus, NoticePosted)

    assert session.delete_chapter("only") is False

    assert store.chapter_ids() == ("only",)
    assert prompts == []
    assert _notices(recorder) == [("At least one chapter must remain", "error")]


def test_declined_delete_leaves_book_untouched(scheduler: ManualScheduler, store: DocumentStore) -> None:
    session = EditorSession(scheduler, store=store, confirm=lambda message: False)

    assert session.delete_chapter("c2") is False
    assert store.chapter_count() == 2


def test_chapter_notices(session: EditorSession, bus: EventBus, confirmations: list[str]) -> None:
    recorder = EventRecorder(bus, NoticePosted)

    added = session.add_chapter()
    session.delete_chapter(added.chapter_id)

    assert _notices(recorder) == [("Chapter added", "success"), ("Chapter deleted", "success")]
    assert len(confirmations) == 1


def test_rename_memo_and_metadata(session: EditorSession) -> None:
    assert session.rename_chapter("Prologue")
    assert session.set_chapter_memo("Introduce the heroine")
    session.update_metadata(title="Dune", tags={"sf"})

    assert session.active_chapter.title == "Prologue"
    assert session.active_chapter.memo == "Introduce the heroine"
    assert session.metadata.title == "Dune"


# =============================================================================
# Snapshots
# =============================================================================


def test_idle_window_creates_silent_auto_backup(session: EditorSession, scheduler: ManualScheduler, bus: EventBus) -> None:
    recorder = EventRecorder(bus, NoticePosted, SnapshotCreated)

    session.handle_content_input("Hello you")
    scheduler.advance(299)
    session.handle_content_input("Hello you!")
    scheduler.advance(299)
    assert len(session.snapshots) == 0

    scheduler.advance(1)

    [snapshot] = session.snapshots.snapshots
    assert snapshot.description == AUTO_BACKUP
    assert (snapshot.chapter_id, snapshot.content) == ("c1", "Hello you!")
    assert recorder.of_type(NoticePosted) == []
    assert recorder.of_type(SnapshotCreated)[0].automatic


def test_structural_edit_also_rearms_idle_timer(session: EditorSession, scheduler: ManualScheduler) -> None:
    session.set_selection(0, 5)
    session.apply_format("bold")

    scheduler.advance(300)

    assert session.snapshots.latest().content == "**Hello**"


def test_manual_snapshot_posts_notice(session: EditorSession, bus: EventBus) -> None:
    recorder = EventRecorder(bus, NoticePosted)

    snapshot = session.save_snapshot()

    assert snapshot.description == MANUAL_SAVE
    assert snapshot.content == "Hello"
    assert _notices(recorder) == [("Snapshot saved", "success")]


def test_snapshot_cap_through_session(session: EditorSession) -> None:
    snapshots = [session.save_snapshot(f"save {index}") for index in range(51)]

    assert len(session.snapshots) == 50
    assert snapshots[0] not in session.snapshots.snapshots


def test_restore_snapshot_is_a_structural_edit(
    session: EditorSession, scheduler: ManualScheduler, bus: EventBus, confirmations: list[str]
) -> None:
    snapshot = session.save_snapshot()
    session.handle_content_input("Changed")
    scheduler.advance(1)
    recorder = EventRecorder(bus, SnapshotRestored, NoticePosted)

    assert session.restore_snapshot(snapshot.snapshot_id)

    assert session.content == "Hello"
    assert session.history.entries == ("Hello", "Changed", "Hello")
    assert not confirmations[-1].endswith(RESTORE_MISMATCH_NOTE)
    restored = recorder.of_type(SnapshotRestored)[0]
    assert (restored.chapter_id, restored.origin_chapter_id) == ("c1", "c1")
    assert _notices(recorder) == [("Previous version restored", "success")]


def test_restore_into_other_chapter_warns(
    session: EditorSession, confirmations: list[str], caplog: pytest.LogCaptureFixture
) -> None:
    snapshot = session.save_snapshot()
    session.select_chapter("c2")

    with caplog.at_level("WARNING"):
        assert session.restore_snapshot(snapshot)

    assert confirmations[-1].endswith(RESTORE_MISMATCH_NOTE)
    assert "taken from chapter c1" in caplog.text
    assert session.store.get_chapter("c2").content == "Hello"
    assert session.store.get_chapter("c1").content == "Hello"


def test_declined_restore_changes_nothing(scheduler: ManualScheduler, store: DocumentStore) -> None:
    session = EditorSession(scheduler, store=store, confirm=lambda message: False)
    snapshot = session.save_snapshot()
    session.handle_content_input("Changed")

    assert session.restore_snapshot(snapshot) is False
    assert session.content == "Changed"


# =============================================================================
# Cover, typewriter, counts, preview
# =============================================================================


def test_oversized_cover_is_rejected(scheduler: ManualScheduler, store: DocumentStore, bus: EventBus) -> None:
    session = EditorSession(scheduler, store=store, settings=Settings(cover_max_bytes=10))
    recorder = EventRecorder(bus, NoticePosted)

    assert session.upload_cover(b"x" * 11, "image/png") is False

    assert session.metadata.cover is None
    [(message, level)] = _notices(recorder)
    assert level == "error"
    assert "too large" in message


def test_non_image_cover_is_rejected(session: EditorSession) -> None:
    assert session.upload_cover(b"%PDF", "application/pdf") is False
    assert session.metadata.cover is None


def test_cover_upload_success(session: EditorSession) -> None:
    assert session.upload_cover(b"png-bytes", "image/png")
    assert session.metadata.cover.data == b"png-bytes"


def test_typewriter_requests_scroll_on_typing(session: EditorSession, bus: EventBus) -> None:
    recorder = EventRecorder(bus, ScrollRequested)
    session.viewport = Viewport(1024, 100)
    text = "\n".join(["line"] * 20)

    session.handle_content_input(text, caret=len(text))
    assert recorder.events == []

    session.toggle_typewriter()
    session.handle_content_input(text + "!", caret=len(text) + 1)

    assert recorder.events[0].offset == 20 * 20 - 50
    assert session.scroll_offset == 350


def test_word_counts_follow_edits(session: EditorSession) -> None:
    assert session.word_counts == WordCounts(current=5, total=10)

    session.handle_content_input("# Hi\n\n你好*世界*")

    assert session.word_counts == WordCounts(current=6, total=11)


def test_preview_uses_config(session: EditorSession) -> None:
    session.set_preview_config(view_mode="mobile", font_size=18)

    document = session.render_preview()

    assert session.preview_config.view_mode is ViewMode.MOBILE
    assert document.style["font-size"] == "18px"
    assert "<p>Hello</p>" in document.html
    assert session.content == "Hello"


def test_layout_switching(session: EditorSession) -> None:
    assert session.layout.value == "split"
    assert session.set_layout("editor").value == "editor"
    with pytest.raises(ValueError):
        session.set_layout("tabs")


def test_shortcuts(session: EditorSession, scheduler: ManualScheduler) -> None:
    session.handle_content_input("Hello!")
    scheduler.advance(1)

    assert session.handle_shortcut("z", ctrl=True)
    assert session.content == "Hello"
    assert session.handle_shortcut("Z", meta=True, shift=True)
    assert session.content == "Hello!"
    assert session.handle_shortcut("s", ctrl=True)
    assert len(session.snapshots) == 1
    assert session.handle_shortcut("z") is False
    assert session.handle_shortcut("q", ctrl=True) is False


# =============================================================================
# Assistant and export
# =============================================================================


@pytest.mark.asyncio
async def test_assistant_suggestion_replaces_selection(scheduler: ManualScheduler, store: DocumentStore) -> None:
    service = StubAssistant(["Greetings"])
    session = EditorSession(scheduler, store=store, assistant=service)
    session.set_selection(0, 5)

    state = await session.request_suggestion("grammar")

    assert state.suggestion == "Greetings"
    assert service.generate_calls[0][0] == "Hello"
    assert session.apply_suggestion()
    assert session.content == "Greetings"
    assert session.history.entries == ("Hello", "Greetings")
    assert session.assistant_state.suggestion is None
    assert session.apply_suggestion() is False


@pytest.mark.asyncio
async def test_assistant_suggestion_appends_without_selection(scheduler: ManualScheduler, store: DocumentStore) -> None:
    session = EditorSession(scheduler, store=store, assistant=StubAssistant(["More."]))

    await session.request_suggestion("continue")
    session.apply_suggestion()
    scheduler.advance(0)

    assert session.content == "Hello\n\nMore."
    assert session.selection.to_tuple() == (len("Hello\n\nMore."),) * 2


@pytest.mark.asyncio
async def test_assistant_failure_leaves_document_alone(scheduler: ManualScheduler, store: DocumentStore) -> None:
    session = EditorSession(
        scheduler,
        store=store,
        assistant=StubAssistant([RuntimeError("down")]),
        settings=Settings(ai_retry_min_seconds=0, ai_retry_max_seconds=0),
    )

    state = await session.request_suggestion("expand")

    assert state.error
    assert session.content == "Hello"
    assert session.apply_suggestion() is False


@pytest.mark.asyncio
async def test_research_and_export(scheduler: ManualScheduler, store: DocumentStore) -> None:
    exporter = StubExporter(payload=b"epub")
    session = EditorSession(scheduler, store=store, assistant=StubAssistant(), exporter=exporter)

    state = await session.research("Song dynasty")
    artifact = await session.export_book()

    assert state.suggestion == "Findings"
    assert artifact == b"epub"
    assert session.last_export == b"epub"
    assert exporter.calls[0][1] == store.chapters


@pytest.mark.asyncio
async def test_missing_services_raise(session: EditorSession) -> None:
    assert session.assistant_state.suggestion is None
    with pytest.raises(RuntimeError):
        await session.request_suggestion("grammar")
    with pytest.raises(RuntimeError):
        await session.export_book()


def test_close_cancels_timers(session: EditorSession, scheduler: ManualScheduler) -> None:
    session.handle_content_input("Hello!")

    session.close()
    scheduler.advance(1000)

    assert session.history.entries == ("Hello",)
    assert len(session.snapshots) == 0
