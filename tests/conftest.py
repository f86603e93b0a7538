"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from inkwell.editor.document_model import Chapter
from inkwell.editor.document_store import DocumentStore
from inkwell.editor.session import EditorSession
from inkwell.events import EventBus
from inkwell.services.settings import Settings
from inkwell.utils import logging as logging_utils

from tests.helpers import ManualScheduler


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("INKWELL_LOG_DIR", str(tmp_path / "logs"))
    for name in (
        "INKWELL_THEME",
        "INKWELL_LAYOUT",
        "INKWELL_DEBUG_LOGGING",
        "INKWELL_TYPEWRITER_MODE",
        "INKWELL_HISTORY_DEBOUNCE",
        "INKWELL_SNAPSHOT_IDLE",
        "INKWELL_SNAPSHOT_RETENTION",
        "INKWELL_HISTORY_LIMIT",
        "INKWELL_COVER_MAX_BYTES",
        "INKWELL_LOG_LEVEL",
        "INKWELL_DEBUG",
        "INKWELL_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    logging_utils.reset_logging()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store(bus: EventBus) -> DocumentStore:
    chapters = (
        Chapter(chapter_id="c1", title="One", content="Hello"),
        Chapter(chapter_id="c2", title="Two", content="World", order=1),
    )
    return DocumentStore(bus, chapters=chapters)


@pytest.fixture
def confirmations() -> list[str]:
    return []


@pytest.fixture
def session(scheduler: ManualScheduler, store: DocumentStore, bus: EventBus, confirmations: list[str]) -> EditorSession:
    def _confirm(message: str) -> bool:
        confirmations.append(message)
        return True

    return EditorSession(scheduler, store=store, event_bus=bus, settings=Settings(), confirm=_confirm)
