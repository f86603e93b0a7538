"""Export boundary: hands a copy of the manuscript to an async exporter."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, Sequence

from ..editor.document_model import BookMetadata, Chapter
from ..events import EventBus, ExportCompleted, ExportFailed, NoticePosted

if TYPE_CHECKING:  # pragma: no cover
    from ..editor.document_store import DocumentStore

__all__ = ["ExportController", "ExportService"]

LOGGER = logging.getLogger(__name__)

EXPORT_STARTED_MESSAGE = "Generating EPUB..."
EXPORT_DONE_MESSAGE = "Export complete!"
EXPORT_FAILED_MESSAGE = "EPUB export failed, please try again."


class ExportService(Protocol):
    """Serializes a book into a binary artifact (EPUB in the desktop app)."""

    async def export(self, metadata: BookMetadata, chapters: Sequence[Chapter]) -> bytes:
        ...


class ExportController:
    """Runs exports and reports the outcome through notices and events."""

    def __init__(self, service: ExportService, store: DocumentStore, event_bus: EventBus) -> None:
        self._service = service
        self._store = store
        self._bus = event_bus
        self._last_artifact: bytes | None = None
        self._last_error: str | None = None

    @property
    def last_artifact(self) -> bytes | None:
        return self._last_artifact

    @property
    def last_error(self) -> str | None:
        return self._last_error

    async def export_book(self) -> bytes | None:
        """Export the store as it is right now; returns ``None`` on failure."""

        metadata = self._store.metadata.updated()
        chapters = tuple(self._store.chapters)
        self._bus.publish(NoticePosted(message=EXPORT_STARTED_MESSAGE))
        try:
            artifact = await self._service.export(metadata, chapters)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("Export failed: %s", exc, exc_info=True)
            self._last_error = EXPORT_FAILED_MESSAGE
            self._bus.publish(ExportFailed(error=str(exc) or type(exc).__name__))
            self._bus.publish(NoticePosted(message=EXPORT_FAILED_MESSAGE, level="error"))
            return None
        self._last_artifact = bytes(artifact)
        self._last_error = None
        LOGGER.debug("Export finished: %d bytes, %d chapters", len(self._last_artifact), len(chapters))
        self._bus.publish(ExportCompleted(size=len(self._last_artifact)))
        self._bus.publish(NoticePosted(message=EXPORT_DONE_MESSAGE))
        return self._last_artifact
