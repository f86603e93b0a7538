"""Bounded archive of named content checkpoints (the "time machine")."""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from ..events import EventBus, SnapshotCreated
from ..utils.scheduling import DebounceTimer, Scheduler
from .document_model import AUTO_BACKUP, MANUAL_SAVE, Snapshot

LOGGER = logging.getLogger(__name__)

DEFAULT_RETENTION = 50
DEFAULT_IDLE_SECONDS = 5 * 60.0


class SnapshotArchive:
    """Newest-first snapshot log shared by every chapter.

    Inserting beyond ``retention`` evicts the oldest entry. The archive also
    owns the idle timer that triggers automatic backups.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        retention: int = DEFAULT_RETENTION,
        idle_seconds: float = DEFAULT_IDLE_SECONDS,
        event_bus: EventBus | None = None,
    ) -> None:
        if retention < 1:
            raise ValueError("retention must be at least 1")
        self._retention = int(retention)
        self._snapshots: list[Snapshot] = []
        self._idle_timer = DebounceTimer(scheduler, idle_seconds, name="snapshot idle timer")
        self._bus = event_bus

    @property
    def retention(self) -> int:
        return self._retention

    @property
    def snapshots(self) -> tuple[Snapshot, ...]:
        return tuple(self._snapshots)

    @property
    def idle_pending(self) -> bool:
        return self._idle_timer.pending

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(tuple(self._snapshots))

    def create(self, chapter_id: str, content: str, description: str = MANUAL_SAVE) -> Snapshot:
        """Prepend a new snapshot, evicting the oldest beyond the retention cap."""
        snapshot = Snapshot(chapter_id=chapter_id, content=content, description=description)
        self._snapshots.insert(0, snapshot)
        evicted = self._snapshots[self._retention :]
        del self._snapshots[self._retention :]
        LOGGER.debug(
            "Snapshot created: id=%s, chapter_id=%s, description=%s, evicted=%d",
            snapshot.snapshot_id,
            chapter_id,
            description,
            len(evicted),
        )
        if self._bus is not None:
            self._bus.publish(SnapshotCreated(
                snapshot_id=snapshot.snapshot_id,
                chapter_id=chapter_id,
                description=description,
                automatic=description == AUTO_BACKUP,
            ))
        return snapshot

    def get(self, snapshot_id: str) -> Snapshot:
        for snapshot in self._snapshots:
            if snapshot.snapshot_id == snapshot_id:
                return snapshot
        raise KeyError(f"Unknown snapshot_id: {snapshot_id}")

    def latest(self) -> Snapshot | None:
        return self._snapshots[0] if self._snapshots else None

    def for_chapter(self, chapter_id: str) -> tuple[Snapshot, ...]:
        return tuple(snapshot for snapshot in self._snapshots if snapshot.chapter_id == chapter_id)

    def clear(self) -> None:
        self._snapshots.clear()

    # ------------------------------------------------------------------
    # Idle auto-backup
    # ------------------------------------------------------------------

    def arm_idle(self, callback: Callable[[], None]) -> None:
        """Restart the idle window; ``callback`` runs once the content stays quiet."""
        self._idle_timer.arm(callback)

    def cancel_idle(self) -> None:
        self._idle_timer.cancel()


__all__ = ["DEFAULT_IDLE_SECONDS", "DEFAULT_RETENTION", "SnapshotArchive"]
