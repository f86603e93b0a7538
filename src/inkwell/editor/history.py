"""Linear undo/redo history for the active chapter.

Typed edits are coalesced by a debounce window; structural edits (toolbar
formatting, assistant inserts, restores) are pushed immediately. Pushing
after an undo discards the redo branch.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..events import EventBus, HistoryChanged
from ..utils.scheduling import DebounceTimer, Scheduler

LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.6

ContentProvider = Callable[[], str]


class HistoryEngine:
    """Per-chapter sequence of full-content entries plus a pointer.

    Invariant: ``0 <= pointer < len(entries)`` whenever ``entries`` is
    non-empty; ``entries[pointer]`` is the content currently displayed.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_entries: int = 0,
        event_bus: EventBus | None = None,
    ) -> None:
        self._timer = DebounceTimer(scheduler, debounce_seconds, name="history debounce")
        self._max_entries = max(0, int(max_entries))
        self._bus = event_bus
        self._entries: list[str] = []
        self._pointer = -1
        self._provider: ContentProvider | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    @property
    def pointer(self) -> int:
        return self._pointer

    @property
    def current(self) -> str | None:
        if not self._entries:
            return None
        return self._entries[self._pointer]

    @property
    def pending(self) -> bool:
        """Whether a typed edit is waiting for the debounce window to close."""
        return self._timer.pending

    @property
    def can_undo(self) -> bool:
        return self._pointer > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._pointer < len(self._entries) - 1

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def reset(self, content: str) -> None:
        """Start a fresh history containing only ``content``."""
        self._timer.cancel()
        self._provider = None
        self._entries = [content]
        self._pointer = 0
        LOGGER.debug("History reset (length=%d)", len(content))
        self._notify()

    def record_typed(self, content_provider: ContentProvider) -> None:
        """Re-arm the debounce window for a keystroke.

        ``content_provider`` is read when the window closes, so the entry
        holds the content current at fire time.
        """
        self._provider = content_provider
        self._timer.arm(self._commit_pending)

    def flush(self) -> bool:
        """Commit a pending typed edit now; returns ``True`` when one was pending."""
        if not self._timer.cancel():
            return False
        self._commit_pending()
        return True

    def cancel_pending(self) -> None:
        self._timer.cancel()
        self._provider = None

    def push(self, content: str) -> None:
        """Record a structural edit immediately, after any pending typed edit."""
        self.flush()
        self._append(content)

    def undo(self) -> str | None:
        """Step back one entry; returns the content to display or ``None`` at the start."""
        self.flush()
        if self._pointer <= 0:
            return None
        self._pointer -= 1
        LOGGER.debug("History undo -> pointer=%d/%d", self._pointer, len(self._entries))
        self._notify()
        return self._entries[self._pointer]

    def redo(self) -> str | None:
        """Step forward one entry; returns the content to display or ``None`` at the tail."""
        self.flush()
        if self._pointer >= len(self._entries) - 1:
            return None
        self._pointer += 1
        LOGGER.debug("History redo -> pointer=%d/%d", self._pointer, len(self._entries))
        self._notify()
        return self._entries[self._pointer]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _commit_pending(self) -> None:
        provider = self._provider
        self._provider = None
        if provider is None:
            return
        content = provider()
        if self._entries and self._entries[self._pointer] == content:
            LOGGER.debug("History debounce flushed unchanged content; skipped")
            return
        self._append(content)

    def _append(self, content: str) -> None:
        del self._entries[self._pointer + 1 :]
        self._entries.append(content)
        if self._max_entries and len(self._entries) > self._max_entries:
            overflow = len(self._entries) - self._max_entries
            del self._entries[:overflow]
        self._pointer = len(self._entries) - 1
        LOGGER.debug("History push -> pointer=%d/%d", self._pointer, len(self._entries))
        self._notify()

    def _notify(self) -> None:
        if self._bus is None:
            return
        self._bus.publish(HistoryChanged(
            pointer=self._pointer,
            length=len(self._entries),
            can_undo=self.can_undo,
            can_redo=self.can_redo,
        ))


__all__ = ["DEFAULT_DEBOUNCE_SECONDS", "HistoryEngine"]
