"""Cancellable timers used by the history debounce and the idle snapshot."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

__all__ = ["AsyncioScheduler", "DebounceTimer", "Scheduler", "TimerHandle"]

LOGGER = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """Handle returned by :meth:`Scheduler.call_later`."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Anything able to run a callback after a delay on the editor thread."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The loop timers run on; bound to the running loop on first use."""

        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as exc:
                raise RuntimeError(
                    "AsyncioScheduler needs a running event loop; pass loop= when "
                    "scheduling from synchronous code"
                ) from exc
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self.loop.call_later(max(0.0, float(delay)), callback)


class DebounceTimer:
    """Single-shot timer re-armed (cancel and reschedule) on every event.

    Each ``arm`` bumps a generation counter; a callback scheduled under an
    older generation is dropped even if its handle could not be canceled.
    """

    def __init__(self, scheduler: Scheduler, delay: float, *, name: str = "timer") -> None:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self._scheduler = scheduler
        self._delay = float(delay)
        self._name = name
        self._handle: TimerHandle | None = None
        self._generation = 0

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self, callback: Callable[[], None]) -> int:
        """(Re)start the quiet window; ``callback`` runs if nothing re-arms it."""

        self.cancel()
        self._generation += 1
        generation = self._generation

        def _fire() -> None:
            if generation != self._generation or self._handle is None:
                LOGGER.debug("Dropping stale %s callback (generation=%d)", self._name, generation)
                return
            self._handle = None
            callback()

        self._handle = self._scheduler.call_later(self._delay, _fire)
        return generation

    def cancel(self) -> bool:
        """Cancel the pending callback; returns ``True`` when one was pending."""

        handle = self._handle
        if handle is None:
            return False
        self._handle = None
        self._generation += 1
        handle.cancel()
        LOGGER.debug("Canceled pending %s", self._name)
        return True
