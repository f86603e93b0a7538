"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from inkwell.editor.document_model import BookMetadata, Chapter
from inkwell.events import Event, EventBus
from inkwell.services.assistant import AssistantTask, ResearchResult


@dataclass(order=True)
class _ScheduledCall:
    due: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    canceled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.canceled = True


class ManualScheduler:
    """Virtual-clock scheduler; time only moves when :meth:`advance` is called.

    Example:
        scheduler = ManualScheduler()
        scheduler.call_later(0.6, callback)
        scheduler.advance(0.6)  # callback runs
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[_ScheduledCall] = []
        self._sequence = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ScheduledCall:
        call = _ScheduledCall(self.now + max(0.0, float(delay)), next(self._sequence), callback)
        heapq.heappush(self._queue, call)
        return call

    @property
    def pending(self) -> int:
        return sum(1 for call in self._queue if not call.canceled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that comes due in order."""
        target = self.now + seconds
        while self._queue and self._queue[0].due <= target:
            call = heapq.heappop(self._queue)
            self.now = call.due
            if not call.canceled:
                call.callback()
        self.now = target

    def run_all(self) -> None:
        """Run every pending callback, including ones scheduled while draining."""
        while self._queue:
            call = heapq.heappop(self._queue)
            self.now = max(self.now, call.due)
            if not call.canceled:
                call.callback()


class EventRecorder:
    """Collects published events of the given types, in order."""

    def __init__(self, bus: EventBus, *event_types: type[Event]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


class StubAssistant:
    """Writing assistant that replays scripted answers or raises scripted errors."""

    def __init__(
        self,
        suggestions: Sequence[str | BaseException] = ("Suggested text",),
        research: ResearchResult | BaseException | None = None,
    ) -> None:
        self._suggestions = list(suggestions)
        self._research = research or ResearchResult(text="Findings")
        self.generate_calls: list[tuple[str, AssistantTask]] = []
        self.search_calls: list[str] = []

    async def generate(self, context: str, task: AssistantTask) -> str:
        self.generate_calls.append((context, task))
        outcome = self._suggestions.pop(0) if len(self._suggestions) > 1 else self._suggestions[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def search(self, query: str) -> ResearchResult:
        self.search_calls.append(query)
        if isinstance(self._research, BaseException):
            raise self._research
        return self._research


class StubExporter:
    """Export service returning canned bytes (or raising ``error``)."""

    def __init__(self, payload: bytes = b"EPUB", error: BaseException | None = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: list[tuple[BookMetadata, tuple[Chapter, ...]]] = []

    async def export(self, metadata: BookMetadata, chapters: Sequence[Chapter]) -> bytes:
        self.calls.append((metadata, tuple(chapters)))
        if self.error is not None:
            raise self.error
        return self.payload
