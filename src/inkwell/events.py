"""Editor events and the synchronous bus that delivers them.

The document store, history engine, snapshot archive and assistant publish
events here; listeners (word counts, status surfaces, tests) subscribe
without holding direct references to the publishers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, Generic, List, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for editor events.

    Subclasses are slotted dataclasses. Types published on every keystroke
    set ``quiet`` so the bus does not log each delivery.
    """

    quiet: ClassVar[bool] = False


# Document events


@dataclass(slots=True)
class ChapterAdded(Event):
    """Emitted when a chapter is appended to the book.

    Attributes:
        chapter_id: Identifier of the new chapter.
        index: Position of the chapter in the collection.
    """

    chapter_id: str
    index: int


@dataclass(slots=True)
class ChapterDeleted(Event):
    """Emitted when a chapter is removed from the book."""

    chapter_id: str
    remaining: int


@dataclass(slots=True)
class ActiveChapterChanged(Event):
    """Emitted when edits start targeting another chapter.

    Attributes:
        chapter_id: The newly active chapter.
        previous_id: The chapter that was active before, if any.
    """

    chapter_id: str
    previous_id: str | None = None


@dataclass(slots=True)
class ChapterContentChanged(Event):
    """Emitted whenever a chapter's content is replaced.

    Attributes:
        chapter_id: The chapter whose content changed.
        length: Length of the new content in characters.
        source: What caused the change ("typed", "format", "assistant",
            "undo", "redo", "restore").
    """

    chapter_id: str
    length: int
    source: str = "typed"

    quiet: ClassVar[bool] = True


@dataclass(slots=True)
class ChapterRenamed(Event):
    chapter_id: str
    title: str


@dataclass(slots=True)
class ChapterMemoChanged(Event):
    chapter_id: str


@dataclass(slots=True)
class ChaptersReordered(Event):
    """Emitted after a chapter moves; ``order`` lists identifiers in sequence."""

    order: tuple[str, ...]


@dataclass(slots=True)
class MetadataChanged(Event):
    """Emitted when book metadata fields are replaced.

    Attributes:
        fields: Names of the fields that changed.
    """

    fields: tuple[str, ...]


# History & snapshot events


@dataclass(slots=True)
class HistoryChanged(Event):
    """Emitted when the undo/redo stack or its pointer moves.

    Attributes:
        pointer: Index of the entry currently displayed.
        length: Number of entries in the history.
        can_undo: Whether an undo step is available.
        can_redo: Whether a redo step is available.
    """

    pointer: int
    length: int
    can_undo: bool
    can_redo: bool


@dataclass(slots=True)
class SnapshotCreated(Event):
    """Emitted when the time machine captures a checkpoint."""

    snapshot_id: str
    chapter_id: str
    description: str
    automatic: bool = False


@dataclass(slots=True)
class SnapshotRestored(Event):
    """Emitted after a snapshot overwrote the active chapter.

    Attributes:
        snapshot_id: The restored snapshot.
        chapter_id: The chapter that received the content.
        origin_chapter_id: The chapter the snapshot was taken against.
    """

    snapshot_id: str
    chapter_id: str
    origin_chapter_id: str


@dataclass(slots=True)
class SelectionRestored(Event):
    """Emitted once the caret/selection is placed after a structural edit."""

    chapter_id: str
    start: int
    end: int


@dataclass(slots=True)
class ScrollRequested(Event):
    """Emitted by typewriter mode with the scroll offset to apply."""

    offset: float

    quiet: ClassVar[bool] = True


@dataclass(slots=True)
class WordCountsChanged(Event):
    current: int
    total: int

    quiet: ClassVar[bool] = True


# Assistant & export events


@dataclass(slots=True)
class AssistantRequestStarted(Event):
    """Emitted when a writing or research request is dispatched.

    Attributes:
        token: Monotonic request token; only the newest token is honoured.
        kind: ``"generate"`` or ``"search"``.
    """

    token: int
    kind: str


@dataclass(slots=True)
class AssistantRequestCompleted(Event):
    token: int
    kind: str
    text: str


@dataclass(slots=True)
class AssistantRequestFailed(Event):
    token: int
    kind: str
    error: str


@dataclass(slots=True)
class ExportCompleted(Event):
    size: int


@dataclass(slots=True)
class ExportFailed(Event):
    error: str


# UI events


@dataclass(slots=True)
class NoticePosted(Event):
    """Emitted when a transient notice (toast) should be shown.

    Attributes:
        message: The notice text.
        level: ``"success"`` or ``"error"``.
    """

    message: str
    level: str = "success"


class _Subscription:
    """One registration on the bus.

    Bound methods are held through ``WeakMethod`` so a subscriber can be
    collected without unsubscribing; any other callable is held strongly.
    """

    __slots__ = ("_target", "_weak")

    def __init__(self, handler: Handler) -> None:
        self._weak = False
        self._target: object = handler
        if getattr(handler, "__self__", None) is not None and hasattr(handler, "__func__"):
            try:
                self._target = WeakMethod(handler)  # type: ignore[arg-type]
                self._weak = True
            except TypeError:
                pass

    def handler(self) -> Handler | None:
        if self._weak:
            return self._target()  # type: ignore[operator]
        return self._target  # type: ignore[return-value]

    def is_for(self, handler: Handler) -> bool:
        current = self.handler()
        return current is not None and current == handler


class EventBus(Generic[E]):
    """Synchronous publish/subscribe hub keyed by exact event type.

    Delivery happens in subscription order on the caller's thread; the bus
    is not thread-safe. A handler that raises is logged and the remaining
    handlers still receive the event.
    """

    __slots__ = ("_subscriptions",)

    def __init__(self) -> None:
        self._subscriptions: Dict[type[Event], List[_Subscription]] = {}

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Deliver future ``event_type`` events to ``handler``.

        Subscribing twice means two deliveries per event.
        """

        self._subscriptions.setdefault(event_type, []).append(_Subscription(handler))
        logger.debug("%s subscribed to %s", _describe(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Drop the earliest registration of ``handler``; unknown handlers are ignored."""

        entries = self._subscriptions.get(event_type, [])
        for index, entry in enumerate(entries):
            if entry.is_for(handler):
                del entries[index]
                logger.debug("%s unsubscribed from %s", _describe(handler), event_type.__name__)
                return

    def publish(self, event: E) -> None:
        event_type = type(event)
        entries = self._subscriptions.get(event_type)
        if not event_type.quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(entries or ()))
        if not entries:
            return

        collected = False
        for entry in tuple(entries):
            handler = entry.handler()
            if handler is None:
                collected = True
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("%s failed while handling %s", _describe(handler), event_type.__name__)

        if collected:
            entries[:] = [entry for entry in entries if entry.handler() is not None]

    def clear(self) -> None:
        self._subscriptions.clear()
        logger.debug("Event bus cleared")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Count registrations for ``event_type``, or across every type when omitted."""

        if event_type is None:
            return sum(len(entries) for entries in self._subscriptions.values())
        return len(self._subscriptions.get(event_type, ()))


def _describe(handler: Handler) -> str:
    owner = getattr(handler, "__self__", None)
    name = getattr(handler, "__name__", None)
    if owner is not None and name is not None:
        return f"{type(owner).__name__}.{name}"
    return name or repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "ChapterAdded",
    "ChapterDeleted",
    "ActiveChapterChanged",
    "ChapterContentChanged",
    "ChapterRenamed",
    "ChapterMemoChanged",
    "ChaptersReordered",
    "MetadataChanged",
    "HistoryChanged",
    "SnapshotCreated",
    "SnapshotRestored",
    "SelectionRestored",
    "ScrollRequested",
    "WordCountsChanged",
    "AssistantRequestStarted",
    "AssistantRequestCompleted",
    "AssistantRequestFailed",
    "ExportCompleted",
    "ExportFailed",
    "NoticePosted",
]
