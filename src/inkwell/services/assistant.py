"""Writing/research assistant boundary.

The assistant service is an injected async collaborator with a text-in /
text-out contract. :class:`AssistantController` owns the loading / error /
suggestion state shown to the user, retries transient failures and ignores
responses that were superseded by a newer request.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, Protocol, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..events import (
    AssistantRequestCompleted,
    AssistantRequestFailed,
    AssistantRequestStarted,
    Event,
    EventBus,
)

LOGGER = logging.getLogger(__name__)

GENERATE_ERROR_MESSAGE = "AI service is temporarily unavailable"
SEARCH_ERROR_MESSAGE = "Search failed, please check your network"

T = TypeVar("T")


class AssistantTask(str, Enum):
    """Kinds of writing help the assistant offers."""

    GRAMMAR = "grammar"
    EXPAND = "expand"
    SUMMARIZE = "summarize"
    CONTINUE = "continue"


class AssistantUnavailableError(RuntimeError):
    """Raised by assistant services for transient, retryable failures."""


@dataclass(slots=True, frozen=True)
class SearchSource:
    title: str
    uri: str


@dataclass(slots=True, frozen=True)
class ResearchResult:
    text: str
    sources: tuple[SearchSource, ...] = ()


class WritingAssistant(Protocol):
    """Async AI collaborator used for suggestions and research."""

    async def generate(self, context: str, task: AssistantTask) -> str:
        ...

    async def search(self, query: str) -> ResearchResult:
        ...


@dataclass(slots=True, frozen=True)
class AssistantState:
    """Snapshot of the assistant panel state."""

    is_loading: bool = False
    error: str | None = None
    suggestion: str | None = None
    search_results: tuple[SearchSource, ...] = field(default_factory=tuple)


@dataclass(slots=True)
class RetryPolicy:
    max_attempts: int = 2
    min_seconds: float = 0.5
    max_seconds: float = 4.0


_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    AssistantUnavailableError,
    ConnectionError,
    TimeoutError,
)


class AssistantController:
    """Coordinates assistant requests and their user-visible state.

    Every request takes a new monotonic token; when a response arrives for a
    token that is no longer the latest, it is logged and dropped.
    """

    def __init__(
        self,
        service: WritingAssistant,
        *,
        event_bus: EventBus | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._service = service
        self._bus = event_bus
        self._retry = retry or RetryPolicy()
        self._tokens = itertools.count(1)
        self._latest_token = 0
        self._state = AssistantState()

    @property
    def state(self) -> AssistantState:
        return self._state

    @property
    def latest_token(self) -> int:
        return self._latest_token

    async def request_suggestion(self, context: str, task: AssistantTask | str) -> AssistantState:
        """Ask the assistant for writing help on ``context``."""

        resolved = AssistantTask(task)
        token = self._begin("generate", suggestion=None)
        try:
            suggestion = await self._call(lambda: self._service.generate(context, resolved))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._fail(token, "generate", GENERATE_ERROR_MESSAGE, exc)
            return self._state
        if self._is_stale(token, "generate"):
            return self._state
        self._state = replace(self._state, is_loading=False, error=None, suggestion=suggestion)
        self._publish(AssistantRequestCompleted(token=token, kind="generate", text=suggestion))
        return self._state

    async def search(self, query: str) -> AssistantState:
        """Run a research query; blank queries are ignored."""

        if not query.strip():
            return self._state
        token = self._begin("search", search_results=())
        try:
            result = await self._call(lambda: self._service.search(query))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._fail(token, "search", SEARCH_ERROR_MESSAGE, exc)
            return self._state
        if self._is_stale(token, "search"):
            return self._state
        self._state = replace(
            self._state,
            is_loading=False,
            error=None,
            suggestion=result.text,
            search_results=tuple(result.sources),
        )
        self._publish(AssistantRequestCompleted(token=token, kind="search", text=result.text))
        return self._state

    def take_suggestion(self) -> str | None:
        """Return the pending suggestion and clear it (used when it is applied)."""

        suggestion = self._state.suggestion
        self._state = replace(self._state, is_loading=False, error=None, suggestion=None)
        return suggestion

    def dismiss(self) -> None:
        self._state = replace(self._state, suggestion=None, error=None)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _begin(self, kind: str, **resets: object) -> int:
        token = next(self._tokens)
        self._latest_token = token
        self._state = replace(self._state, is_loading=True, error=None, **resets)
        LOGGER.debug("Assistant %s request started (token=%d)", kind, token)
        self._publish(AssistantRequestStarted(token=token, kind=kind))
        return token

    def _fail(self, token: int, kind: str, message: str, exc: BaseException) -> None:
        if self._is_stale(token, kind):
            return
        LOGGER.warning("Assistant %s request failed (token=%d): %s", kind, token, exc, exc_info=True)
        self._state = replace(self._state, is_loading=False, error=message, suggestion=None)
        self._publish(AssistantRequestFailed(token=token, kind=kind, error=message))

    def _is_stale(self, token: int, kind: str) -> bool:
        if token == self._latest_token:
            return False
        LOGGER.debug(
            "Discarding stale assistant %s response (token=%d, latest=%d)",
            kind,
            token,
            self._latest_token,
        )
        return True

    async def _call(self, factory: Callable[[], Awaitable[T]]) -> T:
        async for attempt in self._retrying():
            with attempt:
                return await factory()
        raise AssistantUnavailableError("assistant retry loop exited without a result")  # pragma: no cover

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._retry.max_attempts)),
            wait=wait_exponential(
                multiplier=self._retry.min_seconds,
                max=self._retry.max_seconds,
            ),
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
        )

    def _publish(self, event: Event) -> None:
        if self._bus is not None:
            self._bus.publish(event)


__all__ = [
    "AssistantController",
    "AssistantState",
    "AssistantTask",
    "AssistantUnavailableError",
    "GENERATE_ERROR_MESSAGE",
    "ResearchResult",
    "RetryPolicy",
    "SEARCH_ERROR_MESSAGE",
    "SearchSource",
    "WritingAssistant",
]
