from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Union

from loguru import logger

from termai.errors import ProviderError
from termai.models import TokenUsage, ToolCall


@dataclass(frozen=True)
class ProviderResponse:
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class ContentStart:
    pass


@dataclass(frozen=True)
class ContentDelta:
    text: str


@dataclass(frozen=True)
class ThinkingDelta:
    text: str


@dataclass(frozen=True)
class ContentStop:
    pass


@dataclass(frozen=True)
class Complete:
    response: ProviderResponse


@dataclass(frozen=True)
class Error:
    error: BaseException


ProviderEvent = Union[ContentStart, ContentDelta, ThinkingDelta, ContentStop, Complete, Error]

Emit = Callable[[ProviderEvent], None]
Producer = Callable[[Emit], Awaitable[None]]

_PRODUCER_DONE = object()


def is_terminal(event: ProviderEvent) -> bool:
    return isinstance(event, (Complete, Error))


class EventStream:
    """Live sequence of provider events fed by a dedicated producer task.

    The sequence always ends with exactly one terminal event (``Complete`` or
    ``Error``). A producer that raises, is cancelled, or returns without
    emitting a terminal event is reported as an ``Error`` event.
    """

    def __init__(self, producer: Producer, *, name: str = "provider-stream"):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._terminal_emitted = False
        self._terminal_delivered = False
        self._task = asyncio.get_running_loop().create_task(self._run(producer), name=name)
        self._task.add_done_callback(lambda _: self._queue.put_nowait(_PRODUCER_DONE))

    def _emit(self, event: ProviderEvent) -> None:
        if self._terminal_emitted:
            logger.debug(f"Ignoring {type(event).__name__} emitted after the terminal event")
            return
        if is_terminal(event):
            self._terminal_emitted = True
        self._queue.put_nowait(event)

    async def _run(self, producer: Producer) -> None:
        try:
            await producer(self._emit)
        except asyncio.CancelledError:
            self._emit(Error(ProviderError("stream cancelled")))
            raise
        except Exception as ex:
            logger.debug(f"Provider stream failed: {type(ex).__name__}: {ex}")
            self._emit(Error(ex))
            return
        if not self._terminal_emitted:
            self._emit(Error(ProviderError("stream ended without a final response")))

    def cancel(self) -> None:
        """Stop the producer; consumers then receive an ``Error`` terminal event."""
        if not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        if self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> ProviderEvent:
        if self._terminal_delivered:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _PRODUCER_DONE:
            # Producer never got to run (cancelled before its first step).
            item = Error(ProviderError("stream cancelled"))
        if is_terminal(item):
            self._terminal_delivered = True
        return item
