from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")

DEFAULT_CAPACITY = 64

_CLOSED = object()


class EventType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class Event(Generic[T]):
    type: EventType
    payload: T


class Subscription(Generic[T]):
    """A subscriber's bounded event queue, consumed with ``async for``.

    Iteration ends once the subscription is closed and every event queued
    before closing has been consumed.
    """

    def __init__(self, capacity: int):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, capacity))
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def _offer(self, event: Event[T]) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The consumer notices the closed flag once it has drained the queue.
            pass

    async def get(self, timeout: float | None = None) -> Event[T] | None:
        """Next event, or None when the subscription is exhausted or the timeout expires."""
        try:
            return await asyncio.wait_for(self.__anext__(), timeout=timeout)
        except (StopAsyncIteration, asyncio.TimeoutError):
            return None

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> Event[T]:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class Broker(Generic[T]):
    """In-memory, best-effort publish/subscribe bus for one payload type."""

    def __init__(self, name: str = ""):
        self._name = name
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription[T]] = []

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(self, capacity: int = DEFAULT_CAPACITY) -> Subscription[T]:
        subscription: Subscription[T] = Subscription(capacity)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription[T]) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription._close()

    def publish(self, event_type: EventType, payload: T) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        if not subscriptions:
            return

        event = Event(type=event_type, payload=payload)
        for subscription in subscriptions:
            if not subscription._offer(event):
                logger.debug(f"Broker {self._name or '-'}: dropped {event_type.value} event for a full subscriber")

    def shutdown(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription._close()
