from __future__ import annotations

from collections import deque

from termai.logging_config import LogEntry
from termai.pubsub import Subscription


class LogBuffer:
    """Keeps the most recent log entries published on the app's log broker."""

    def __init__(self, capacity: int = 500):
        self._entries: deque[LogEntry] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    async def consume(self, subscription: Subscription[LogEntry]) -> None:
        async for event in subscription:
            self.add(event.payload)

    def recent(self, count: int) -> list[LogEntry]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def format_lines(self, count: int, *, line_prefix: str = "", level: str | None = None) -> list[str]:
        entries = list(self._entries)
        if level:
            entries = [e for e in entries if e.level == level.upper()]
        entries = entries[-count:] if count > 0 else []
        if not entries:
            return [f"{line_prefix}(no log entries)"]
        # time is ISO-8601; the clock part is enough on a terminal
        return [
            f"{line_prefix}{e.time[11:23]} {e.level:<7} {e.name}: {e.message}"
            for e in entries
        ]
