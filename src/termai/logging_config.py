import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from termai.pubsub import Broker, EventType


@dataclass(frozen=True)
class LogEntry:
    time: str
    level: str
    name: str
    message: str


@runtime_checkable
class LogConsumer(Protocol):
    def register(self, level: str) -> None: ...
    def describe(self, level: str) -> str: ...


class ConsoleLogConsumer:
    """Writes to stderr so log lines never mix with the streamed reply on stdout."""

    def register(self, level: str) -> None:
        logger.add(
            sys.stderr,
            level=level,
            format="<dim>{time:HH:mm:ss}</dim> <level>{level:<7}</level> <cyan>{name}</cyan> {message}",
        )

    def describe(self, level: str) -> str:
        return f"console ({level})"


class FileLogConsumer:
    def __init__(self, path: str = ".termai/termai.log", rotation: str = "10 MB", retention: int = 3):
        self._path = Path(path)
        self._rotation = rotation
        self._retention = retention

    def register(self, level: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self._path),
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}",
            rotation=self._rotation,
            retention=self._retention,
            encoding="utf-8",
        )

    def describe(self, level: str) -> str:
        return f"file ({self._path}, {level})"


class BrokerLogConsumer:
    """Publishes every record as a ``LogEntry`` so the UI can show a live log view."""

    def __init__(self, broker: Broker[LogEntry]):
        self._broker = broker

    def register(self, level: str) -> None:
        # The broker logs dropped events itself; feeding those back would recurse.
        logger.add(self._publish, level=level, format="{message}", filter=lambda r: r["name"] != "termai.pubsub")

    def describe(self, level: str) -> str:
        return f"broker ({level})"

    def _publish(self, message: Any) -> None:
        record = message.record
        self._broker.publish(EventType.CREATED, LogEntry(
            time=record["time"].isoformat(timespec="milliseconds"),
            level=record["level"].name,
            name=record["name"] or "",
            message=record["message"],
        ))


DEFAULT_LOG_CONSUMERS: list[dict[str, Any]] = [
    {"type": "file", "path": ".termai/termai.log"},
    {"type": "broker"},
]


def _build_consumer(config: dict[str, Any], log_broker: Broker[LogEntry] | None) -> LogConsumer | None:
    sink_type = config.get("type", "")
    if sink_type == "console":
        return ConsoleLogConsumer()
    if sink_type == "file":
        options = {k: config[k] for k in ("path", "rotation", "retention") if k in config}
        return FileLogConsumer(**options)
    if sink_type == "broker":
        if log_broker is None:
            logger.warning("Skipping broker log consumer: no log broker available")
            return None
        return BrokerLogConsumer(log_broker)
    logger.warning(f"Unknown log consumer type: {sink_type!r}")
    return None


def setup_logging(
    level: str = "INFO",
    consumers: list[dict[str, Any]] | None = None,
    log_broker: Broker[LogEntry] | None = None,
) -> list[str]:
    """Replace loguru's default sink with the configured consumers.

    Each consumer entry is ``{"type": "console" | "file" | "broker", ...}`` with an
    optional per-consumer ``level``. Returns a description of each registered consumer.
    """
    logger.remove()

    descriptions: list[str] = []
    for config in DEFAULT_LOG_CONSUMERS if consumers is None else consumers:
        consumer = _build_consumer(config, log_broker)
        if consumer is None:
            continue
        sink_level = config.get("level", level)
        consumer.register(sink_level)
        descriptions.append(consumer.describe(sink_level))
    return descriptions
