"""Bounded in-memory protocol log.

Each protocol client keeps the most recent entries for display in a console or
UI and mirrors every entry to its module logger. Other components follow a
client's log by subscribing a callback; the client never holds a reference back.
"""

from __future__ import annotations

__all__ = ["LogBuffer", "LogEntry", "LogLevel"]

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum


class LogLevel(Enum):
    SENT = "sent"
    RECEIVED = "received"
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"


_LOGGING_LEVELS = {
    LogLevel.SENT: logging.DEBUG,
    LogLevel.RECEIVED: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.DEBUG: logging.DEBUG,
}

_MARKERS = {
    LogLevel.SENT: "→ ",
    LogLevel.RECEIVED: "← ",
    LogLevel.SUCCESS: "✅ ",
    LogLevel.ERROR: "❌ ",
}


@dataclass(frozen=True)
class LogEntry:
    level: LogLevel
    message: str
    timestamp: float = field(default_factory=time.time)


LogSubscriber = Callable[[LogEntry], None]


class LogBuffer:
    """Ring buffer of log entries, oldest evicted first."""

    def __init__(self, maxlen: int = 200, logger: logging.Logger | None = None, prefix: str = "") -> None:
        """Initialize log buffer.

        Args:
            maxlen: Maximum number of retained entries
            logger: Logger that receives a copy of every entry
            prefix: Prepended to each message, e.g. "[AutoShare] "
        """
        self._entries: deque[LogEntry] = deque(maxlen=maxlen)
        self._logger = logger
        self._prefix = prefix
        self._subscribers: list[LogSubscriber] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def add(self, level: LogLevel, message: str, mirror: bool = True) -> LogEntry:
        """Append an entry and notify subscribers.

        Args:
            level: Entry level
            message: Entry text, the prefix is prepended
            mirror: Also write to the logger; False for entries another buffer already logged
        """
        entry = LogEntry(level, f"{self._prefix}{message}")
        self._entries.append(entry)

        if mirror and self._logger is not None:
            self._logger.log(_LOGGING_LEVELS[level], f"{_MARKERS.get(level, '')}{entry.message}")

        for subscriber in list(self._subscribers):
            try:
                subscriber(entry)
            except Exception as e:
                if self._logger is not None:
                    self._logger.debug(f"Log subscriber failed: {e}")
        return entry

    def subscribe(self, callback: LogSubscriber) -> Callable[[], None]:
        """Register a callback for new entries.

        Returns:
            Callable that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def clear(self) -> None:
        self._entries.clear()

    # Convenience shorthands
    def sent(self, message: str) -> LogEntry:
        return self.add(LogLevel.SENT, message)

    def received(self, message: str) -> LogEntry:
        return self.add(LogLevel.RECEIVED, message)

    def info(self, message: str) -> LogEntry:
        return self.add(LogLevel.INFO, message)

    def success(self, message: str) -> LogEntry:
        return self.add(LogLevel.SUCCESS, message)

    def warning(self, message: str) -> LogEntry:
        return self.add(LogLevel.WARNING, message)

    def error(self, message: str) -> LogEntry:
        return self.add(LogLevel.ERROR, message)

    def debug(self, message: str) -> LogEntry:
        return self.add(LogLevel.DEBUG, message)
