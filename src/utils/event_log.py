"""
Append-only event stream shown to the operator.

Every stage of a campaign reports progress here. Events are never edited or removed;
callers that want a clean slate create a new EventLog.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable

from src.domain.models import LogEvent

logger = logging.getLogger(__name__)

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class EventLog:
    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._events: list[LogEvent] = []

    def log_event(self, level: str, message: str, symbol: str | None = None, step: str | None = None) -> LogEvent:
        level = str(level).upper()
        with self._lock:
            event = LogEvent(
                id=len(self._events) + 1,
                timestamp=self._clock(),
                message=message,
                level=level,
                symbol=symbol,
                step=step,
            )
            self._events.append(event)
        logger.log(_LEVELS.get(level, logging.INFO), message)
        return event

    def info(self, message: str, symbol: str | None = None, step: str | None = None) -> LogEvent:
        return self.log_event("INFO", message, symbol=symbol, step=step)

    def error(self, message: str, symbol: str | None = None, step: str | None = None) -> LogEvent:
        return self.log_event("ERROR", message, symbol=symbol, step=step)

    def since(self, after_id: int = 0, limit: int = 500) -> list[LogEvent]:
        """Events with id > after_id, oldest first."""
        with self._lock:
            start = max(int(after_id), 0)
            return self._events[start : start + int(limit)]

    def tail(self, limit: int = 200) -> list[LogEvent]:
        with self._lock:
            if limit <= 0:
                return []
            return self._events[-int(limit) :]

    def messages(self) -> list[str]:
        with self._lock:
            return [e.message for e in self._events]

    def rendered(self) -> list[str]:
        with self._lock:
            return [e.render() for e in self._events]

    @property
    def last_id(self) -> int:
        with self._lock:
            return len(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
