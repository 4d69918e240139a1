"""
Event sinks for human-visible notifications such as a completed scale.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import asdict, dataclass
from typing import Deque, Dict, List

logger = logging.getLogger(__name__)

NORMAL = "Normal"
WARNING = "Warning"


@dataclass(frozen=True)
class Event:
    key: str
    severity: str
    reason: str
    message: str
    timestamp: float

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class EventSink(ABC):
    @abstractmethod
    def emit(self, key: str, severity: str, reason: str, message: str) -> None:
        """Record an event. Implementations must not raise."""


class LoggingEventRecorder(EventSink):
    """Logs every event and keeps the most recent ones for inspection."""

    def __init__(self, capacity: int = 256) -> None:
        self._lock = threading.Lock()
        self._events: Deque[Event] = deque(maxlen=capacity)

    def emit(self, key: str, severity: str, reason: str, message: str) -> None:
        event = Event(key=key, severity=severity, reason=reason, message=message, timestamp=time.time())
        with self._lock:
            self._events.append(event)
        level = logging.WARNING if severity == WARNING else logging.INFO
        logger.log(level, "Event key=%s type=%s reason=%s message=%s", key, severity, reason, message)

    def recent(self, limit: int | None = None) -> List[Event]:
        with self._lock:
            events = list(self._events)
        return events[-limit:] if limit else events


__all__ = ["Event", "EventSink", "LoggingEventRecorder", "NORMAL", "WARNING"]
