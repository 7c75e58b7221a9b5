"""
Bounded in-memory log of recent events, oldest evicted first.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque

from models import LogEntry, LogSeverity
from utils import RetroForgeError, get_logger

logger = get_logger("retroforge.events")

_LEVELS = {
    LogSeverity.DEBUG: logging.DEBUG,
    LogSeverity.INFO: logging.INFO,
    LogSeverity.NOTICE: logging.INFO,
    LogSeverity.WARNING: logging.WARNING,
    LogSeverity.CRITICAL: logging.CRITICAL,
}


class LogRing:
    def __init__(self, capacity: int = 40) -> None:
        if capacity <= 0:
            raise RetroForgeError(f"log ring capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, message: str, severity: LogSeverity = LogSeverity.INFO) -> LogEntry:
        entry = LogEntry(message=message, created_at=time.time(), severity=severity)
        with self._lock:
            self._entries.append(entry)
        logger.log(_LEVELS[severity], "%s", message)
        return entry

    def entries(self) -> list[LogEntry]:
        """Oldest first."""
        with self._lock:
            return list(self._entries)

    def latest(self, n: int) -> list[LogEntry]:
        if n <= 0:
            return []
        with self._lock:
            return list(self._entries)[-n:]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
