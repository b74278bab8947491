"""
Agent Status Log
----------------
Bounded, in-memory record of agent decisions shown to operators.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from autocfo.core.logging import log

DEFAULT_CAPACITY = 50


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# loguru level for each severity
_LOG_LEVELS = {
    Severity.INFO: "INFO",
    Severity.SUCCESS: "SUCCESS",
    Severity.WARNING: "WARNING",
    Severity.ERROR: "ERROR",
}


@dataclass(frozen=True)
class StatusEntry:
    """One status log line."""
    message: str
    severity: Severity = Severity.INFO
    action: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)


class StatusLog:
    """
    FIFO ring of the most recent status entries.

    Appending beyond capacity evicts the oldest entry. Each entry is also
    mirrored to the process logger.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("Status log capacity must be at least 1")
        self.capacity = capacity
        self._entries: deque[StatusEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def add(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        action: str | None = None,
    ) -> StatusEntry:
        entry = StatusEntry(message=message, severity=Severity(severity), action=action)
        with self._lock:
            self._entries.append(entry)
        log.log(_LOG_LEVELS[entry.severity], "[{}] {}", action or "agent", message)
        return entry

    def entries(self) -> list[StatusEntry]:
        """Copy of the log, oldest first."""
        with self._lock:
            return list(self._entries)

    def count(self, severity: Severity | None = None) -> int:
        with self._lock:
            if severity is None:
                return len(self._entries)
            return sum(1 for e in self._entries if e.severity == severity)

    def __len__(self) -> int:
        return self.count()
