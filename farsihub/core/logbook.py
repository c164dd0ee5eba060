"""
Cycle log for the admin panel.
"""
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


class Severity(Enum):
    INFO = 'info'
    SUCCESS = 'success'
    WARNING = 'warning'
    ERROR = 'error'


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class CycleLogEntry:
    id: str
    timestamp: str
    message: str
    severity: Severity


class CycleLog:
    """
    Bounded, newest-first list of pipeline progress messages.

    Every entry is also passed to the standard logging module.
    """
    def __init__(self, capacity: int = DEFAULT_CAPACITY,
                 clock: Optional[Callable[[], datetime]] = None):
        self.capacity = capacity
        self._entries = deque(maxlen=capacity)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def log(self, message: str, severity: Severity = Severity.INFO) -> CycleLogEntry:
        """
        Record a message.

        Args:
            message: Text shown in the admin panel
            severity: Severity, or its string value ('info', 'success', ...);
                unknown values are recorded as INFO

        Returns:
            The new entry
        """
        if not isinstance(severity, Severity):
            try:
                severity = Severity(severity)
            except (TypeError, ValueError):
                severity = Severity.INFO
        entry = CycleLogEntry(
            id=uuid.uuid4().hex[:9],
            timestamp=self._clock().isoformat(),
            message=message,
            severity=severity,
        )
        # appendleft on a bounded deque drops the oldest entry from the right
        self._entries.appendleft(entry)
        logger.log(_LEVELS[severity], message)
        return entry

    def entries(self, severity: Optional[Severity] = None) -> List[CycleLogEntry]:
        """Entries, newest first, optionally filtered by severity."""
        if severity is None:
            return list(self._entries)
        return [entry for entry in self._entries if entry.severity is severity]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
