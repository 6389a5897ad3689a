"""In-memory rolling log of recent runs and webhook deliveries.

Debugging aid only: entries live in process memory and are lost on
restart. Newest entries come first.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

MAX_ENTRIES = 20


@dataclass
class RunLogEntry:
    """One run or webhook delivery."""

    kind: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    method: str | None = None
    payload: Any = None
    result: str | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.method is not None:
            data["method"] = self.method
        if self.payload is not None:
            data["payload"] = self.payload
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        if self.details:
            data["details"] = self.details
        return data


class RunLog:
    """Bounded newest-first log."""

    def __init__(self, max_entries: int = MAX_ENTRIES) -> None:
        self._entries: deque[RunLogEntry] = deque(maxlen=max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: RunLogEntry) -> RunLogEntry:
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> list[RunLogEntry]:
        """Get a snapshot of the entries, newest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()


_run_log = RunLog()


def get_run_log() -> RunLog:
    """Get the process-wide run log."""
    return _run_log
