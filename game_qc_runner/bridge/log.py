"""Bounded message log with sequence-number marks."""

import time
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from game_qc_runner.bridge.models import Direction, LogEntry

DEFAULT_CAPACITY = 2000


@dataclass(frozen=True, kw_only=True)
class LogMark:
    """Boundary in a message log: only entries with a larger seq are new."""

    after_seq: int

    def admits(self, entry: LogEntry) -> bool:
        return entry.seq > self.after_seq


@dataclass(kw_only=True)
class MessageLog:
    """Ordered, bounded log of harness messages owned by one harness.

    Sequence numbers keep increasing across ``clear`` so a mark taken before a
    reload can never admit a stale entry, whatever the clock resolution.
    """

    capacity: int = DEFAULT_CAPACITY
    _entries: deque[LogEntry] = field(init=False, repr=False)
    _next_seq: int = field(default=1, init=False)

    def __post_init__(self) -> None:
        self._entries = deque(maxlen=self.capacity)

    def append(self, direction: Direction, msg: Mapping[str, Any]) -> LogEntry:
        entry = LogEntry(
            seq=self._next_seq,
            direction=direction,
            msg=dict(msg),
            at_ms=time.monotonic() * 1000,
        )
        self._next_seq += 1
        self._entries.append(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> Sequence[LogEntry]:
        return tuple(self._entries)

    def mark(self) -> LogMark:
        return LogMark(after_seq=self._next_seq - 1)
