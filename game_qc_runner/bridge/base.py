"""Abstract base class for harness pages hosting a game build."""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from game_qc_runner.bridge.models import HarnessState, LogEntry


@dataclass(frozen=True, kw_only=True)
class DriverCall:
    """One call into the game's test driver hook (``__irukaTest``)."""

    method: str
    args: Sequence[Any] = field(default_factory=tuple)


class Harness(ABC):
    """Page that hosts a candidate build in an isolated frame.

    Implementations own the message log. Every logged message carries a
    sequence number that keeps increasing for the lifetime of the harness,
    including across ``clear_logs``.
    """

    @abstractmethod
    async def load_game(self, url: str) -> None:
        """Render the build at ``url`` inside the isolated frame."""

    @abstractmethod
    async def post_message(self, msg: Mapping[str, Any]) -> None:
        """Send a message from the hub into the game frame."""

    @abstractmethod
    async def read_logs(self) -> Sequence[LogEntry]:
        """Return the current log, oldest first."""

    @abstractmethod
    async def last_seq(self) -> int:
        """Return the sequence number of the newest message ever logged."""

    @abstractmethod
    async def clear_logs(self) -> None:
        """Drop buffered log entries without resetting sequence numbers."""

    @abstractmethod
    async def probe(self) -> HarnessState:
        """Inspect the test hooks exposed by the game."""

    @abstractmethod
    async def reset_spy(self) -> None:
        """Reset the game's spy counters."""

    @abstractmethod
    async def drive(self, calls: Sequence[DriverCall]) -> None:
        """Invoke test driver methods; calls the driver lacks are skipped."""

    @abstractmethod
    async def dump_artifacts(self) -> Mapping[str, Any]:
        """Return the full log and harness metadata for post-hoc inspection."""
