"""In-process harness hosting a simulated game."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from game_qc_runner.bridge.base import DriverCall, Harness
from game_qc_runner.bridge.log import DEFAULT_CAPACITY, MessageLog
from game_qc_runner.bridge.models import (
    GAME_TO_HUB,
    HUB_TO_GAME,
    HarnessState,
    LogEntry,
)

type Emit = Callable[[Mapping[str, Any]], LogEntry]


class SimulatedGame(ABC):
    """Python stand-in for a build loaded into an ``InMemoryHarness``."""

    @abstractmethod
    async def on_message(self, msg: Mapping[str, Any], emit: Emit) -> None:
        """React to a hub message, emitting game messages through ``emit``."""

    def state(self) -> HarnessState:
        return HarnessState()

    def reset_spy(self) -> None:
        return None

    async def call(self, call: DriverCall, emit: Emit) -> None:
        return None


@dataclass(kw_only=True)
class InMemoryHarness(Harness):
    """Harness whose frame is a ``SimulatedGame`` running on the event loop.

    Hub messages are delivered to the game asynchronously, like
    ``postMessage`` between frames.
    """

    game: SimulatedGame | None = None
    capacity: int = DEFAULT_CAPACITY
    loaded_urls: list[str] = field(default_factory=list)
    _log: MessageLog = field(init=False, repr=False)
    _tasks: set[asyncio.Task[None]] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        self._log = MessageLog(capacity=self.capacity)

    def emit(self, msg: Mapping[str, Any]) -> LogEntry:
        """Log a message sent by the game to the hub."""
        return self._log.append(GAME_TO_HUB, msg)

    async def load_game(self, url: str) -> None:
        self.loaded_urls.append(url)

    async def post_message(self, msg: Mapping[str, Any]) -> None:
        self._log.append(HUB_TO_GAME, msg)
        if self.game is None:
            return
        task = asyncio.create_task(self.game.on_message(msg, self.emit))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def read_logs(self) -> Sequence[LogEntry]:
        return self._log.entries()

    async def last_seq(self) -> int:
        return self._log.mark().after_seq

    async def clear_logs(self) -> None:
        self._log.clear()

    async def probe(self) -> HarnessState:
        return self.game.state() if self.game is not None else HarnessState()

    async def reset_spy(self) -> None:
        if self.game is not None:
            self.game.reset_spy()

    async def drive(self, calls: Sequence[DriverCall]) -> None:
        if self.game is None:
            return
        for call in calls:
            await self.game.call(call, self.emit)

    async def dump_artifacts(self) -> Mapping[str, Any]:
        return {
            "logs": [e.model_dump(mode="json", by_alias=True) for e in self._log.entries()],
            "meta": {"loadedUrls": list(self.loaded_urls)},
        }

    async def drain(self) -> None:
        """Wait for pending game reactions; used to settle tests."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks))
