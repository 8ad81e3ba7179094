"""Bridge between the test driver and the harness page."""

import asyncio
import logging
import secrets
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from game_qc_runner.bridge.base import Harness
from game_qc_runner.bridge.log import LogMark
from game_qc_runner.bridge.models import GAME_TO_HUB, LogEntry
from game_qc_runner.url import ensure_e2e_param, with_cache_bust

log = logging.getLogger(__name__)

DEFAULT_WAIT_TIMEOUT_MS = 20_000
DEFAULT_POLL_INTERVAL = 0.05


class BridgeTimeoutError(TimeoutError):
    """Raised when the harness does not observe an expected message in time."""

    def __init__(self, msg_type: str, timeout_ms: float) -> None:
        super().__init__(
            f"Timed out after {timeout_ms:g}ms waiting for {msg_type} from game"
        )
        self.msg_type = msg_type
        self.timeout_ms = timeout_ms


@dataclass(kw_only=True)
class HostPageBridge:
    """Loads builds into a harness and waits for game messages.

    Matches are only accepted after the current mark, so a message left over
    from a previous load of the same page never satisfies a wait.
    """

    harness: Harness
    poll_interval: float = DEFAULT_POLL_INTERVAL
    _mark: LogMark = field(default_factory=lambda: LogMark(after_seq=0), init=False)

    @property
    def mark(self) -> LogMark:
        return self._mark

    async def set_mark(self) -> LogMark:
        """Move the boundary so only messages logged from now on count."""
        self._mark = LogMark(after_seq=await self.harness.last_seq())
        return self._mark

    async def load(self, build_url: str) -> str:
        """Load a fresh instance of the build and return the URL used."""
        url = with_cache_bust(ensure_e2e_param(build_url), secrets.token_hex(8))
        await self.harness.clear_logs()
        await self.set_mark()
        log.info("Loading build into harness: %s", url)
        await self.harness.load_game(url)
        return url

    async def send_init(self, payload: Mapping[str, Any] | None = None) -> None:
        """Dispatch the handshake message into the game frame."""
        await self.harness.post_message({"type": "INIT", "payload": dict(payload or {})})

    async def logged_since_mark(self) -> Sequence[LogEntry]:
        """Messages in both directions logged after the mark."""
        return [entry for entry in await self.harness.read_logs() if self._mark.admits(entry)]

    async def new_game_messages(self, msg_type: str | None = None) -> Sequence[LogEntry]:
        """Game messages logged after the mark, oldest first."""
        return [
            entry
            for entry in await self.harness.read_logs()
            if self._mark.admits(entry)
            and entry.direction == GAME_TO_HUB
            and (msg_type is None or entry.type == msg_type)
        ]

    async def wait_for_message_type(
        self,
        msg_type: str,
        timeout_ms: float = DEFAULT_WAIT_TIMEOUT_MS,
    ) -> LogEntry:
        """Wait for the first game message of ``msg_type`` after the mark.

        Raises:
            BridgeTimeoutError: If no such message appears before the deadline

        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000

        while loop.time() < deadline:
            if matches := await self.new_game_messages(msg_type):
                return matches[0]
            await asyncio.sleep(min(self.poll_interval, max(0.0, deadline - loop.time())))

        raise BridgeTimeoutError(msg_type, timeout_ms)

    async def last_game_message(self, msg_type: str) -> LogEntry | None:
        """Newest game message of ``msg_type`` after the mark."""
        matches = await self.new_game_messages(msg_type)
        return matches[-1] if matches else None

    async def dump_artifacts(self) -> Mapping[str, Any]:
        """Full log and harness metadata; only worth collecting on failure."""
        return await self.harness.dump_artifacts()
