"""Inputs and outputs shared by all check evaluators."""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from game_qc_runner.bridge.models import GAME_TO_HUB, HUB_TO_GAME, HarnessState, LogEntry
from game_qc_runner.checks.capabilities import Capabilities, normalize_capabilities
from game_qc_runner.models.check import Check

DEFAULT_READY_LATENCY_MS = 3000.0


@dataclass(frozen=True, kw_only=True)
class EvaluationContext:
    """Snapshot of one run's harness log and game hooks.

    ``entries`` holds only messages logged after the bridge mark, oldest first.
    """

    entries: Sequence[LogEntry]
    state: HarnessState | None = None
    ready_latency_ms: float = DEFAULT_READY_LATENCY_MS

    def game_messages(self, msg_type: str) -> Sequence[LogEntry]:
        return [e for e in self.entries if e.direction == GAME_TO_HUB and e.type == msg_type]

    def hub_messages(self, msg_type: str) -> Sequence[LogEntry]:
        return [e for e in self.entries if e.direction == HUB_TO_GAME and e.type == msg_type]

    def last_game_message(self, msg_type: str) -> LogEntry | None:
        messages = self.game_messages(msg_type)
        return messages[-1] if messages else None

    def capabilities(self) -> Capabilities:
        """Capabilities announced by the latest READY message."""
        ready = self.last_game_message("READY")
        payload = ready.payload if ready is not None else None
        raw = payload.get("capabilities") if isinstance(payload, Mapping) else None
        return normalize_capabilities(raw)


@dataclass(frozen=True, kw_only=True)
class Evaluation:
    """Checks, warnings and debug artifacts produced by one evaluator."""

    checks: Sequence[Check] = field(default_factory=tuple)
    warnings: Sequence[str] = field(default_factory=tuple)
    artifacts: Mapping[str, Any] = field(default_factory=dict)


type Evaluator = Callable[[EvaluationContext], Evaluation]
