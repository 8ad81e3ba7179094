"""Tests for the automatic check evaluators."""

from collections.abc import Mapping, Sequence
from typing import Any

from game_qc_runner.bridge.log import MessageLog
from game_qc_runner.bridge.models import GAME_TO_HUB, HUB_TO_GAME, HarnessState, LogEntry
from game_qc_runner.checks.context import EvaluationContext
from game_qc_runner.checks.evaluators import (
    ASSET_ERROR,
    CAP_STATS_REQUIRED,
    CAPABILITIES_PRESENT,
    COMPLETE_IDEMPOTENT,
    COMPLETE_PRESENT,
    COMPLETE_SCHEMA,
    E2E_HOOKS,
    INIT_READY,
    READY_LATENCY,
    STATS_COUNTS,
    evaluate_capabilities,
    evaluate_complete,
    evaluate_game_errors,
    evaluate_handshake,
    evaluate_hooks,
    evaluate_idempotency,
    evaluate_stats,
    run_evaluators,
)
from game_qc_runner.models.check import Check
from game_qc_runner.testing.games import VALID_COMPLETE_PAYLOAD

ALL_METHODS = {
    m: True for m in ("setTotal", "makeWrong", "makeCorrect", "useHint", "startQ", "finishQ", "finish")
}
GOOD_SPY = {
    "stats:recordWrong": 2,
    "stats:recordCorrect": 3,
    "stats:finalizeAttempt": 1,
    "stats:addHint": 1,
    "sdk:sendEvent": 4,
}


def entry(seq: int, direction: str, msg: Mapping[str, Any], at_ms: float = 0.0) -> LogEntry:
    return LogEntry(seq=seq, direction=direction, msg=msg, at_ms=at_ms)


def ready(capabilities: Any = ("stats", "hint"), at_ms: float = 100.0) -> list[LogEntry]:
    caps = list(capabilities) if isinstance(capabilities, tuple) else capabilities
    return [
        entry(1, HUB_TO_GAME, {"type": "INIT"}, at_ms=0.0),
        entry(2, GAME_TO_HUB, {"type": "READY", "payload": {"capabilities": caps}}, at_ms=at_ms),
    ]


def by_id(checks: Sequence[Check]) -> dict[str, Check]:
    return {c.id: c for c in checks}


class TestHandshake:
    """Tests for evaluate_handshake."""

    def test_ready_within_threshold(self) -> None:
        """READY answers INIT quickly."""
        checks = by_id(evaluate_handshake(EvaluationContext(entries=ready(at_ms=250.0))).checks)

        assert checks[INIT_READY].ok
        assert checks[READY_LATENCY].ok
        assert checks[READY_LATENCY].details == {"initToReadyMs": 250.0}

    def test_slow_ready_is_only_a_warning(self) -> None:
        """A slow READY fails the latency warning but not the handshake."""
        result = evaluate_handshake(EvaluationContext(entries=ready(at_ms=5000.0)))
        checks = by_id(result.checks)

        assert checks[INIT_READY].ok
        assert not checks[READY_LATENCY].ok
        assert checks[READY_LATENCY].severity == "warning"

    def test_missing_ready_fails_blocker(self) -> None:
        """No READY at all fails INIT_READY."""
        result = evaluate_handshake(
            EvaluationContext(entries=[entry(1, HUB_TO_GAME, {"type": "INIT"})])
        )

        assert result.checks == [
            Check(
                id=INIT_READY,
                severity="blocker",
                ok=False,
                message="Game never answered INIT with READY",
            )
        ]


class TestCapabilities:
    """Tests for evaluate_capabilities."""

    def test_stats_declared(self) -> None:
        """Declared capabilities including stats pass both checks."""
        result = evaluate_capabilities(EvaluationContext(entries=ready(["Stats", "hints"])))
        checks = by_id(result.checks)

        assert checks[CAPABILITIES_PRESENT].ok
        assert checks[CAP_STATS_REQUIRED].ok
        assert result.artifacts["readyCaps"]["normalized"] == ["stats", "hint"]

    def test_capabilities_missing(self) -> None:
        """A non-array capabilities field fails presence."""
        result = evaluate_capabilities(EvaluationContext(entries=ready("stats")))
        checks = by_id(result.checks)

        assert not checks[CAPABILITIES_PRESENT].ok
        assert CAP_STATS_REQUIRED not in checks

    def test_stats_missing(self) -> None:
        """Capabilities without stats fail the stats requirement."""
        result = evaluate_capabilities(EvaluationContext(entries=ready(["hint"])))
        checks = by_id(result.checks)

        assert checks[CAPABILITIES_PRESENT].ok
        assert not checks[CAP_STATS_REQUIRED].ok
        assert checks[CAP_STATS_REQUIRED].details == {"normalizedCaps": ["hint"]}


class TestHooks:
    """Tests for evaluate_hooks."""

    def test_missing_hooks(self) -> None:
        """Missing spy and driver fail E2E_HOOKS naming both."""
        result = evaluate_hooks(EvaluationContext(entries=ready(), state=HarnessState()))

        assert result.checks[0].id == E2E_HOOKS
        assert not result.checks[0].ok
        assert result.checks[0].message == "Missing __irukaSpy/__irukaTest"

    def test_missing_driver_methods_warn(self) -> None:
        """Missing driver methods, including claimed ones, become warnings."""
        state = HarnessState(
            spy_present=True,
            driver_present=True,
            driver_methods={**ALL_METHODS, "finish": False, "useHint": False},
        )

        result = evaluate_hooks(EvaluationContext(entries=ready(), state=state))

        assert result.checks[0].ok
        assert list(result.warnings) == [
            "Driver missing: __irukaTest.finish()",
            "Claimed 'hint' but driver missing: __irukaTest.useHint(n)",
        ]


class TestStats:
    """Tests for evaluate_stats."""

    def test_expected_counts_pass(self) -> None:
        """Two wrong, three correct and a finalize pass."""
        state = HarnessState(spy_present=True, driver_present=True, spy_summary=GOOD_SPY)

        result = evaluate_stats(EvaluationContext(entries=ready(), state=state))

        assert result.checks[0].ok
        assert list(result.warnings) == []

    def test_wrong_counts_fail(self) -> None:
        """Miscounted answers fail STATS_COUNTS with the observed counters."""
        spy = {**GOOD_SPY, "stats:recordCorrect": 2}
        state = HarnessState(spy_present=True, driver_present=True, spy_summary=spy)

        result = evaluate_stats(EvaluationContext(entries=ready(), state=state))

        assert result.checks[0].id == STATS_COUNTS
        assert not result.checks[0].ok
        assert result.checks[0].details == spy

    def test_claimed_but_unobserved_features_warn(self) -> None:
        """Claimed hint/timer and a missing sendEvent produce warnings."""
        spy = {"stats:recordWrong": 2, "stats:recordCorrect": 3, "stats:finalizeAttempt": 1}
        state = HarnessState(spy_present=True, driver_present=True, spy_summary=spy)

        result = evaluate_stats(
            EvaluationContext(entries=ready(["stats", "hint", "timer"]), state=state)
        )

        assert list(result.warnings) == [
            "Claimed 'hint' but spy did not observe stats:addHint.",
            "Claimed 'timer' but spy did not observe stats:startQuestionTimer.",
            "Claimed 'timer' but spy did not observe stats:finishQuestionTimer.",
            "Spy did not observe sdk:sendEvent (check SDK hook in createGameSdk).",
        ]


class TestComplete:
    """Tests for evaluate_complete and evaluate_idempotency."""

    def test_missing_complete(self) -> None:
        """No COMPLETE fails presence and skips idempotency."""
        ctx = EvaluationContext(entries=ready())

        assert not evaluate_complete(ctx).checks[0].ok
        assert list(evaluate_idempotency(ctx).checks) == []

    def test_valid_complete(self) -> None:
        """A valid COMPLETE passes presence and schema."""
        complete = entry(3, GAME_TO_HUB, {"type": "COMPLETE", "payload": VALID_COMPLETE_PAYLOAD})

        result = evaluate_complete(EvaluationContext(entries=[*ready(), complete]))
        checks = by_id(result.checks)

        assert checks[COMPLETE_PRESENT].ok
        assert checks[COMPLETE_SCHEMA].ok
        assert result.artifacts["completePayload"]["timeMs"] == 42_000

    def test_invalid_complete_schema(self) -> None:
        """Schema errors are reported in the check details."""
        complete = entry(3, GAME_TO_HUB, {"type": "COMPLETE", "payload": {"timeMs": -5}})

        checks = by_id(evaluate_complete(EvaluationContext(entries=[complete])).checks)

        assert not checks[COMPLETE_SCHEMA].ok
        assert checks[COMPLETE_SCHEMA].details["errors"] == ["COMPLETE.payload.timeMs must be >= 0"]

    def test_retries_with_same_attempt_id_are_idempotent(self) -> None:
        """Re-sent COMPLETE messages sharing an attempt id pass."""
        completes = [
            entry(3 + i, GAME_TO_HUB, {"type": "COMPLETE", "payload": {"attemptId": "a1"}})
            for i in range(2)
        ]

        check = evaluate_idempotency(EvaluationContext(entries=completes)).checks[0]

        assert check.id == COMPLETE_IDEMPOTENT
        assert check.ok
        assert check.details["duplicateAttemptId"] is True

    def test_retries_with_new_attempt_id_fail(self) -> None:
        """A second attempt id means the result would be counted twice."""
        completes = [
            entry(3, GAME_TO_HUB, {"type": "COMPLETE", "payload": {"attemptId": "a1"}}),
            entry(4, GAME_TO_HUB, {"type": "COMPLETE", "payload": {"attemptId": "a2"}}),
        ]

        check = evaluate_idempotency(EvaluationContext(entries=completes)).checks[0]

        assert not check.ok
        assert check.details["attemptIds"] == ["a1", "a2"]


class TestGameErrors:
    """Tests for evaluate_game_errors."""

    def test_no_errors(self) -> None:
        """A quiet run passes the asset check."""
        check = evaluate_game_errors(EvaluationContext(entries=ready())).checks[0]

        assert check.id == ASSET_ERROR
        assert check.severity == "warning"
        assert check.ok
        assert check.details is None

    def test_error_messages_are_reported(self) -> None:
        """ERROR messages from the game fail the check and keep their payloads."""
        error = entry(
            3, GAME_TO_HUB, {"type": "ERROR", "payload": {"asset": "bg.png", "status": 404}}
        )

        check = evaluate_game_errors(EvaluationContext(entries=[*ready(), error])).checks[0]

        assert not check.ok
        assert check.message == "Game reported 1 error(s)"
        assert check.details["errors"] == [{"asset": "bg.png", "status": 404}]

    def test_hub_errors_are_ignored(self) -> None:
        """Only messages sent by the game count."""
        error = entry(3, HUB_TO_GAME, {"type": "ERROR", "payload": "nope"})

        assert evaluate_game_errors(EvaluationContext(entries=[error])).checks[0].ok


def test_run_evaluators_keeps_registration_order() -> None:
    """Checks come out in evaluator order."""
    log = MessageLog()
    log.append(HUB_TO_GAME, {"type": "INIT"})
    log.append(GAME_TO_HUB, {"type": "READY", "payload": {"capabilities": ["stats"]}})
    log.append(GAME_TO_HUB, {"type": "COMPLETE", "payload": {**VALID_COMPLETE_PAYLOAD, "attemptId": "a"}})
    state = HarnessState(
        spy_present=True, driver_present=True, driver_methods=ALL_METHODS, spy_summary=GOOD_SPY
    )

    result = run_evaluators(EvaluationContext(entries=log.entries(), state=state))

    assert [c.id for c in result.checks] == [
        INIT_READY,
        READY_LATENCY,
        CAPABILITIES_PRESENT,
        CAP_STATS_REQUIRED,
        E2E_HOOKS,
        STATS_COUNTS,
        COMPLETE_PRESENT,
        COMPLETE_SCHEMA,
        COMPLETE_IDEMPOTENT,
        ASSET_ERROR,
    ]
    assert all(c.ok for c in result.checks)
