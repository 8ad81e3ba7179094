"""Tests for the conformance suite run against simulated games."""

from collections.abc import Mapping
from typing import Any

import pytest

from game_qc_runner.aggregator import ResultAggregator
from game_qc_runner.bridge.base import DriverCall
from game_qc_runner.bridge.bridge import HostPageBridge
from game_qc_runner.bridge.memory import Emit, InMemoryHarness
from game_qc_runner.bridge.models import HarnessState
from game_qc_runner.checks.capabilities import normalize_capabilities
from game_qc_runner.checks.evaluators import (
    COMPLETE_IDEMPOTENT,
    COMPLETE_PRESENT,
    E2E_HOOKS,
    INFRA_HARNESS,
    INFRA_READY_TIMEOUT,
    INIT_READY,
    STATS_COUNTS,
)
from game_qc_runner.driver.suite import SuiteSettings, drive_script, run_suite
from game_qc_runner.models.check import Check
from game_qc_runner.testing.games import ScriptedGame

GAME_URL = "https://games.example.com/g/index.html"
FAST = SuiteSettings(ready_timeout_ms=200, complete_timeout_ms=200)


class BrokenDriverGame(ScriptedGame):
    """Game whose test driver throws on every call."""

    async def call(self, call: DriverCall, emit: Emit) -> None:
        raise RuntimeError(f"__irukaTest.{call.method} is not a function")


class ClosedPageHarness(InMemoryHarness):
    """Harness whose page goes away once the game has been driven."""

    async def probe(self) -> HarnessState:
        raise RuntimeError("Target page, context or browser has been closed")


class UnreachableHubHarness(InMemoryHarness):
    """Harness that cannot load anything or dump its log."""

    async def load_game(self, url: str) -> None:
        raise RuntimeError("net::ERR_CONNECTION_REFUSED")

    async def dump_artifacts(self) -> Mapping[str, Any]:
        raise RuntimeError("net::ERR_CONNECTION_REFUSED")


@pytest.fixture
def aggregator() -> ResultAggregator:
    """Create aggregator for one run."""
    return ResultAggregator(run_id="run-1", game_url=GAME_URL, hub_url="http://hub.test/hub.html")


def make_bridge(game: ScriptedGame) -> HostPageBridge:
    return HostPageBridge(harness=InMemoryHarness(game=game), poll_interval=0.001)


def by_id(aggregator: ResultAggregator) -> Mapping[str, Check]:
    return {c.id: c for c in aggregator.checks}


class TestDriveScript:
    """Tests for drive_script."""

    def test_minimal_script(self) -> None:
        """Without optional capabilities only the mandatory calls are made."""
        calls = drive_script(normalize_capabilities(["stats"]))

        assert [c.method for c in calls] == ["setTotal", "makeWrong", "makeCorrect", "finish"]
        assert calls[1].args == (2,)
        assert calls[2].args == (3,)

    def test_timer_and_hint_calls(self) -> None:
        """Claimed timer and hint capabilities are exercised before finishing."""
        calls = drive_script(normalize_capabilities(["stats", "timer", "hint"]))

        assert [c.method for c in calls] == [
            "setTotal",
            "makeWrong",
            "makeCorrect",
            "startQ",
            "finishQ",
            "useHint",
            "finish",
        ]


async def test_conforming_game_passes(aggregator: ResultAggregator) -> None:
    """A game following the protocol passes every blocker."""
    result = await run_suite(make_bridge(ScriptedGame()), aggregator, GAME_URL, FAST)

    checks = by_id(aggregator)
    assert aggregator.status() == "pass"
    assert all(check.ok for check in checks.values())
    assert {INIT_READY, E2E_HOOKS, STATS_COUNTS, COMPLETE_PRESENT, COMPLETE_IDEMPOTENT} <= set(checks)
    assert result.failure_dump is None
    assert result.artifacts["spySummary"]["stats:recordWrong"] == 2
    assert result.artifacts["spySummary"]["stats:recordCorrect"] == 3
    assert "completePayload" in result.artifacts


async def test_timer_game_drives_question_timer(aggregator: ResultAggregator) -> None:
    """A timer game gets its question timer driven and raises no timer warning."""
    game = ScriptedGame(capabilities=["stats", "timer"])

    await run_suite(make_bridge(game), aggregator, GAME_URL, FAST)

    assert game.counters["stats:startQuestionTimer"] == 1
    assert game.counters["stats:finishQuestionTimer"] == 1
    assert not [w for w in aggregator.warnings if "timer" in w]


async def test_missing_ready_is_infra_error(aggregator: ResultAggregator) -> None:
    """A game that never answers INIT stops the suite with a timeout."""
    game = ScriptedGame(respond_to_init=False)

    result = await run_suite(make_bridge(game), aggregator, GAME_URL, FAST)

    checks = by_id(aggregator)
    assert not checks[INIT_READY].ok
    assert checks[INFRA_READY_TIMEOUT].message == "Timeout waiting READY"
    assert checks[INFRA_READY_TIMEOUT].details == {"timeoutMs": 200}
    assert aggregator.status() == "infra_error"
    assert STATS_COUNTS not in checks
    assert result.failure_dump is not None
    assert [e["msg"]["type"] for e in result.failure_dump["logs"]] == ["INIT"]


async def test_missing_hooks_fail_with_dump(aggregator: ResultAggregator) -> None:
    """A build without e2e hooks fails and the log is dumped."""
    result = await run_suite(make_bridge(ScriptedGame(hooks=False)), aggregator, GAME_URL, FAST)

    checks = by_id(aggregator)
    assert checks[E2E_HOOKS].message == "Missing __irukaSpy/__irukaTest"
    assert not checks[COMPLETE_PRESENT].ok
    assert aggregator.status() == "fail"
    assert result.failure_dump is not None


async def test_differing_attempt_ids_fail(aggregator: ResultAggregator) -> None:
    """COMPLETE re-sent under a new attempt id is a blocker."""
    game = ScriptedGame(attempt_ids=("attempt-1", "attempt-2"))

    await run_suite(make_bridge(game), aggregator, GAME_URL, FAST)

    check = by_id(aggregator)[COMPLETE_IDEMPOTENT]
    assert not check.ok
    assert check.details["attemptIds"] == ["attempt-1", "attempt-2"]
    assert aggregator.status() == "fail"


async def test_driver_exception_is_recorded(aggregator: ResultAggregator) -> None:
    """An exception while driving the game becomes an infrastructure check."""
    await run_suite(make_bridge(BrokenDriverGame()), aggregator, GAME_URL, FAST)

    check = by_id(aggregator)[INFRA_HARNESS]
    assert "setTotal" in (check.message or "")
    assert aggregator.status() == "infra_error"


async def test_probe_failure_is_infra_error(aggregator: ResultAggregator) -> None:
    """A harness error after driving is recorded, never raised."""
    bridge = HostPageBridge(harness=ClosedPageHarness(game=ScriptedGame()), poll_interval=0.001)

    result = await run_suite(bridge, aggregator, GAME_URL, FAST)

    check = by_id(aggregator)[INFRA_HARNESS]
    assert check.message == "Target page, context or browser has been closed"
    assert check.details == {"exception": "RuntimeError"}
    assert aggregator.status() == "infra_error"
    assert result.failure_dump is not None


async def test_load_failure_is_infra_error(aggregator: ResultAggregator) -> None:
    """A build that cannot be loaded is an infrastructure failure, even without a dump."""
    bridge = HostPageBridge(harness=UnreachableHubHarness(game=ScriptedGame()), poll_interval=0.001)

    result = await run_suite(bridge, aggregator, GAME_URL, FAST)

    assert [c.id for c in aggregator.checks] == [INFRA_HARNESS]
    assert aggregator.status() == "infra_error"
    assert result.failure_dump is None
    assert result.artifacts == {}
