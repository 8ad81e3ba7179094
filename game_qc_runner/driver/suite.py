"""Conformance suite executed by the driver against one build."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from game_qc_runner.aggregator import ResultAggregator
from game_qc_runner.bridge.base import DriverCall
from game_qc_runner.bridge.bridge import BridgeTimeoutError, HostPageBridge
from game_qc_runner.checks.capabilities import Capabilities
from game_qc_runner.checks.context import DEFAULT_READY_LATENCY_MS, EvaluationContext
from game_qc_runner.checks.evaluators import (
    INFRA_HARNESS,
    INFRA_READY_TIMEOUT,
    INIT_READY,
    run_evaluators,
)
from game_qc_runner.models.check import Check

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class SuiteSettings:
    ready_timeout_ms: float = 20_000
    complete_timeout_ms: float = 20_000
    ready_latency_ms: float = DEFAULT_READY_LATENCY_MS


@dataclass(frozen=True, kw_only=True)
class SuiteResult:
    """Debug payloads gathered while running the suite.

    ``failure_dump`` is only collected when the run did not pass.
    """

    artifacts: Mapping[str, Any] = field(default_factory=dict)
    failure_dump: Mapping[str, Any] | None = None


def drive_script(caps: Capabilities) -> Sequence[DriverCall]:
    """Driver calls for the conformance run: 2 wrong and 3 correct answers.

    Hint and timer calls are only made for capabilities the game claims.
    """
    calls = [
        DriverCall(method="setTotal", args=(3,)),
        DriverCall(method="makeWrong", args=(2,)),
        DriverCall(method="makeCorrect", args=(3,)),
    ]
    if "timer" in caps:
        calls += [DriverCall(method="startQ", args=(1,)), DriverCall(method="finishQ", args=(1,))]
    if "hint" in caps:
        calls.append(DriverCall(method="useHint", args=(1,)))
    calls.append(DriverCall(method="finish"))
    return calls


def record_harness_error(aggregator: ResultAggregator, exc: BaseException) -> None:
    """Record a harness or browser failure; the run becomes ``infra_error``."""
    aggregator.upsert_check(
        Check(
            id=INFRA_HARNESS,
            severity="blocker",
            ok=False,
            message=str(exc) or type(exc).__name__,
            details={"exception": type(exc).__name__},
        )
    )


async def collect_failure_dump(bridge: HostPageBridge) -> Mapping[str, Any] | None:
    try:
        return await bridge.dump_artifacts()
    except Exception as exc:  # noqa: BLE001
        log.warning("Could not collect failure dump: %s", exc)
        return None


async def run_suite(
    bridge: HostPageBridge,
    aggregator: ResultAggregator,
    game_url: str,
    settings: SuiteSettings = SuiteSettings(),
) -> SuiteResult:
    """Load the build, drive it and record every check into ``aggregator``.

    Harness errors never escape: they are recorded as ``INFRA_HARNESS`` so the
    driver can still write its report.
    """
    artifacts: Mapping[str, Any] = {}
    try:
        artifacts = await exercise_build(bridge, aggregator, game_url, settings)
    except Exception as exc:  # noqa: BLE001
        log.error("Harness failed while testing %s: %s", game_url, exc, exc_info=exc)
        record_harness_error(aggregator, exc)

    failure_dump = None
    if aggregator.status() != "pass":
        failure_dump = await collect_failure_dump(bridge)
    return SuiteResult(artifacts=artifacts, failure_dump=failure_dump)


async def exercise_build(
    bridge: HostPageBridge,
    aggregator: ResultAggregator,
    game_url: str,
    settings: SuiteSettings,
) -> Mapping[str, Any]:
    harness = bridge.harness
    await bridge.load(game_url)
    await bridge.send_init()

    try:
        await bridge.wait_for_message_type("READY", settings.ready_timeout_ms)
    except BridgeTimeoutError as exc:
        log.error("No READY from %s: %s", game_url, exc)
        aggregator.upsert_check(
            Check(id=INIT_READY, severity="blocker", ok=False, message=str(exc))
        )
        aggregator.upsert_check(
            Check(
                id=INFRA_READY_TIMEOUT,
                severity="blocker",
                ok=False,
                message="Timeout waiting READY",
                details={"timeoutMs": exc.timeout_ms},
            )
        )
        return {}

    try:
        ready_ctx = EvaluationContext(entries=await bridge.logged_since_mark())
        await harness.reset_spy()
        await harness.drive(drive_script(ready_ctx.capabilities()))
    except Exception as exc:  # noqa: BLE001
        log.error("Driving %s failed: %s", game_url, exc, exc_info=exc)
        record_harness_error(aggregator, exc)

    try:
        await bridge.wait_for_message_type("COMPLETE", settings.complete_timeout_ms)
    except BridgeTimeoutError as exc:
        log.warning("No COMPLETE from %s: %s", game_url, exc)

    ctx = EvaluationContext(
        entries=await bridge.logged_since_mark(),
        state=await harness.probe(),
        ready_latency_ms=settings.ready_latency_ms,
    )
    evaluation = run_evaluators(ctx)
    for check in evaluation.checks:
        aggregator.upsert_check(check)
    for warning in evaluation.warnings:
        aggregator.add_warning(warning)
    return evaluation.artifacts
