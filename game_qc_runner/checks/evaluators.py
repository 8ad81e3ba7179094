"""Automatic check evaluators.

Each evaluator is a pure function of an ``EvaluationContext``. They are
independent of each other and never mutate the context; ``run_evaluators``
applies them in registration order.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from game_qc_runner.checks.complete_schema import validate_complete_payload
from game_qc_runner.checks.context import Evaluation, EvaluationContext, Evaluator
from game_qc_runner.checks.sanitize import sanitize_for_artifact
from game_qc_runner.models.check import Check

INIT_READY = "INIT_READY"
READY_LATENCY = "READY_LATENCY"
CAPABILITIES_PRESENT = "CAPABILITIES_PRESENT"
CAP_STATS_REQUIRED = "CAP_STATS_REQUIRED"
E2E_HOOKS = "E2E_HOOKS"
STATS_COUNTS = "STATS_COUNTS"
COMPLETE_PRESENT = "COMPLETE_PRESENT"
COMPLETE_SCHEMA = "COMPLETE_SCHEMA"
COMPLETE_IDEMPOTENT = "COMPLETE_IDEMPOTENT"
ASSET_ERROR = "ASSET_ERROR"

INFRA_READY_TIMEOUT = "INFRA_READY_TIMEOUT"
INFRA_SPAWN = "INFRA_SPAWN"
INFRA_UPLOAD = "INFRA_UPLOAD"
INFRA_HARNESS = "INFRA_HARNESS"

EXPECTED_WRONG = 2
EXPECTED_CORRECT = 3

REQUIRED_DRIVER_METHODS = ("setTotal", "makeWrong", "makeCorrect", "finish")


def evaluate_handshake(ctx: EvaluationContext) -> Evaluation:
    """INIT → READY handshake and its latency."""
    ready = ctx.game_messages("READY")
    if not ready:
        return Evaluation(
            checks=[
                Check(
                    id=INIT_READY,
                    severity="blocker",
                    ok=False,
                    message="Game never answered INIT with READY",
                )
            ]
        )

    checks = [Check(id=INIT_READY, severity="blocker", ok=True)]
    inits = ctx.hub_messages("INIT")
    if inits:
        latency = max(0.0, ready[0].at_ms - inits[0].at_ms)
        within = latency <= ctx.ready_latency_ms
        checks.append(
            Check(
                id=READY_LATENCY,
                severity="warning",
                ok=within,
                message=None
                if within
                else f"READY took {latency:.0f}ms (threshold {ctx.ready_latency_ms:.0f}ms)",
                details={"initToReadyMs": round(latency, 1)},
            )
        )
    return Evaluation(checks=checks)


def evaluate_capabilities(ctx: EvaluationContext) -> Evaluation:
    """READY must declare capabilities, and ``stats`` among them."""
    if not ctx.game_messages("READY"):
        return Evaluation()

    caps = ctx.capabilities()
    artifacts = {
        "readyCaps": sanitize_for_artifact({"raw": caps.raw, "normalized": list(caps.normalized)})
    }
    if not caps.declared:
        return Evaluation(
            checks=[
                Check(
                    id=CAPABILITIES_PRESENT,
                    severity="blocker",
                    ok=False,
                    message="READY.payload.capabilities is REQUIRED (string[])",
                    details={"got": sanitize_for_artifact(caps.raw)},
                )
            ],
            artifacts=artifacts,
        )

    has_stats = "stats" in caps
    return Evaluation(
        checks=[
            Check(id=CAPABILITIES_PRESENT, severity="blocker", ok=True),
            Check(
                id=CAP_STATS_REQUIRED,
                severity="blocker",
                ok=has_stats,
                message=None
                if has_stats
                else "capabilities MUST include 'stats' to enforce correct/wrong checks",
                details=None if has_stats else {"normalizedCaps": list(caps.normalized)},
            ),
        ],
        artifacts=artifacts,
    )


def evaluate_hooks(ctx: EvaluationContext) -> Evaluation:
    """The e2e build must expose its spy and test driver hooks."""
    state = ctx.state
    if state is None or not (state.spy_present and state.driver_present):
        missing = []
        if state is None or not state.spy_present:
            missing.append("__irukaSpy")
        if state is None or not state.driver_present:
            missing.append("__irukaTest")
        return Evaluation(
            checks=[
                Check(
                    id=E2E_HOOKS,
                    severity="blocker",
                    ok=False,
                    message=f"Missing {'/'.join(missing)}",
                )
            ]
        )

    caps = ctx.capabilities()
    methods = state.driver_methods
    warnings = [
        f"Driver missing: __irukaTest.{name}()"
        for name in REQUIRED_DRIVER_METHODS
        if not methods.get(name)
    ]
    if "hint" in caps and not methods.get("useHint"):
        warnings.append("Claimed 'hint' but driver missing: __irukaTest.useHint(n)")
    if "timer" in caps:
        warnings.extend(
            f"Claimed 'timer' but driver missing: __irukaTest.{name}(n)"
            for name in ("startQ", "finishQ")
            if not methods.get(name)
        )
    return Evaluation(
        checks=[Check(id=E2E_HOOKS, severity="blocker", ok=True)],
        warnings=warnings,
    )


def evaluate_stats(ctx: EvaluationContext) -> Evaluation:
    """Spy counters must match the conformance drive script."""
    state = ctx.state
    if state is None or not state.spy_present:
        return Evaluation()

    summary = state.spy_summary
    wrong = summary.get("stats:recordWrong", 0)
    correct = summary.get("stats:recordCorrect", 0)
    finalized = summary.get("stats:finalizeAttempt", 0)
    ok = wrong == EXPECTED_WRONG and correct == EXPECTED_CORRECT and finalized > 0

    caps = ctx.capabilities()
    warnings: list[str] = []
    if "hint" in caps and summary.get("stats:addHint", 0) <= 0:
        warnings.append("Claimed 'hint' but spy did not observe stats:addHint.")
    if "timer" in caps:
        warnings.extend(
            f"Claimed 'timer' but spy did not observe stats:{name}."
            for name in ("startQuestionTimer", "finishQuestionTimer")
            if summary.get(f"stats:{name}", 0) <= 0
        )
    if summary.get("sdk:sendEvent", 0) <= 0:
        warnings.append("Spy did not observe sdk:sendEvent (check SDK hook in createGameSdk).")

    return Evaluation(
        checks=[
            Check(
                id=STATS_COUNTS,
                severity="blocker",
                ok=ok,
                message=None
                if ok
                else (
                    f"Expected {EXPECTED_WRONG} wrong, {EXPECTED_CORRECT} correct and a "
                    f"finalized attempt; observed {wrong} wrong, {correct} correct, "
                    f"{finalized} finalized"
                ),
                details=None if ok else dict(summary),
            )
        ],
        warnings=warnings,
        artifacts={"spySummary": dict(summary)},
    )


def evaluate_complete(ctx: EvaluationContext) -> Evaluation:
    """A COMPLETE message must arrive and match the result schema."""
    complete = ctx.last_game_message("COMPLETE")
    if complete is None:
        return Evaluation(
            checks=[
                Check(
                    id=COMPLETE_PRESENT,
                    severity="blocker",
                    ok=False,
                    message="Game never sent COMPLETE",
                )
            ]
        )

    report = validate_complete_payload(complete.payload)
    return Evaluation(
        checks=[
            Check(id=COMPLETE_PRESENT, severity="blocker", ok=True),
            Check(
                id=COMPLETE_SCHEMA,
                severity="blocker",
                ok=report.ok,
                message=None if report.ok else "COMPLETE payload schema invalid",
                details=None
                if report.ok
                else {"errors": list(report.errors), "warnings": list(report.warnings)},
            ),
        ],
        warnings=report.warnings,
        artifacts={"completePayload": sanitize_for_artifact(complete.payload)},
    )


def evaluate_idempotency(ctx: EvaluationContext) -> Evaluation:
    """Repeated COMPLETE messages must reuse one attempt id."""
    completes = ctx.game_messages("COMPLETE")
    if not completes:
        return Evaluation()

    attempt_ids = [
        entry.payload.get("attemptId") if isinstance(entry.payload, Mapping) else None
        for entry in completes
    ]
    known = [a for a in attempt_ids if a is not None]
    distinct = sorted({str(a) for a in known})
    ok = len(distinct) <= 1
    warnings = []
    if len(known) < len(attempt_ids):
        warnings.append("COMPLETE.payload.attemptId is missing; retries cannot be deduplicated.")

    return Evaluation(
        checks=[
            Check(
                id=COMPLETE_IDEMPOTENT,
                severity="blocker",
                ok=ok,
                message=None if ok else "COMPLETE was re-sent with a different attemptId",
                details={
                    "completeCount": len(completes),
                    "attemptIds": distinct,
                    "duplicateAttemptId": ok and len(known) > 1,
                },
            )
        ],
        warnings=warnings,
    )


def evaluate_game_errors(ctx: EvaluationContext) -> Evaluation:
    """ERROR messages from the game, such as assets that failed to load."""
    errors = ctx.game_messages("ERROR")
    return Evaluation(
        checks=[
            Check(
                id=ASSET_ERROR,
                severity="warning",
                ok=not errors,
                message=None if not errors else f"Game reported {len(errors)} error(s)",
                details=None
                if not errors
                else {"errors": [sanitize_for_artifact(e.payload) for e in errors]},
            )
        ]
    )


AUTOMATIC_EVALUATORS: Sequence[Evaluator] = (
    evaluate_handshake,
    evaluate_capabilities,
    evaluate_hooks,
    evaluate_stats,
    evaluate_complete,
    evaluate_idempotency,
    evaluate_game_errors,
)


@dataclass(frozen=True, kw_only=True)
class EvaluationRun:
    """Concatenated output of several evaluators, in registration order."""

    checks: Sequence[Check]
    warnings: Sequence[str]
    artifacts: Mapping[str, object]


def run_evaluators(
    ctx: EvaluationContext,
    evaluators: Sequence[Evaluator] = AUTOMATIC_EVALUATORS,
) -> EvaluationRun:
    """Apply evaluators in order and collect their output."""
    checks: list[Check] = []
    warnings: list[str] = []
    artifacts: dict[str, object] = {}
    for evaluator in evaluators:
        result = evaluator(ctx)
        checks.extend(result.checks)
        warnings.extend(result.warnings)
        artifacts.update(result.artifacts)
    return EvaluationRun(checks=checks, warnings=warnings, artifacts=artifacts)
