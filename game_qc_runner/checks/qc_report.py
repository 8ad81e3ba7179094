"""Map run summaries and manual attestations onto the QC report shape."""

import uuid
from collections.abc import Mapping
from typing import Any

from game_qc_runner.checks.evaluators import (
    ASSET_ERROR,
    COMPLETE_IDEMPOTENT,
    COMPLETE_SCHEMA,
    INIT_READY,
    READY_LATENCY,
    STATS_COUNTS,
)
from game_qc_runner.models.check import Check
from game_qc_runner.models.summary import Summary
from game_qc_runner.release.models import (
    ManualValidation,
    QA01Result,
    QA02Result,
    QA03Auto,
    QA03Result,
    QA04Result,
    QCReport,
)


def _passed(check: Check | None) -> bool:
    return check is not None and check.ok


def _detail(check: Check | None, key: str) -> Any:
    if check is None or not isinstance(check.details, Mapping):
        return None
    return check.details.get(key)


def qc_report_from_summary(
    summary: Summary,
    *,
    version_id: str,
    report_url: str | None = None,
    stats: Mapping[str, Any] | None = None,
) -> QCReport:
    """Derive an automated QC report from a run summary.

    Groups whose checks were never recorded count as failed. ``stats`` is the
    statistics block of the game's COMPLETE payload, when available. Runs that
    ended in an infrastructure error carry no decision.
    """
    latency = summary.check(READY_LATENCY)
    init_to_ready = _detail(latency, "initToReadyMs")
    idempotent = summary.check(COMPLETE_IDEMPOTENT)
    asset_error = summary.check(ASSET_ERROR)
    stats = stats or {}

    qa01 = QA01Result(passed=_passed(summary.check(INIT_READY)), init_to_ready_ms=init_to_ready)
    qa02 = QA02Result(
        passed=_passed(summary.check(COMPLETE_SCHEMA)) and _passed(summary.check(STATS_COUNTS)),
        accuracy=stats.get("accuracy"),
        completion=stats.get("completion"),
        normalized_result=dict(stats) or None,
    )
    qa03 = QA03Result(
        auto=QA03Auto(
            asset_error=asset_error is not None and not asset_error.ok,
            ready_ms=init_to_ready,
        )
    )
    qa04 = QA04Result(
        passed=_passed(idempotent),
        duplicate_attempt_id=_detail(idempotent, "duplicateAttemptId"),
        backend_record_count=_detail(idempotent, "completeCount"),
    )
    return QCReport(
        id=uuid.uuid4().hex,
        version_id=version_id,
        qa01=qa01,
        qa02=qa02,
        qa03=qa03,
        qa04=qa04,
        decision=None if summary.status == "infra_error" else summary.status,
        run_id=summary.run.run_id,
        report_url=report_url,
    )


def apply_manual_validation(report: QCReport, manual: ManualValidation) -> QCReport:
    """Attach manual attestations without re-running the automatic suite."""
    return report.model_copy(
        update={"qa03": report.qa03.model_copy(update={"manual": manual})}
    )


def completion_stats(complete_payload: Any) -> Mapping[str, Any]:
    """Statistics block of a COMPLETE payload (``extras.stats`` or ``extras``)."""
    if not isinstance(complete_payload, Mapping):
        return {}
    extras = complete_payload.get("extras")
    if not isinstance(extras, Mapping):
        return {}
    stats = extras.get("stats")
    return dict(stats) if isinstance(stats, Mapping) else dict(extras)
