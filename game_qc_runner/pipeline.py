"""Pipeline coordinating one QC run from submission to callback."""

import asyncio
import logging
import secrets
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from game_qc_runner.aggregator import ResultAggregator, compute_status
from game_qc_runner.callback import CallbackDispatcher
from game_qc_runner.checks.evaluators import INFRA_SPAWN, INFRA_UPLOAD
from game_qc_runner.job_runner import (
    STDERR_FILENAME,
    STDOUT_FILENAME,
    JobResult,
    JobRunner,
    RunTargets,
)
from game_qc_runner.models.check import Check
from game_qc_runner.models.summary import Summary
from game_qc_runner.publishers.base import ArtifactPublisher, ArtifactUploadError
from game_qc_runner.summary_store import load_legacy_summary, merge_legacy, summary_path, write_summary
from game_qc_runner.url import host_allowed

log = logging.getLogger(__name__)


class SubmissionError(Exception):
    """Raised when a run submission is rejected before anything is created."""


def new_run_id() -> str:
    """Opaque, URL-safe 16 character run identifier."""
    return secrets.token_urlsafe(12)


def validate_game_url(game_url: Any, allowlist: Sequence[str]) -> str:
    """Return the submitted build URL or raise ``SubmissionError``."""
    if not isinstance(game_url, str) or not game_url.strip():
        raise SubmissionError("gameUrl is required")
    game_url = game_url.strip()
    if not game_url.lower().startswith(("http://", "https://")):
        raise SubmissionError("gameUrl must be an http(s) URL")
    if not host_allowed(game_url, allowlist):
        raise SubmissionError("gameUrl host is not in the allow-list")
    return game_url


def reconcile_exit_code(summary: Summary) -> Summary:
    """A driver that exited non-zero can never yield a passing run."""
    if summary.run.exit_code in (0, None) or summary.status != "pass":
        return summary
    log.warning(
        "Run %s exited with %s but reported no failing blocker; marking as fail",
        summary.run.run_id,
        summary.run.exit_code,
    )
    return summary.model_copy(
        update={
            "status": "fail",
            "warnings": (
                *summary.warnings,
                f"driver exited with code {summary.run.exit_code} without a failing check",
            ),
        }
    )


def add_infra_check(summary: Summary, check: Check) -> Summary:
    """Append an infrastructure failure recorded after the summary was built."""
    checks = (*summary.checks, check)
    return summary.model_copy(update={"checks": checks, "status": compute_status(checks)})


@dataclass(frozen=True, kw_only=True)
class RunOutcome:
    """What the submitter gets back for one run."""

    run_id: str
    summary: Summary
    report_url: str | None
    local_path: Path

    @property
    def status(self) -> str:
        return self.summary.status

    def to_wire(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "status": self.status,
            "summary": self.summary.to_wire(),
            "reportUrl": self.report_url,
            "localPath": str(self.local_path),
        }


@dataclass(frozen=True, kw_only=True)
class RunPipeline:
    """Runs a submitted build end to end.

    Infrastructure failures are captured as ``INFRA_*`` checks so a summary is
    always written; only unexpected exceptions escape ``run``.
    """

    runs_root: Path
    hub_url: str
    job_runner: JobRunner
    publisher: ArtifactPublisher
    callback: CallbackDispatcher
    allowlist: Sequence[str] = ()
    working_dir: Path = field(default_factory=Path.cwd)
    _pending: set[asyncio.Task[bool]] = field(default_factory=set, init=False, repr=False)

    async def run(
        self,
        game_url: Any,
        meta: Mapping[str, Any] | None = None,
        *,
        run_id: str | None = None,
    ) -> RunOutcome:
        """Validate, execute, record, publish and notify for one build.

        ``run_id`` lets the caller correlate errors with a run it named up front.

        Raises:
            SubmissionError: If the build URL is missing or not allowed

        """
        game_url = validate_game_url(game_url, self.allowlist)
        run_id = run_id or new_run_id()
        run_dir = self.runs_root / run_id
        log.info("Run %s accepted for %s", run_id, game_url)

        aggregator = ResultAggregator(run_id=run_id, game_url=game_url, hub_url=self.hub_url)
        aggregator.add_artifact("stdout", STDOUT_FILENAME)
        aggregator.add_artifact("stderr", STDERR_FILENAME)

        result = await self.job_runner.run(
            run_id, run_dir, RunTargets(hub_url=self.hub_url, game_url=game_url)
        )
        summary = self._build_summary(aggregator, result, run_dir)
        path = write_summary(summary_path(run_dir), summary)
        log.info("Summary for run %s written to %s: %s", run_id, path, summary.status)

        report_url: str | None = None
        try:
            published = await self.publisher.publish_run_dir(run_id, run_dir)
            report_url = self.publisher.report_url(published)
        except ArtifactUploadError as exc:
            log.error("Publishing run %s failed: %s", run_id, exc, exc_info=exc)
            summary = add_infra_check(
                summary,
                Check(id=INFRA_UPLOAD, severity="blocker", ok=False, message=str(exc)),
            )
            write_summary(path, summary)

        outcome = RunOutcome(
            run_id=run_id, summary=summary, report_url=report_url, local_path=run_dir
        )
        self._notify(outcome, meta)
        return outcome

    def _build_summary(
        self,
        aggregator: ResultAggregator,
        result: JobResult,
        run_dir: Path,
    ) -> Summary:
        if result.spawn_error is not None:
            aggregator.upsert_check(
                Check(
                    id=INFRA_SPAWN,
                    severity="blocker",
                    ok=False,
                    message=f"driver failed to start: {result.spawn_error}",
                )
            )
            return aggregator.finalize(exit_code=result.exit_code)

        summary = aggregator.finalize(exit_code=result.exit_code)
        if (legacy := load_legacy_summary(run_dir, self.working_dir)) is not None:
            summary = merge_legacy(summary, legacy)
        return reconcile_exit_code(summary)

    def _notify(self, outcome: RunOutcome, meta: Mapping[str, Any] | None) -> None:
        payload = {
            "runId": outcome.run_id,
            "status": outcome.status,
            "summary": outcome.summary.to_wire(),
            "reportUrl": outcome.report_url,
            "meta": dict(meta or {}),
        }
        task = asyncio.create_task(self.callback.dispatch(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for callbacks still in flight."""
        if self._pending:
            await asyncio.gather(*tuple(self._pending))
