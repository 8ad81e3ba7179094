"""Merge repeated checks and compute the overall verdict of a run."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from game_qc_runner.models.check import Check, Severity
from game_qc_runner.models.summary import DEFAULT_ARTIFACTS, RunInfo, RunStatus, Summary

log = logging.getLogger(__name__)

SEVERITY_RANK: Mapping[Severity, int] = {"warning": 1, "blocker": 2}


def merge_check(existing: Check | None, new: Check) -> Check:
    """Fold a repeated check into the one already recorded ("worst wins").

    Severity escalates to blocker if either side is a blocker, the outcome is
    the AND of both, and diagnostics follow first-failure-wins: a check that
    was already failing keeps its original message and details.
    """
    if existing is None:
        return new

    severity = max(existing.severity, new.severity, key=SEVERITY_RANK.__getitem__)
    ok = existing.ok and new.ok

    if not ok and not existing.ok:
        source = existing
    elif not ok:
        source = new
    else:
        source = existing

    return Check(
        id=existing.id,
        severity=severity,
        ok=ok,
        message=source.message,
        details=source.details,
    )


def compute_status(checks: Sequence[Check]) -> RunStatus:
    """Compute the run verdict; infrastructure failures dominate test failures."""
    if any(check.is_infra and not check.ok for check in checks):
        return "infra_error"
    if any(check.severity == "blocker" and not check.ok for check in checks):
        return "fail"
    return "pass"


def clamp_duration_ms(started_at: datetime, finished_at: datetime) -> int:
    """Milliseconds between two instants, never negative under clock skew."""
    return max(0, int((finished_at - started_at).total_seconds() * 1000))


@dataclass(kw_only=True)
class ResultAggregator:
    """Accumulates the checks of exactly one run.

    Not safe to share across runs or to feed from concurrent producers; the
    owning pipeline applies upserts in production order.
    """

    run_id: str
    game_url: str
    hub_url: str
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _checks: dict[str, Check] = field(default_factory=dict, init=False, repr=False)
    _warnings: list[str] = field(default_factory=list, init=False, repr=False)
    _artifacts: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_ARTIFACTS), init=False, repr=False
    )

    @property
    def checks(self) -> Sequence[Check]:
        """Merged checks in first-seen order."""
        return tuple(self._checks.values())

    @property
    def warnings(self) -> Sequence[str]:
        return tuple(self._warnings)

    @property
    def artifacts(self) -> Mapping[str, str]:
        return dict(self._artifacts)

    def upsert_check(self, check: Check) -> Check:
        """Record a check, merging with any earlier report under the same id."""
        merged = merge_check(self._checks.get(check.id), check)
        # dict keeps the insertion position of the first report on reassignment
        self._checks[check.id] = merged
        if not merged.ok:
            log.info("Check failing: id=%s severity=%s", merged.id, merged.severity)
        return merged

    def add_warning(self, message: str) -> None:
        self._warnings.append(message)

    def add_artifact(self, name: str, relative_path: str) -> None:
        self._artifacts[name] = relative_path

    def status(self) -> RunStatus:
        return compute_status(self.checks)

    def finalize(
        self,
        *,
        finished_at: datetime | None = None,
        exit_code: int | None = None,
    ) -> Summary:
        """Close the run and produce its summary."""
        finished_at = finished_at or datetime.now(timezone.utc)
        run = RunInfo(
            run_id=self.run_id,
            game_url=self.game_url,
            hub_url=self.hub_url,
            started_at=self.started_at,
            finished_at=finished_at,
            duration_ms=clamp_duration_ms(self.started_at, finished_at),
            exit_code=exit_code,
        )
        status = self.status()
        log.info(
            "Run finalized: run_id=%s status=%s checks=%d warnings=%d",
            self.run_id,
            status,
            len(self._checks),
            len(self._warnings),
        )
        return Summary(
            run=run,
            status=status,
            checks=self.checks,
            warnings=self.warnings,
            artifacts=self.artifacts,
        )
