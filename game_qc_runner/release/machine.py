"""Release state machine for game versions."""

import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from game_qc_runner.checks.manual import evaluate_manual
from game_qc_runner.checks.qc_report import apply_manual_validation
from game_qc_runner.models.summary import Summary
from game_qc_runner.release.errors import (
    ForbiddenActionError,
    GateFailedError,
    IncompleteSubmissionError,
    InvalidTransitionError,
    TransitionError,
    VersionNotFoundError,
)
from game_qc_runner.release.models import (
    AuditRecord,
    GameVersion,
    ManualValidation,
    QCDecision,
    QCReport,
    SelfQAChecklist,
    utcnow,
)
from game_qc_runner.release.permissions import SYSTEM_ACTOR, Actor
from game_qc_runner.release.store import VersionStore
from game_qc_runner.release.transitions import TRANSITIONS, Action, valid_actions

log = logging.getLogger(__name__)

type Gate = Callable[[GameVersion], None]


class DecisionValidationError(TransitionError):
    """Raised when a QC decision payload is malformed."""

    code = "validation"


def qc_gate_failures(report: QCReport | None, manual: ManualValidation | None) -> Sequence[str]:
    """Names of the gates that block ``qc_processing → qc_passed``."""
    if report is None:
        return ["no_qc_report"]
    failures = [
        name
        for name, result in (("qa01", report.qa01), ("qa02", report.qa02), ("qa04", report.qa04))
        if not result.passed
    ]
    manual = manual or report.qa03.manual
    if manual is not None:
        failures.extend(f"manual.{name}" for name in manual.failed())
    return failures


@dataclass(frozen=True, kw_only=True)
class ReleaseStateMachine:
    """Authoritative lifecycle of a game version.

    Only an automated run verdict or a reviewer decision moves a version past
    ``qc_processing``. Every successful transition writes the new status and
    one audit record in a single store commit; a rejected transition writes
    nothing.
    """

    store: VersionStore

    async def get(self, version_id: str) -> GameVersion:
        if (version := await self.store.get_version(version_id)) is None:
            raise VersionNotFoundError(version_id)
        return version

    async def submit_to_qc(
        self,
        version_id: str,
        actor: Actor,
        checklist: SelfQAChecklist | None = None,
    ) -> GameVersion:
        """``draft|qc_failed → uploaded`` once all self-QA attestations hold."""

        def completeness(version: GameVersion) -> None:
            attested = checklist or version.self_qa or SelfQAChecklist()
            if missing := attested.missing():
                raise IncompleteSubmissionError(missing)

        changes = {"self_qa": checklist} if checklist is not None else {}
        return await self._transition(
            version_id, "submit", actor, gate=completeness, changes=changes
        )

    async def start_qc(self, version_id: str, actor: Actor) -> GameVersion:
        """``uploaded → qc_processing``; the version is claimed by QC."""
        return await self._transition(version_id, "start_qc", actor)

    async def record_qc_decision(
        self,
        version_id: str,
        actor: Actor,
        *,
        decision: QCDecision,
        note: str,
        manual: ManualValidation | None = None,
    ) -> GameVersion:
        """Apply a reviewer's pass/fail decision to a version in QC.

        A pass is gated on the latest QC report; the decision is stored as a new
        report so earlier reports stay untouched.
        """
        if decision not in ("pass", "fail"):
            raise DecisionValidationError('decision must be "pass" or "fail"')
        if not note or not note.strip():
            raise DecisionValidationError("note is required and cannot be empty")

        latest = await self.store.latest_report(version_id)
        decided: QCReport | None = None
        if latest is not None:
            base = latest if manual is None else apply_manual_validation(latest, manual)
            decided = base.model_copy(
                update={
                    "id": uuid.uuid4().hex,
                    "decision": decision,
                    "note": note.strip(),
                    "reviewer_id": actor.id,
                    "created_at": utcnow(),
                }
            )

        evidence: dict[str, Any] = {"note": note.strip(), "decision": decision}
        if decided is not None:
            evidence["reportId"] = decided.id
        if manual is not None:
            evidence["manualChecks"] = [check.to_wire() for check in evaluate_manual(manual)]

        if decision == "pass":

            def gates(version: GameVersion) -> None:
                if failures := qc_gate_failures(latest, manual):
                    raise GateFailedError(failures)

            return await self._transition(
                version_id, "pass_qc", actor, gate=gates, evidence=evidence, report=decided
            )
        return await self._transition(
            version_id, "fail_qc", actor, evidence=evidence, report=decided
        )

    async def apply_run_verdict(
        self,
        version_id: str,
        summary: Summary,
        report: QCReport,
    ) -> GameVersion:
        """Drive a version in QC from an automated run.

        The report is always stored as evidence. An ``infra_error`` run leaves
        the version in ``qc_processing`` since its verdict cannot be trusted.
        """
        await self.store.add_report(report)
        evidence = {"runId": summary.run.run_id, "reportId": report.id, "status": summary.status}

        if summary.status == "infra_error":
            log.warning(
                "Run %s for version %s hit an infrastructure error; status unchanged",
                summary.run.run_id,
                version_id,
            )
            return await self.get(version_id)

        if summary.status == "pass":

            def gates(version: GameVersion) -> None:
                if failures := qc_gate_failures(report, None):
                    raise GateFailedError(failures)

            return await self._transition(
                version_id, "pass_qc", SYSTEM_ACTOR, gate=gates, evidence=evidence
            )
        return await self._transition(version_id, "fail_qc", SYSTEM_ACTOR, evidence=evidence)

    async def approve(self, version_id: str, actor: Actor) -> GameVersion:
        return await self._transition(version_id, "approve", actor)

    async def publish(self, version_id: str, actor: Actor) -> GameVersion:
        return await self._transition(version_id, "publish", actor)

    async def archive(self, version_id: str, actor: Actor) -> GameVersion:
        return await self._transition(version_id, "archive", actor)

    async def republish(self, version_id: str, actor: Actor) -> GameVersion:
        return await self._transition(version_id, "republish", actor)

    async def _transition(
        self,
        version_id: str,
        action: Action,
        actor: Actor,
        *,
        gate: Gate | None = None,
        evidence: Mapping[str, Any] | None = None,
        changes: Mapping[str, Any] | None = None,
        report: QCReport | None = None,
    ) -> GameVersion:
        transition = TRANSITIONS[action]
        version = await self.get(version_id)

        if not actor.has(transition.permission):
            raise ForbiddenActionError(action, transition.permission)

        if version.status == transition.target and await self._last_action(version_id) == action:
            log.info("Repeated %s on version %s; already %s", action, version_id, version.status)
            return version

        if version.status not in transition.sources:
            raise InvalidTransitionError(action, version.status, valid_actions(version.status))

        if gate is not None:
            gate(version)

        updated = version.model_copy(
            update={
                **(changes or {}),
                "status": transition.target,
                "revision": version.revision + 1,
                "updated_at": utcnow(),
                **(
                    {"latest_report_id": evidence["reportId"]}
                    if evidence and "reportId" in evidence
                    else {}
                ),
            }
        )
        audit = AuditRecord(
            version_id=version_id,
            action=action,
            old_status=version.status,
            new_status=transition.target,
            actor_id=actor.id,
            evidence=dict(evidence or {}),
        )
        await self.store.commit_transition(version, updated, audit, report)
        log.info(
            "Version %s: %s -> %s (%s by %s)",
            version_id,
            version.status,
            transition.target,
            action,
            actor.id,
        )
        return updated

    async def _last_action(self, version_id: str) -> str | None:
        trail = await self.store.audit_trail(version_id)
        return trail[-1].action if trail else None
