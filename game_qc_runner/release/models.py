"""Models for game versions, QC reports and their audit trail."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import ConfigDict, Field

from game_qc_runner.models.base import Model, WireModel

type VersionStatus = Literal[
    "draft",
    "uploaded",
    "qc_processing",
    "qc_passed",
    "qc_failed",
    "approved",
    "published",
    "archived",
]

type QCDecision = Literal["pass", "fail"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SelfQAChecklist(WireModel):
    """Developer attestations required before a version enters QC."""

    tested_devices: bool = False
    tested_audio: bool = False
    gameplay_complete: bool = False
    content_verified: bool = False
    note: str | None = None

    def missing(self) -> list[str]:
        """Names of attestations that are not yet true."""
        return [
            name
            for name in ("tested_devices", "tested_audio", "gameplay_complete", "content_verified")
            if getattr(self, name) is not True
        ]


class ManualValidation(WireModel):
    """Operator-attested presentation checks (QA-03 manual)."""

    no_autoplay: bool
    no_white_screen: bool
    gesture_ok: bool

    def failed(self) -> list[str]:
        return [
            name
            for name in ("no_autoplay", "no_white_screen", "gesture_ok")
            if getattr(self, name) is not True
        ]


class QA01Result(Model):
    """Handshake and readiness timing."""

    passed: bool = Field(..., alias="pass")
    init_to_ready_ms: float | None = None
    quit_to_complete_ms: float | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class QA02Result(Model):
    """Result data-shape correctness."""

    passed: bool = Field(..., alias="pass")
    accuracy: float | None = None
    completion: float | None = None
    normalized_result: Mapping[str, Any] | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class QA03Auto(Model):
    asset_error: bool = False
    ready_ms: float | None = None


class QA03Result(Model):
    """Presentation checks; ``manual`` is only present once attested."""

    auto: QA03Auto = Field(default_factory=QA03Auto)
    manual: ManualValidation | None = None


class QA04Result(Model):
    """Idempotency of result submission under retry."""

    passed: bool = Field(..., alias="pass")
    duplicate_attempt_id: bool | None = None
    backend_record_count: int | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class QCReport(Model):
    """One QC report for a version; the newest one gates transitions."""

    id: str
    version_id: str
    qa01: QA01Result
    qa02: QA02Result
    qa03: QA03Result = Field(default_factory=QA03Result)
    qa04: QA04Result
    decision: QCDecision | None = None
    note: str | None = None
    reviewer_id: str | None = None
    run_id: str | None = None
    report_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class GameVersion(Model):
    """The release unit; ``revision`` increments on every status write."""

    id: str
    game_id: str
    version: str
    entry_url: str | None = None
    status: VersionStatus = "draft"
    self_qa: SelfQAChecklist | None = None
    latest_report_id: str | None = None
    revision: int = 0
    updated_at: datetime = Field(default_factory=utcnow)


class AuditRecord(Model):
    """One transition of a version's status."""

    version_id: str
    action: str
    old_status: VersionStatus
    new_status: VersionStatus
    actor_id: str
    evidence: Mapping[str, Any] = Field(default_factory=dict)
    at: datetime = Field(default_factory=utcnow)
