"""Models for the durable record of a run."""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Literal

from pydantic import Field

from game_qc_runner.models.base import WireModel
from game_qc_runner.models.check import Check

type RunStatus = Literal["pass", "fail", "infra_error"]

SCHEMA_VERSION = "1.0"

DEFAULT_ARTIFACTS: Mapping[str, str] = {
    "playwrightHtmlReport": "playwright-report/index.html",
    "playwrightJsonReport": "playwright-report/report.json",
}


class RunInfo(WireModel):
    """Identity and wall-clock bounds of one run."""

    run_id: str
    game_url: str
    hub_url: str
    started_at: datetime
    finished_at: datetime | None = None
    duration_ms: int | None = Field(default=None, ge=0)
    exit_code: int | None = None


class Summary(WireModel):
    """Final, durable record of a run."""

    schema_version: Literal["1.0"] = SCHEMA_VERSION
    run: RunInfo
    status: RunStatus
    checks: Sequence[Check] = Field(default_factory=tuple)
    warnings: Sequence[str] = Field(default_factory=tuple)
    artifacts: Mapping[str, str] = Field(default_factory=dict)

    def check(self, check_id: str) -> Check | None:
        """Return the merged check with the given id, if recorded."""
        return next((c for c in self.checks if c.id == check_id), None)
