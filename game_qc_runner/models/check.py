"""Models for checks evaluated during a run."""

from typing import Any, Literal

from pydantic import Field

from game_qc_runner.models.base import WireModel

type Severity = Literal["blocker", "warning"]

INFRA_PREFIX = "INFRA_"


class Check(WireModel):
    """One named assertion evaluated during a run."""

    id: str = Field(..., min_length=1, description="Stable check key")
    severity: Severity = Field(..., description="blocker fails the run, warning does not")
    ok: bool = Field(..., description="Outcome of the assertion")
    message: str | None = Field(default=None, description="Human diagnostic")
    details: Any = Field(default=None, description="Machine diagnostic payload")

    @property
    def is_infra(self) -> bool:
        """Whether this check reports on the test infrastructure itself."""
        return self.id.startswith(INFRA_PREFIX)
