"""Models for messages exchanged between the harness page and a game."""

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import ConfigDict, Field

from game_qc_runner.models.base import Model

type Direction = Literal["HUB → GAME", "GAME → HUB"]

HUB_TO_GAME: Direction = "HUB → GAME"
GAME_TO_HUB: Direction = "GAME → HUB"


class LogEntry(Model):
    """One message observed by the harness, in arrival order."""

    seq: int = Field(..., ge=0, description="Monotonic sequence number")
    direction: Direction = Field(..., alias="dir")
    msg: Mapping[str, Any] = Field(default_factory=dict)
    at_ms: float = Field(default=0.0, description="Harness clock, milliseconds")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def type(self) -> str | None:
        value = self.msg.get("type")
        return value if isinstance(value, str) else None

    @property
    def payload(self) -> Any:
        return self.msg.get("payload")


class HarnessState(Model):
    """Test hooks exposed by the game inside the harness frame."""

    spy_present: bool = False
    driver_present: bool = False
    driver_methods: Mapping[str, bool] = Field(default_factory=dict)
    spy_summary: Mapping[str, int] = Field(default_factory=dict)
