"""Validation of the COMPLETE message payload sent by a game."""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

COUNTER_FIELDS = ("hintCount", "mistakeCount", "retryCount")
RATIO_FIELDS = ("completion", "accuracy")


@dataclass(frozen=True, kw_only=True)
class SchemaReport:
    """Errors fail the schema check; warnings are recommendations."""

    errors: Sequence[str] = field(default_factory=tuple)
    warnings: Sequence[str] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.errors


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, int | float)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def validate_complete_payload(payload: Any) -> SchemaReport:
    """Validate a COMPLETE payload.

    ``timeMs`` is required. ``score`` is optional. ``extras`` is recommended
    and may carry its statistics directly or under ``extras.stats``.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(payload, Mapping):
        return SchemaReport(errors=("COMPLETE.payload must be an object",))

    time_ms = payload.get("timeMs")
    if not _is_finite_number(time_ms):
        errors.append("COMPLETE.payload.timeMs is required and must be a finite number")
    elif time_ms < 0:
        errors.append("COMPLETE.payload.timeMs must be >= 0")

    if payload.get("score") is None:
        warnings.append("COMPLETE.payload.score is missing (optional).")
    elif not _is_finite_number(payload["score"]):
        errors.append("COMPLETE.payload.score (if present) must be a finite number")

    if "extras" not in payload:
        warnings.append("COMPLETE.payload.extras is missing (recommended).")
        return SchemaReport(errors=tuple(errors), warnings=tuple(warnings))

    extras = payload["extras"]
    if not isinstance(extras, Mapping):
        errors.append("COMPLETE.payload.extras (if present) must be an object")
        return SchemaReport(errors=tuple(errors), warnings=tuple(warnings))

    nested = isinstance(extras.get("stats"), Mapping)
    stats: Mapping[str, Any] = extras["stats"] if nested else extras
    prefix = "extras.stats." if nested else "extras."

    for key in COUNTER_FIELDS:
        if key not in stats:
            warnings.append(f"{prefix}{key} is missing (recommended).")
        elif not _is_finite_number(stats[key]):
            errors.append(f"{key} must be a finite number")
        elif stats[key] < 0:
            errors.append(f"{key} must be >= 0")

    for key in RATIO_FIELDS:
        if key not in stats:
            warnings.append(f"{prefix}{key} is missing (recommended).")
        elif not _is_finite_number(stats[key]):
            errors.append(f"{key} must be a finite number")
        elif not 0 <= stats[key] <= 1:
            errors.append(f"{key} must be in [0, 1]")

    if "completion_history" not in stats:
        warnings.append(f"{prefix}completion_history is missing (recommended).")
    elif not isinstance(stats["completion_history"], list):
        errors.append("completion_history must be an array (if present).")

    return SchemaReport(errors=tuple(errors), warnings=tuple(warnings))
