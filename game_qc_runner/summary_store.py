"""Persistence of run summaries and merging with the driver's summary file.

The driver process writes its own ``iruka-summary.json`` while it runs. The
runner's freshly computed summary is merged with that file as an explicit
two-source step: when the driver file exists, its checks, warnings and status
take precedence; the fresh summary only supplies defaults.
"""

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from game_qc_runner.models.check import Check
from game_qc_runner.models.summary import Summary

log = logging.getLogger(__name__)

SUMMARY_FILENAME = "summary.json"
LEGACY_FILENAME = "iruka-summary.json"
LEGACY_DIRNAME = "test-results"

_STATUSES = frozenset(["pass", "fail", "infra_error"])
_checks_adapter = TypeAdapter(list[Check])


def summary_path(run_dir: Path) -> Path:
    return run_dir / SUMMARY_FILENAME


def write_summary(path: Path, summary: Summary) -> Path:
    """Write the summary as the single source of truth for a run."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_wire(), indent=2), encoding="utf-8")
    return path


def read_summary(path: Path) -> Summary:
    """Read a summary previously written by ``write_summary``."""
    return Summary.model_validate_json(path.read_text(encoding="utf-8"))


def legacy_candidates(run_dir: Path, working_dir: Path) -> Sequence[Path]:
    """Locations checked for a driver summary, most specific first."""
    return (
        run_dir / LEGACY_FILENAME,
        working_dir / LEGACY_DIRNAME / LEGACY_FILENAME,
    )


def load_legacy_summary(run_dir: Path, working_dir: Path) -> dict[str, Any] | None:
    """Return the first readable driver summary, or None if there is none."""
    for candidate in legacy_candidates(run_dir, working_dir):
        if not candidate.is_file():
            continue
        try:
            data = json.loads(candidate.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warning("Ignoring unreadable driver summary %s: %s", candidate, exc)
            continue
        if isinstance(data, dict):
            log.info("Merging driver summary from %s", candidate)
            return data
    return None


def merge_legacy(summary: Summary, legacy: dict[str, Any]) -> Summary:
    """Overlay the driver summary onto a freshly computed one.

    Checks, warnings and status come from the driver file when present.
    Artifacts the driver recorded are added under names the fresh summary
    does not already define.
    """
    updates: dict[str, Any] = {}

    if (raw_checks := legacy.get("checks")) is not None:
        try:
            updates["checks"] = tuple(_checks_adapter.validate_python(raw_checks))
        except ValidationError as exc:
            log.warning("Driver summary has malformed checks, keeping defaults: %s", exc)

    if isinstance(raw_warnings := legacy.get("warnings"), list):
        updates["warnings"] = tuple(str(w) for w in raw_warnings)

    if (status := legacy.get("status")) in _STATUSES:
        updates["status"] = status

    if isinstance(raw_artifacts := legacy.get("artifacts"), dict):
        artifacts = {str(k): str(v) for k, v in raw_artifacts.items()}
        artifacts.update(summary.artifacts)
        updates["artifacts"] = artifacts

    return summary.model_copy(update=updates)
