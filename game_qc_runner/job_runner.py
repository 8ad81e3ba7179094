"""Spawn the test driver process for one run."""

import asyncio
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

STDOUT_FILENAME = "driver.stdout.log"
STDERR_FILENAME = "driver.stderr.log"
WORKERS_FLAG = "--workers"

DEFAULT_DRIVER_COMMAND: Sequence[str] = (sys.executable, "-m", "game_qc_runner.driver")


@dataclass(frozen=True, kw_only=True)
class RunTargets:
    """URLs the driver tests against."""

    hub_url: str
    game_url: str


@dataclass(frozen=True, kw_only=True)
class JobResult:
    """Outcome of the driver process.

    ``spawn_error`` is set when the process could not be started at all, as
    opposed to a driver that ran and reported failing tests.
    """

    exit_code: int
    stdout_path: Path
    stderr_path: Path
    spawn_error: str | None = None


def build_child_env(
    base: Mapping[str, str | None],
    overrides: Mapping[str, str | None],
) -> dict[str, str]:
    """Resolve the child's environment, dropping absent values.

    A ``None`` override removes the variable instead of forwarding it.
    """
    merged: dict[str, str | None] = {**base, **overrides}
    return {key: str(value) for key, value in merged.items() if value is not None}


def single_worker_command(command: Sequence[str]) -> list[str]:
    """Force exactly one driver worker, replacing any configured worker count."""
    args = [arg for arg in command if not arg.startswith(f"{WORKERS_FLAG}=")]
    return [*args, f"{WORKERS_FLAG}=1"]


def normalize_exit_code(returncode: int | None) -> int:
    """Map anything but a clean exit, signals included, to 1."""
    return 0 if returncode == 0 else 1


@dataclass(frozen=True, kw_only=True)
class JobRunner:
    """Runs the driver for one run at a time per instance call.

    There is no timeout here; a hung driver must be killed by whatever
    orchestrates the runner.
    """

    command: Sequence[str] = DEFAULT_DRIVER_COMMAND
    cwd: Path | None = None
    base_env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))

    async def run(self, run_id: str, work_dir: Path, targets: RunTargets) -> JobResult:
        """Run the driver against ``targets`` with ``work_dir`` as its run directory."""
        work_dir.mkdir(parents=True, exist_ok=True)
        stdout_path = work_dir / STDOUT_FILENAME
        stderr_path = work_dir / STDERR_FILENAME

        env = build_child_env(
            self.base_env,
            {
                "CI": "1",
                "RUN_ID": run_id,
                "HUB_URL": targets.hub_url,
                "GAME_URL": targets.game_url,
                "RUN_DIR": str(work_dir),
            },
        )
        command = single_worker_command(self.command)
        log.info("Starting driver for run %s: %s", run_id, " ".join(command))

        with stdout_path.open("ab") as out, stderr_path.open("ab") as err:
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    cwd=self.cwd,
                    env=env,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=out,
                    stderr=err,
                )
                returncode = await process.wait()
            except OSError as exc:
                log.error("Driver for run %s failed to start: %s", run_id, exc, exc_info=exc)
                return JobResult(
                    exit_code=1,
                    stdout_path=stdout_path,
                    stderr_path=stderr_path,
                    spawn_error=str(exc),
                )

        exit_code = normalize_exit_code(returncode)
        if returncode != exit_code:
            log.info("Driver for run %s exited with %s, recorded as %d", run_id, returncode, exit_code)
        log.info("Driver for run %s finished: exit_code=%d", run_id, exit_code)
        return JobResult(exit_code=exit_code, stdout_path=stdout_path, stderr_path=stderr_path)
