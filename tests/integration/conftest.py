"""Fixtures for integration tests."""

import json
from collections.abc import AsyncGenerator, Mapping
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest
from aiohttp.test_utils import TestClient, TestServer

from game_qc_runner.callback import CallbackDispatcher
from game_qc_runner.job_runner import JobResult, JobRunner, RunTargets
from game_qc_runner.pipeline import RunPipeline
from game_qc_runner.publishers.local import LocalConfig, LocalPublisher
from game_qc_runner.release.machine import ReleaseStateMachine
from game_qc_runner.release.store import InMemoryVersionStore
from game_qc_runner.server.app import create_app
from game_qc_runner.summary_store import LEGACY_FILENAME
from game_qc_runner.testing.games import (
    PASSING_DRIVER_SUMMARY,
    VALID_COMPLETE_PAYLOAD,
    DriverOutputFn,
)


@pytest.fixture
def job_runner() -> Mock:
    """Create mock job runner; what it produces is set through driver_output."""
    return Mock(spec=JobRunner)


@pytest.fixture
def driver_output(job_runner: Mock) -> DriverOutputFn:
    """Return a function that scripts the fake driver; runs pass by default."""

    def _script(summary: Mapping[str, Any] | None, *, exit_code: int = 0) -> None:
        async def run(run_id: str, work_dir: Path, targets: RunTargets) -> JobResult:
            work_dir.mkdir(parents=True, exist_ok=True)
            if summary is not None:
                (work_dir / LEGACY_FILENAME).write_text(json.dumps(summary))
                artifacts = work_dir / "artifacts"
                artifacts.mkdir(exist_ok=True)
                (artifacts / "completePayload.json").write_text(json.dumps(VALID_COMPLETE_PAYLOAD))
            return JobResult(
                exit_code=exit_code,
                stdout_path=work_dir / "driver.stdout.log",
                stderr_path=work_dir / "driver.stderr.log",
            )

        job_runner.run.side_effect = run

    _script(PASSING_DRIVER_SUMMARY)
    return _script


@pytest.fixture
def callback() -> Mock:
    """Create callback dispatcher that always succeeds."""
    dispatcher = Mock(spec=CallbackDispatcher)
    dispatcher.dispatch.return_value = True
    return dispatcher


@pytest.fixture
def pipeline(
    tmp_path: Path, job_runner: Mock, driver_output: DriverOutputFn, callback: Mock
) -> RunPipeline:
    """Create pipeline publishing to the runner's own artifacts route."""
    return RunPipeline(
        runs_root=tmp_path / "runs",
        hub_url="http://runner.test/hub.html",
        job_runner=job_runner,
        publisher=LocalPublisher(config=LocalConfig(base_url="http://runner.test/artifacts")),
        callback=callback,
        allowlist=("example.com",),
        working_dir=tmp_path,
    )


@pytest.fixture
def machine() -> ReleaseStateMachine:
    """Create state machine over an empty in-memory store."""
    return ReleaseStateMachine(store=InMemoryVersionStore())


@pytest.fixture
async def client(
    pipeline: RunPipeline, machine: ReleaseStateMachine
) -> AsyncGenerator[TestClient, None]:
    """Serve the full application on a random local port."""
    async with TestClient(TestServer(create_app(pipeline, machine))) as test_client:
        yield test_client
