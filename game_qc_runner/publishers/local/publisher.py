"""Publisher that serves artifacts straight from the runs directory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from game_qc_runner.publishers.base import ArtifactPublisher, PublishedRun, collect_run_files
from game_qc_runner.publishers.local.config import LocalConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class LocalPublisher(ArtifactPublisher):
    """No upload; URLs point at the runner's own ``/artifacts`` route."""

    config: LocalConfig

    @classmethod
    @asynccontextmanager
    async def from_config(cls, config: LocalConfig) -> AsyncGenerator["LocalPublisher", None]:
        yield cls(config=config)

    def public_url(self, object_path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{quote(object_path)}"

    async def publish_run_dir(self, run_id: str, run_dir: Path) -> PublishedRun:
        files = collect_run_files(run_dir)
        log.info("Run %s artifacts served locally from %s", run_id, run_dir)
        return PublishedRun(prefix=run_id, objects=[f"{run_id}/{f.relative}" for f in files])
