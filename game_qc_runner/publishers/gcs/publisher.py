"""Google Cloud Storage publisher implementation."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

import aiohttp

from game_qc_runner.publishers.base import (
    ArtifactPublisher,
    ArtifactUploadError,
    PublishedRun,
    RunFile,
    collect_run_files,
)
from game_qc_runner.publishers.gcs.config import GCSConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class GCSPublisher(ArtifactPublisher):
    """Uploads run directories to a GCS bucket through the JSON API."""

    config: GCSConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(cls, config: GCSConfig) -> AsyncGenerator["GCSPublisher", None]:
        """Create publisher with managed session lifecycle."""
        headers = {"Authorization": f"Bearer {config.access_token.get_secret_value()}"}
        async with aiohttp.ClientSession(
            base_url=config.api_base_url,
            headers=headers,
        ) as session:
            yield cls(config=config, session=session)

    def run_prefix(self, run_id: str) -> str:
        return f"{self.config.prefix.strip('/')}/{run_id}"

    def public_url(self, object_path: str) -> str:
        base = self.config.public_base_url.rstrip("/")
        return f"{base}/{self.config.bucket}/{quote(object_path)}"

    async def publish_run_dir(self, run_id: str, run_dir: Path) -> PublishedRun:
        """Upload all files concurrently, preserving their relative layout."""
        prefix = self.run_prefix(run_id)
        files = collect_run_files(run_dir)
        log.info(
            "Uploading %d file(s) for run %s to gs://%s/%s",
            len(files),
            run_id,
            self.config.bucket,
            prefix,
        )

        semaphore = asyncio.Semaphore(self.config.max_concurrent_uploads)

        async def upload(run_file: RunFile) -> str:
            async with semaphore:
                return await self.upload_file(run_file, f"{prefix}/{run_file.relative}")

        results = await asyncio.gather(*(upload(f) for f in files), return_exceptions=True)

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            for failure in failures:
                log.error("Artifact upload failed: %s", failure, exc_info=failure)
            raise ArtifactUploadError(
                f"{len(failures)} of {len(files)} artifact upload(s) failed for run {run_id}: "
                f"{failures[0]}"
            )

        return PublishedRun(prefix=prefix, objects=[r for r in results if isinstance(r, str)])

    async def upload_file(self, run_file: RunFile, destination: str) -> str:
        """Upload one file with its metadata in a single multipart request."""
        data = await asyncio.to_thread(run_file.path.read_bytes)
        metadata = {
            "name": destination,
            "contentType": run_file.content_type,
            "cacheControl": run_file.cache_control,
        }

        with aiohttp.MultipartWriter("related") as writer:
            writer.append_json(metadata)
            writer.append(data, {"Content-Type": run_file.content_type})

        url = f"/upload/storage/v1/b/{self.config.bucket}/o"
        async with self.session.post(
            url, params={"uploadType": "multipart"}, data=writer
        ) as response:
            if response.status != 200:
                text = await response.text()
                raise ArtifactUploadError(
                    f"Failed to upload {destination}: {response.status} {text}"
                )

        return destination
