"""Abstract base class for artifact publishers."""

import mimetypes
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

REPORT_OBJECT = "playwright-report/index.html"


class ArtifactUploadError(Exception):
    """Raised when a run directory cannot be published."""


@dataclass(frozen=True, kw_only=True)
class PublishedRun:
    """Where a run's artifacts ended up."""

    prefix: str
    objects: Sequence[str]


@dataclass(frozen=True, kw_only=True)
class RunFile:
    """A file in a run directory and its path relative to that directory."""

    path: Path
    relative: str

    @property
    def content_type(self) -> str:
        return mimetypes.guess_type(self.relative)[0] or "application/octet-stream"

    @property
    def cache_control(self) -> str:
        if self.relative.endswith(".html"):
            return "no-cache"
        return "public, max-age=31536000"


def collect_run_files(run_dir: Path) -> Sequence[RunFile]:
    """All regular files below ``run_dir`` with POSIX relative paths, sorted."""
    return [
        RunFile(path=path, relative=path.relative_to(run_dir).as_posix())
        for path in sorted(run_dir.rglob("*"))
        if path.is_file()
    ]


@dataclass(frozen=True, kw_only=True)
class ArtifactPublisher(ABC):
    """Publishes a run directory and hands out public URLs for its objects.

    The run directory is treated as read-only once publishing starts.
    """

    @abstractmethod
    async def publish_run_dir(self, run_id: str, run_dir: Path) -> PublishedRun:
        """Upload every file under ``run_dir`` below a run-scoped prefix.

        Raises:
            ArtifactUploadError: If any file fails to upload

        """

    @abstractmethod
    def public_url(self, object_path: str) -> str:
        """Public retrieval URL for an object path."""

    def report_url(self, published: PublishedRun) -> str:
        """Public URL of the run's HTML report."""
        return self.public_url(f"{published.prefix}/{REPORT_OBJECT}")
