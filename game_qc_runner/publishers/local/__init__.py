"""Local publisher module."""

from game_qc_runner.publishers.local.config import LocalConfig
from game_qc_runner.publishers.local.manifest import local_manifest
from game_qc_runner.publishers.local.publisher import LocalPublisher

__all__ = ["LocalConfig", "LocalPublisher", "local_manifest"]
