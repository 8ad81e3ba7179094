"""Google Cloud Storage publisher module."""

from game_qc_runner.publishers.gcs.config import GCSConfig
from game_qc_runner.publishers.gcs.manifest import gcs_manifest
from game_qc_runner.publishers.gcs.publisher import GCSPublisher

__all__ = ["GCSConfig", "GCSPublisher", "gcs_manifest"]
