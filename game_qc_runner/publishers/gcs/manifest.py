"""Google Cloud Storage publisher manifest."""

from game_qc_runner.publishers.gcs.config import GCSConfig
from game_qc_runner.publishers.gcs.publisher import GCSPublisher
from game_qc_runner.publishers.manifest import PublisherManifest

gcs_manifest = PublisherManifest(
    config_cls=GCSConfig,
    publisher_factory=GCSPublisher.from_config,
)
