"""Local publisher manifest."""

from game_qc_runner.publishers.local.config import LocalConfig
from game_qc_runner.publishers.local.publisher import LocalPublisher
from game_qc_runner.publishers.manifest import PublisherManifest

local_manifest = PublisherManifest(
    config_cls=LocalConfig,
    publisher_factory=LocalPublisher.from_config,
)
