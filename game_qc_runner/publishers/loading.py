"""Resolve a run-artifact publisher (where report bundles are uploaded) by its key."""

from importlib.metadata import entry_points
from typing import Any

from game_qc_runner.publishers.manifest import PublisherManifest

ENTRY_POINT_GROUP = "game_qc_runner.publishers"


class PublisherNotFoundError(Exception):
    """No installed artifact publisher is registered under the requested key."""


def load_publisher_manifest(key: str) -> PublisherManifest[Any]:
    """Find the manifest of the publisher that uploads run reports for ``key``.

    Args:
        key: Destination name from the runner configuration, matching an
             entry point in the ``game_qc_runner.publishers`` group
             ("local" serves reports from the runs directory, "gcs" uploads them
             to a bucket).

    Returns:
        The manifest used to build the publisher's settings and client.

    Raises:
        PublisherNotFoundError: The key is unknown; the message lists the
            installed destinations.

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            manifest: PublisherManifest[Any] = entry.load()
            return manifest

    available = sorted(e.name for e in entries)
    raise PublisherNotFoundError(
        f"Publisher '{key}' not found. Available publishers: {available}"
    )
