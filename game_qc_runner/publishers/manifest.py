"""Describe how to configure and open one report-artifact destination."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from game_qc_runner.publishers.base import ArtifactPublisher


@dataclass(frozen=True, kw_only=True)
class PublisherManifest[ConfigT: BaseModel]:
    """Settings model and client factory for one artifact destination.

    ``config_cls`` validates the destination settings taken from the runner
    configuration. ``publisher_factory`` turns them into an async context
    manager yielding the publisher that uploads a run's report directory.
    """

    config_cls: type[ConfigT]
    publisher_factory: Callable[[ConfigT], AbstractAsyncContextManager[ArtifactPublisher]]
