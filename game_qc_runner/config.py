"""Runner configuration."""

import json
import os
import shlex
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr

from game_qc_runner.job_runner import DEFAULT_DRIVER_COMMAND
from game_qc_runner.models.base import Model
from game_qc_runner.url import parse_allowlist


class RunnerConfig(Model):
    """Configuration for the runner service and one-shot runs."""

    port: int = 8080
    runs_root: Path = Path("runs")
    allowlist_domains: Sequence[str] = ()
    callback_url: str | None = None
    hmac_secret: SecretStr | None = None
    publisher: str = "local"
    publisher_config: Mapping[str, Any] = Field(default_factory=dict)
    driver_command: Sequence[str] = DEFAULT_DRIVER_COMMAND
    public_base_url: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RunnerConfig":
        """Build configuration from environment variables; unset ones keep defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        if port := env.get("PORT"):
            values["port"] = int(port)
        if runs_root := env.get("RUNS_ROOT"):
            values["runs_root"] = Path(runs_root)
        if allowlist := env.get("ALLOWLIST_DOMAINS"):
            values["allowlist_domains"] = parse_allowlist(allowlist)
        if callback_url := env.get("CALLBACK_URL"):
            values["callback_url"] = callback_url
        if secret := env.get("HMAC_SECRET"):
            values["hmac_secret"] = SecretStr(secret)
        if publisher := env.get("PUBLISHER"):
            values["publisher"] = publisher
        if publisher_config := env.get("PUBLISHER_CONFIG"):
            values["publisher_config"] = json.loads(publisher_config)
        if driver_command := env.get("DRIVER_COMMAND"):
            values["driver_command"] = tuple(shlex.split(driver_command))
        if public_base_url := env.get("PUBLIC_BASE_URL"):
            values["public_base_url"] = public_base_url.rstrip("/")

        return cls(**values)

    def base_url(self) -> str:
        """Where this runner is reachable; defaults to the local port."""
        return self.public_base_url or f"http://127.0.0.1:{self.port}"

    def hub_url(self) -> str:
        """URL of the static harness page the driver opens."""
        return f"{self.base_url()}/hub.html"
