"""Tests for runner configuration."""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

from game_qc_runner.config import RunnerConfig


def test_defaults() -> None:
    """Empty environment yields local defaults."""
    config = RunnerConfig.from_env({})

    assert config.port == 8080
    assert config.runs_root == Path("runs")
    assert config.allowlist_domains == ()
    assert config.callback_url is None
    assert config.hmac_secret is None
    assert config.publisher == "local"
    assert config.driver_command[0] == sys.executable
    assert config.hub_url() == "http://127.0.0.1:8080/hub.html"


def test_from_env() -> None:
    """Every variable is read and parsed."""
    config = RunnerConfig.from_env(
        {
            "PORT": "9100",
            "RUNS_ROOT": "/data/runs",
            "ALLOWLIST_DOMAINS": " Example.com, cdn.test ,",
            "CALLBACK_URL": "https://hooks.test/qc",
            "HMAC_SECRET": "s3cret",
            "PUBLISHER": "gcs",
            "PUBLISHER_CONFIG": '{"bucket": "qc-artifacts"}',
            "DRIVER_COMMAND": "node driver.js --reporter='list'",
            "PUBLIC_BASE_URL": "https://runner.test/",
        }
    )

    assert config.port == 9100
    assert config.runs_root == Path("/data/runs")
    assert config.allowlist_domains == ("example.com", "cdn.test")
    assert config.callback_url == "https://hooks.test/qc"
    assert config.hmac_secret is not None
    assert config.hmac_secret.get_secret_value() == "s3cret"
    assert "s3cret" not in repr(config)
    assert config.publisher == "gcs"
    assert config.publisher_config == {"bucket": "qc-artifacts"}
    assert tuple(config.driver_command) == ("node", "driver.js", "--reporter=list")
    assert config.base_url() == "https://runner.test"
    assert config.hub_url() == "https://runner.test/hub.html"


def test_invalid_port_rejected() -> None:
    """A non-numeric port is an error, not a silent default."""
    with pytest.raises(ValueError):
        RunnerConfig.from_env({"PORT": "http"})


def test_config_is_immutable() -> None:
    """Overrides go through model_copy; the loaded config never changes."""
    config = RunnerConfig.from_env({})

    with pytest.raises(ValidationError):
        config.port = 9000  # type: ignore[misc]

    assert config.model_copy(update={"port": 9000}).port == 9000
    assert config.port == 8080
