"""Tests for URL helpers."""

import pytest
from yarl import URL

from game_qc_runner.url import ensure_e2e_param, host_allowed, parse_allowlist, with_cache_bust


def test_ensure_e2e_param_appends_flag() -> None:
    """Adds e2e=1 to a URL without it."""
    url = ensure_e2e_param("https://games.example.com/g/index.html?lang=vi")

    assert URL(url).query["e2e"] == "1"
    assert URL(url).query["lang"] == "vi"


def test_ensure_e2e_param_keeps_existing_flag() -> None:
    """Leaves an explicit e2e value untouched."""
    url = "https://games.example.com/g/index.html?e2e=0"

    assert ensure_e2e_param(url) == url


def test_with_cache_bust_always_sets_fresh_token() -> None:
    """The cache-busting token replaces any earlier one."""
    first = with_cache_bust("https://games.example.com/g/", "aaa")
    second = with_cache_bust(first, "bbb")

    assert URL(second).query.getall("__run") == ["bbb"]


def test_parse_allowlist() -> None:
    """Splits, trims and lower-cases domains."""
    assert parse_allowlist(" Example.com, ,cdn.games.io ") == ("example.com", "cdn.games.io")


@pytest.mark.parametrize(
    ("url", "allowed"),
    [
        ("https://example.com/g", True),
        ("https://cdn.example.com/g", True),
        ("https://EXAMPLE.com/g", True),
        ("https://evil.com/g", False),
        ("https://notexample.com/g", False),
        ("https://example.com.evil.com/g", False),
    ],
)
def test_host_allowed(url: str, allowed: bool) -> None:
    """Host must equal or be a subdomain of an allowed entry."""
    assert host_allowed(url, ["example.com"]) is allowed


def test_host_allowed_with_empty_allowlist() -> None:
    """Without an allow-list every URL with a host is accepted."""
    assert host_allowed("https://anything.test/x", []) is True
    assert host_allowed("not a url", []) is False
