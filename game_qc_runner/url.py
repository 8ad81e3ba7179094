"""URL helpers for build submission and harness loading."""

from collections.abc import Sequence

from yarl import URL

E2E_PARAM = "e2e"
CACHE_BUST_PARAM = "__run"


def ensure_e2e_param(url: str) -> str:
    """Append ``e2e=1`` so the build exposes its test hooks, unless already set."""
    parsed = URL(url)
    if E2E_PARAM in parsed.query:
        return url
    return str(parsed.update_query({E2E_PARAM: "1"}))


def with_cache_bust(url: str, token: str) -> str:
    """Append a cache-busting token so the frame loads a fresh instance."""
    return str(URL(url).update_query({CACHE_BUST_PARAM: token}))


def parse_allowlist(raw: str) -> Sequence[str]:
    """Parse a comma-separated list of allowed domains."""
    return tuple(d.strip().lower() for d in raw.split(",") if d.strip())


def host_allowed(url: str, allowlist: Sequence[str]) -> bool:
    """Check the URL host equals or is a subdomain of an allowed domain.

    An empty allow-list admits any URL with a host.
    """
    try:
        host = URL(url).host
    except ValueError:
        return False
    if not host:
        return False
    if not allowlist:
        return True
    host = host.lower().rstrip(".")
    return any(
        host == domain or host.endswith(f".{domain}")
        for domain in (d.lower().lstrip(".") for d in allowlist)
    )
