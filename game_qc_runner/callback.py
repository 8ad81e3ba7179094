"""One-shot authenticated notification of a finished run."""

import hashlib
import hmac
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from pydantic import SecretStr

log = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-iruka-signature"
DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=10)


def sign_body(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of ``body`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check a received signature header against the raw request body."""
    if not signature:
        return False
    return hmac.compare_digest(sign_body(secret, body), signature)


def encode_payload(payload: Mapping[str, Any]) -> bytes:
    """Serialize exactly once; the same bytes are signed and sent."""
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True, kw_only=True)
class CallbackDispatcher:
    """Posts the run result to the configured callback URL.

    Delivery is attempted once. Network errors and non-2xx responses are
    logged and never affect the run's outcome.
    """

    url: str | None
    secret: SecretStr | None = field(default=None, repr=False)
    timeout: aiohttp.ClientTimeout = DEFAULT_TIMEOUT

    def headers_for(self, body: bytes) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.secret is not None and self.secret.get_secret_value():
            headers[SIGNATURE_HEADER] = sign_body(self.secret.get_secret_value(), body)
        return headers

    async def dispatch(self, payload: Mapping[str, Any]) -> bool:
        """Send ``payload``; returns whether the receiver acknowledged it."""
        if not self.url:
            return False

        body = encode_payload(payload)
        run_id = payload.get("runId")
        try:
            async with (
                aiohttp.ClientSession(timeout=self.timeout) as session,
                session.post(self.url, data=body, headers=self.headers_for(body)) as response,
            ):
                if 200 <= response.status < 300:
                    log.info("Callback delivered for run %s: %d", run_id, response.status)
                    return True
                text = await response.text()
                log.warning(
                    "Callback for run %s rejected: %d %s", run_id, response.status, text
                )
                return False
        except (aiohttp.ClientError, TimeoutError) as exc:
            log.warning("Callback for run %s failed: %s", run_id, exc)
            return False
