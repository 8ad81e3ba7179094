"""Integration tests for the callback dispatcher."""

import json

from aiohttp import ClientConnectionError
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr
from yarl import URL

from game_qc_runner.callback import (
    SIGNATURE_HEADER,
    CallbackDispatcher,
    encode_payload,
    sign_body,
    verify_signature,
)

CALLBACK_URL = "http://console.test/api/qc/callback"
PAYLOAD = {"runId": "run-1", "status": "pass", "summary": {}, "reportUrl": None, "meta": {}}


def sent_request(aioresponses: aioresponses_cls) -> tuple[bytes, dict[str, str]]:
    (call,) = aioresponses.requests[("POST", URL(CALLBACK_URL))]
    return call.kwargs["data"], call.kwargs["headers"]


async def test_signs_body_when_secret_configured(aioresponses: aioresponses_cls) -> None:
    """The signature header is the HMAC of the exact bytes sent."""
    aioresponses.post(CALLBACK_URL, status=204)
    dispatcher = CallbackDispatcher(url=CALLBACK_URL, secret=SecretStr("s3cret"))

    delivered = await dispatcher.dispatch(PAYLOAD)

    body, headers = sent_request(aioresponses)
    assert delivered is True
    assert json.loads(body) == PAYLOAD
    assert headers[SIGNATURE_HEADER] == sign_body("s3cret", body)
    assert verify_signature("s3cret", body, headers[SIGNATURE_HEADER])


async def test_omits_signature_without_secret(aioresponses: aioresponses_cls) -> None:
    """Unauthenticated callbacks carry no signature header."""
    aioresponses.post(CALLBACK_URL, status=200)

    await CallbackDispatcher(url=CALLBACK_URL).dispatch(PAYLOAD)

    _, headers = sent_request(aioresponses)
    assert SIGNATURE_HEADER not in headers


async def test_non_2xx_is_swallowed(aioresponses: aioresponses_cls) -> None:
    """A rejected callback is logged, not raised."""
    aioresponses.post(CALLBACK_URL, status=500, body="boom")

    assert await CallbackDispatcher(url=CALLBACK_URL).dispatch(PAYLOAD) is False


async def test_network_error_is_swallowed(aioresponses: aioresponses_cls) -> None:
    """Connection failures never propagate."""
    aioresponses.post(CALLBACK_URL, exception=ClientConnectionError("refused"))

    assert await CallbackDispatcher(url=CALLBACK_URL).dispatch(PAYLOAD) is False


async def test_no_url_means_no_request(aioresponses: aioresponses_cls) -> None:
    """Without a callback URL nothing is sent."""
    assert await CallbackDispatcher(url=None).dispatch(PAYLOAD) is False
    assert aioresponses.requests == {}


def test_verify_signature_rejects_tampering() -> None:
    """Any change to the body or a missing header fails verification."""
    body = encode_payload(PAYLOAD)
    signature = sign_body("k", body)

    assert verify_signature("k", body, signature)
    assert not verify_signature("k", body + b" ", signature)
    assert not verify_signature("other", body, signature)
    assert not verify_signature("k", body, None)
