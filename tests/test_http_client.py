"""Shared outbound HTTP client lifecycle and hCaptcha verification against a mocked endpoint."""

import httpx
import pytest
import pytest_asyncio

from gatekeeper.core.errors import CaptchaError
from gatekeeper.services.captcha import verify_hcaptcha
from gatekeeper.services.http_client import close_http_client, get_http_client, init_http_client

VERIFY_URL = "https://hcaptcha.test/siteverify"


@pytest_asyncio.fixture
async def mocked_client():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path != "/siteverify":
            return httpx.Response(404)
        if b"response=boom" in request.content:
            return httpx.Response(502)
        return httpx.Response(200, json={"success": b"response=ok" in request.content})

    await close_http_client()
    client = init_http_client(timeout=2.0, transport=httpx.MockTransport(handler))
    yield client, seen
    await close_http_client()


@pytest.mark.asyncio
async def test_client_lifecycle():
    await close_http_client()
    with pytest.raises(RuntimeError):
        get_http_client()
    client = init_http_client(timeout=3.0)
    assert init_http_client() is client
    assert get_http_client() is client
    assert client.timeout.read == 3.0
    await close_http_client()
    assert client.is_closed
    with pytest.raises(RuntimeError):
        get_http_client()


@pytest.mark.asyncio
async def test_injected_transport_serves_captcha(mocked_client):
    client, seen = mocked_client
    await verify_hcaptcha(client, "ok", "s3cret", VERIFY_URL)
    assert seen[0].method == "POST"
    assert b"secret=s3cret" in seen[0].content


@pytest.mark.asyncio
@pytest.mark.parametrize("response_token", [None, "", "nope", "boom"])
async def test_captcha_rejections(mocked_client, response_token):
    client, _ = mocked_client
    with pytest.raises(CaptchaError):
        await verify_hcaptcha(client, response_token, "s3cret", VERIFY_URL)
