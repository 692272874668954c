"""Outbound HTTP for the service (today only hCaptcha verification).

One ``httpx.AsyncClient`` is opened in the app lifespan and shared by every request,
so connections are pooled and the configured timeout applies everywhere. The
transport is injectable: tests pass an ``httpx.MockTransport`` to answer the
captcha endpoint without network access.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    if _client is None:
        raise RuntimeError("outbound HTTP client is not open; init_http_client() runs in the app lifespan")
    return _client


def init_http_client(timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Open the shared client. Idempotent: an already open client is returned unchanged."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        logger.debug("Opened outbound HTTP client (timeout=%ss)", timeout)
    return _client


async def close_http_client() -> None:
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
