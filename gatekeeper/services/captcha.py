"""hCaptcha server-side verification for registration."""

import logging

import httpx

from gatekeeper.core.errors import CaptchaError

logger = logging.getLogger(__name__)


async def verify_hcaptcha(client: httpx.AsyncClient, response_token: str | None, secret: str, verify_url: str) -> None:
    """Raise CaptchaError unless hCaptcha accepts the widget response."""
    if not response_token:
        raise CaptchaError("captcha response missing")
    try:
        resp = await client.post(verify_url, data={"secret": secret, "response": response_token})
        resp.raise_for_status()
        payload = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("hCaptcha verification request failed: %s", e)
        raise CaptchaError("captcha verification failed") from e
    if not payload.get("success"):
        logger.info("hCaptcha rejected response: %s", payload.get("error-codes"))
        raise CaptchaError("hcaptcha validation unsuccessful")
