"""Session cookies: `access` and `renewal`, http-only, max-age equal to each token's TTL."""

from fastapi import Response

from gatekeeper.config import Settings
from gatekeeper.services.sessions import IssuedTokens

ACCESS_COOKIE = "access"
RENEWAL_COOKIE = "renewal"


def set_session_cookies(response: Response, tokens: IssuedTokens, conf: Settings) -> None:
    for name, value, max_age in (
        (ACCESS_COOKIE, tokens.access_token, conf.access_token_max_age),
        (RENEWAL_COOKIE, tokens.renewal_token, conf.refresh_token_max_age),
    ):
        response.set_cookie(
            key=name,
            value=value,
            max_age=max_age,
            path="/",
            httponly=True,
            secure=conf.secure_cookies,
            samesite=conf.cookie_samesite,
        )


def clear_session_cookies(response: Response, conf: Settings) -> None:
    # Drop cookies set earlier in this request (e.g. a rotation) so the deletion is the only instruction.
    del response.headers["set-cookie"]
    for name in (ACCESS_COOKIE, RENEWAL_COOKIE):
        response.delete_cookie(
            key=name,
            path="/",
            httponly=True,
            secure=conf.secure_cookies,
            samesite=conf.cookie_samesite,
        )
