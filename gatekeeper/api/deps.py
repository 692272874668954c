"""FastAPI dependencies: settings, session coordinator, current session from cookies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.api.cookies import ACCESS_COOKIE, RENEWAL_COOKIE, set_session_cookies
from gatekeeper.config import Settings, get_settings
from gatekeeper.core.security import BcryptHasher, PasswordHasher
from gatekeeper.db.session import get_db
from gatekeeper.schemas.auth import AccessClaims
from gatekeeper.services.sessions import SessionCoordinator, SessionResult, build_session_coordinator


@lru_cache
def _bcrypt_hasher(rounds: int) -> BcryptHasher:
    return BcryptHasher(rounds)


def get_password_hasher(conf: Annotated[Settings, Depends(get_settings)]) -> PasswordHasher:
    return _bcrypt_hasher(conf.bcrypt_rounds)


async def get_session_coordinator(
    session: Annotated[AsyncSession, Depends(get_db)],
    conf: Annotated[Settings, Depends(get_settings)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> SessionCoordinator:
    return build_session_coordinator(session, conf, hasher)


async def get_current_session(
    request: Request,
    response: Response,
    coordinator: Annotated[SessionCoordinator, Depends(get_session_coordinator)],
    conf: Annotated[Settings, Depends(get_settings)],
) -> SessionResult:
    """Authenticate from the session cookies; a rotated pair is written back onto the response.

    SessionError propagates to the exception handler, which answers 401 and clears the cookies.
    """
    result = await coordinator.authenticate(
        request.cookies.get(ACCESS_COOKIE),
        request.cookies.get(RENEWAL_COOKIE),
    )
    if result.tokens is not None:
        set_session_cookies(response, result.tokens, conf)
    return result


async def get_current_claims(
    result: Annotated[SessionResult, Depends(get_current_session)],
) -> AccessClaims:
    return result.claims
