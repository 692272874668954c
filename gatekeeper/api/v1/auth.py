"""Auth: session info, register, login, refresh, password change, logout, logout-all."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from gatekeeper.api.cookies import RENEWAL_COOKIE, clear_session_cookies, set_session_cookies
from gatekeeper.api.deps import get_current_claims, get_current_session, get_session_coordinator
from gatekeeper.config import Settings, get_settings, settings
from gatekeeper.core.rate_limit import limiter
from gatekeeper.schemas.auth import (
    AccessClaims,
    AuthOut,
    DetailOut,
    GroupOut,
    LoginBody,
    PasswordBody,
    RegisterBody,
)
from gatekeeper.services.captcha import verify_hcaptcha
from gatekeeper.services.http_client import get_http_client
from gatekeeper.services.sessions import SessionCoordinator, SessionResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.get(
    "/",
    response_model=AuthOut,
    summary="Current session",
    responses={401: {"description": "No valid session; cookies cleared"}},
)
async def home(claims: Annotated[AccessClaims, Depends(get_current_claims)]) -> AuthOut:
    return AuthOut.from_claims(claims)


@router.post(
    "/register",
    response_model=AuthOut,
    status_code=201,
    summary="Register a new user",
    responses={
        400: {"description": "Invalid input, passwords do not match, captcha failed or username taken"},
        404: {"description": "Registration disabled"},
    },
)
async def register(
    body: RegisterBody,
    coordinator: Annotated[SessionCoordinator, Depends(get_session_coordinator)],
    conf: Annotated[Settings, Depends(get_settings)],
) -> AuthOut:
    if not conf.allow_register:
        raise HTTPException(status_code=404, detail="Not found")
    if conf.hcaptcha_secret:
        await verify_hcaptcha(get_http_client(), body.captcha_response, conf.hcaptcha_secret, conf.hcaptcha_verify_url)
    user, groups = await coordinator.register(body.username, body.password, body.confirm_password)
    return AuthOut(
        username=user.username,
        external_id=user.external_id,
        groups=[GroupOut.model_validate(g) for g in groups],
    )


@router.post(
    "/login",
    response_model=AuthOut,
    summary="Login with username and password",
    responses={401: {"description": "Invalid username or password"}},
)
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    response: Response,
    body: LoginBody,
    coordinator: Annotated[SessionCoordinator, Depends(get_session_coordinator)],
    conf: Annotated[Settings, Depends(get_settings)],
) -> AuthOut:
    issued = await coordinator.login(body.username, body.password)
    set_session_cookies(response, issued, conf)
    return AuthOut.from_claims(issued.claims)


@router.post(
    "/refresh",
    response_model=AuthOut,
    summary="Exchange the renewal cookie for a new access/renewal pair",
    responses={401: {"description": "Renewal token missing, invalid, expired or revoked"}},
)
async def refresh(
    request: Request,
    response: Response,
    coordinator: Annotated[SessionCoordinator, Depends(get_session_coordinator)],
    conf: Annotated[Settings, Depends(get_settings)],
) -> AuthOut:
    issued = await coordinator.refresh(request.cookies.get(RENEWAL_COOKIE))
    set_session_cookies(response, issued, conf)
    return AuthOut.from_claims(issued.claims)


@router.post(
    "/password",
    response_model=DetailOut,
    summary="Change password (requires the current one)",
    responses={
        400: {"description": "Passwords do not match, unchanged, or current password incorrect"},
        401: {"description": "No valid session"},
    },
)
async def change_password(
    request: Request,
    body: PasswordBody,
    current: Annotated[SessionResult, Depends(get_current_session)],
    coordinator: Annotated[SessionCoordinator, Depends(get_session_coordinator)],
) -> DetailOut:
    if current.tokens is not None:
        keep_token_id = current.tokens.token_id
    else:
        keep_token_id = coordinator.current_token_id(request.cookies.get(RENEWAL_COOKIE))
    await coordinator.change_password(
        current.claims,
        body.current_password,
        body.new_password,
        body.confirm_password,
        keep_token_id=keep_token_id,
    )
    return DetailOut(detail="Password changed")


@router.post("/logout", response_model=DetailOut, summary="End the current session")
async def logout(
    request: Request,
    response: Response,
    coordinator: Annotated[SessionCoordinator, Depends(get_session_coordinator)],
    conf: Annotated[Settings, Depends(get_settings)],
) -> DetailOut:
    await coordinator.logout(request.cookies.get(RENEWAL_COOKIE))
    clear_session_cookies(response, conf)
    return DetailOut(detail="Logged out")


@router.post(
    "/logout-all",
    response_model=DetailOut,
    summary="End every session of the current user",
    responses={401: {"description": "No valid session"}},
)
async def logout_all(
    response: Response,
    claims: Annotated[AccessClaims, Depends(get_current_claims)],
    coordinator: Annotated[SessionCoordinator, Depends(get_session_coordinator)],
    conf: Annotated[Settings, Depends(get_settings)],
) -> DetailOut:
    deleted = await coordinator.logout_all(claims.user_id)
    logger.info("Logged out %s session(s) for user_id=%s", deleted, claims.user_id)
    clear_session_cookies(response, conf)
    return DetailOut(detail="Logged out all sessions")
