"""Exception handlers: service errors and request validation failures to JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from gatekeeper.api.cookies import clear_session_cookies
from gatekeeper.config import get_settings
from gatekeeper.core.errors import GatekeeperError

logger = logging.getLogger(__name__)


async def gatekeeper_error_handler(request: Request, exc: GatekeeperError) -> JSONResponse:
    conf = get_settings()
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    detail = exc.public_detail
    if conf.debug:
        detail += f": {exc}"
    response = JSONResponse(status_code=exc.status_code, content={"detail": detail})
    if exc.clears_session:
        clear_session_cookies(response, conf)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = "Bad request"
    if get_settings().debug:
        detail += f": {exc.errors()}"
    return JSONResponse(status_code=400, content={"detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatekeeperError, gatekeeper_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
