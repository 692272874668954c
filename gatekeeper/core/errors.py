"""Error taxonomy shared by the stores, the token layer and the session coordinator.

Each class carries the HTTP status and the public message used when DEBUG is off;
``gatekeeper.api.errors`` turns them into responses.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class GatekeeperError(Exception):
    status_code = 500
    public_detail = "Internal server error"
    clears_session = False


class MalformedInputError(GatekeeperError):
    status_code = 400
    public_detail = "Bad request"


class CaptchaError(MalformedInputError):
    pass


class ConflictError(GatekeeperError):
    """Unique constraint hit, e.g. username already taken."""

    status_code = 400
    public_detail = "Bad request"


class InvalidCredentialsError(GatekeeperError):
    status_code = 401
    public_detail = "Invalid username or password"


class SessionError(GatekeeperError):
    """The presented tokens do not establish a session; cookies are cleared."""

    status_code = 401
    public_detail = "Unauthorized"
    clears_session = True


class MalformedTokenError(SessionError):
    pass


class InvalidSignatureError(SessionError):
    pass


class TokenExpiredError(SessionError):
    pass


class NotFoundError(SessionError):
    """Registry or credential miss."""


class StoreUnavailableError(GatekeeperError):
    status_code = 500
    public_detail = "Internal server error"


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures raised inside the block into the service taxonomy."""
    try:
        yield
    except IntegrityError as e:
        logger.warning("%s: constraint violation: %s", operation, e.orig)
        raise ConflictError(f"{operation}: constraint violation") from e
    except SQLAlchemyError as e:
        logger.exception("%s failed", operation)
        raise StoreUnavailableError(f"{operation} failed: {type(e).__name__}") from e
