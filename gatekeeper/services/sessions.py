"""Session coordinator: login, rotation, logout and password change over the token issuer,
the renewal registry and the credential store."""

import enum
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from gatekeeper.config import Settings
from gatekeeper.core.clock import Clock, utcnow
from gatekeeper.core.errors import (
    ConflictError,
    GatekeeperError,
    InvalidCredentialsError,
    MalformedInputError,
    MalformedTokenError,
    NotFoundError,
    SessionError,
    TokenExpiredError,
)
from gatekeeper.core.metrics import LOGINS, LOGOUTS, ROTATIONS
from gatekeeper.core.security import PasswordHasher
from gatekeeper.core.tokens import TokenIssuer
from gatekeeper.models.group import Group
from gatekeeper.models.user import User
from gatekeeper.schemas.auth import AccessClaims
from gatekeeper.services.credentials import CredentialStore
from gatekeeper.services.renewal_registry import RenewalRegistry

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    """How a request was authenticated. An unauthenticated request raises SessionError instead."""

    ACCESS = "access"  # access token verified
    RENEWAL = "renewal"  # access token expired, a new pair was minted from the renewal token


@dataclass
class IssuedTokens:
    access_token: str
    renewal_token: str
    token_id: str
    claims: AccessClaims


@dataclass
class SessionResult:
    state: SessionState
    claims: AccessClaims
    tokens: IssuedTokens | None = None


class SessionCoordinator:
    def __init__(
        self,
        conf: Settings,
        issuer: TokenIssuer,
        registry: RenewalRegistry,
        credentials: CredentialStore,
        hasher: PasswordHasher,
    ):
        self._conf = conf
        self.issuer = issuer
        self.registry = registry
        self.credentials = credentials
        self._hasher = hasher

    async def _hash_password(self, password: str) -> str:
        return await run_in_threadpool(self._hasher.hash, password)

    async def _check_password(self, digest: str, password: str) -> bool:
        return await run_in_threadpool(self._hasher.verify, digest, password)

    async def _issue_pair(self, user: User) -> IssuedTokens:
        groups = await self.credentials.list_groups(user.id)
        access, claims = self.issuer.issue_access(user, groups)
        renewal, token_id = self.issuer.issue_renewal(user.id)
        return IssuedTokens(access_token=access, renewal_token=renewal, token_id=token_id, claims=claims)

    async def register(self, username: str, password: str, confirm_password: str) -> tuple[User, list[Group]]:
        username = username.strip()
        if not username:
            raise MalformedInputError("username required")
        if password != confirm_password:
            raise MalformedInputError("passwords do not match")
        try:
            await self.credentials.get_user_by_username(username)
        except NotFoundError:
            pass
        else:
            raise ConflictError("user already exists")
        digest = await self._hash_password(password)
        return await self.credentials.create_user(username, digest)

    async def login(self, username: str, password: str) -> IssuedTokens:
        try:
            user = await self.credentials.get_user_by_username(username.strip())
        except NotFoundError:
            await self._check_password(self._hasher.dummy_digest, password)
            LOGINS.labels(result="unknown_user").inc()
            logger.info("Login failed: unknown username")
            raise InvalidCredentialsError("invalid username or password")
        if not await self._check_password(user.password_hash, password):
            LOGINS.labels(result="bad_password").inc()
            logger.info("Login failed: bad password for user_id=%s", user.id)
            raise InvalidCredentialsError("invalid username or password")
        issued = await self._issue_pair(user)
        await self.registry.save(user.id, issued.token_id, self.issuer.renewal_ttl)
        LOGINS.labels(result="ok").inc()
        logger.info("Login user_id=%s", user.id)
        return issued

    async def authenticate(self, access_token: str | None, renewal_token: str | None) -> SessionResult:
        """Resolve the request's tokens to claims, rotating the pair when the access token has expired.

        Raises SessionError when the request is unauthenticated.
        """
        try:
            claims = self.issuer.verify_access(access_token)
            return SessionResult(state=SessionState.ACCESS, claims=claims)
        except TokenExpiredError:
            pass
        except MalformedTokenError:
            # Access cookie max-age equals the token TTL: a missing cookie is an expired token.
            if access_token or not renewal_token:
                raise
        issued = await self.refresh(renewal_token)
        return SessionResult(state=SessionState.RENEWAL, claims=issued.claims, tokens=issued)

    async def refresh(self, renewal_token: str | None) -> IssuedTokens:
        """Exchange a renewal token for a fresh access/renewal pair."""
        try:
            renewal = self.issuer.verify_renewal(renewal_token)
        except SessionError as e:
            ROTATIONS.labels(result="invalid_token").inc()
            logger.info("Rotation refused: %s", e)
            raise
        try:
            await self.registry.validate(renewal.user_id, renewal.token_id)
            user = await self.credentials.get_user_by_id(renewal.user_id)
        except NotFoundError as e:
            ROTATIONS.labels(result="not_found").inc()
            logger.warning("Rotation refused for user_id=%s: %s", renewal.user_id, e)
            raise
        issued = await self._issue_pair(user)
        try:
            await self.registry.invalidate(renewal.token_id)
        except GatekeeperError as e:
            logger.warning("Failed to invalidate renewal token for user_id=%s, continuing rotation: %s", user.id, e)
        await self.registry.save(user.id, issued.token_id, self.issuer.renewal_ttl)
        ROTATIONS.labels(result="ok").inc()
        logger.info("Rotated renewal token for user_id=%s", user.id)
        return issued

    def current_token_id(self, renewal_token: str | None) -> str | None:
        """token_id of a still-valid renewal token, None otherwise."""
        try:
            return self.issuer.verify_renewal(renewal_token).token_id
        except SessionError:
            return None

    async def logout(self, renewal_token: str | None) -> bool:
        """Hard-delete the current session's record. An unusable token leaves nothing to revoke."""
        token_id = self.current_token_id(renewal_token)
        if token_id is None:
            return False
        revoked = await self.registry.revoke(token_id)
        LOGOUTS.labels(scope="session").inc()
        return revoked

    async def logout_all(self, user_id: int) -> int:
        deleted = await self.registry.delete_all_for_user(user_id)
        LOGOUTS.labels(scope="all").inc()
        return deleted

    async def change_password(
        self,
        claims: AccessClaims,
        current_password: str,
        new_password: str,
        confirm_password: str,
        *,
        keep_token_id: str | None = None,
    ) -> None:
        if new_password == current_password:
            raise MalformedInputError("new password is the same as current password")
        if new_password != confirm_password:
            raise MalformedInputError("passwords do not match")
        user = await self.credentials.get_user_by_id(claims.user_id)
        if not await self._check_password(user.password_hash, current_password):
            raise MalformedInputError("current password is incorrect")
        digest = await self._hash_password(new_password)
        await self.credentials.update_password(user.id, digest)
        logger.info("Password changed for user_id=%s", user.id)
        if self._conf.revoke_sessions_on_password_change:
            await self.registry.delete_all_for_user(user.id, keep_token_id=keep_token_id)


def build_session_coordinator(
    session: AsyncSession,
    conf: Settings,
    hasher: PasswordHasher,
    clock: Clock = utcnow,
) -> SessionCoordinator:
    return SessionCoordinator(
        conf,
        issuer=TokenIssuer(conf, clock=clock),
        registry=RenewalRegistry(session, conf, clock=clock),
        credentials=CredentialStore(session, conf),
        hasher=hasher,
    )
