"""Signed access and renewal tokens (HMAC JWT via python-jose).

Both token kinds share the secret and are told apart by the ``typ`` claim.
Verification checks the signature before the expiry, so a correctly signed but
expired token is reported as expired and a forged one as invalid, never the
other way round. Expiry is judged by the injected clock, the same one that
stamps iat and exp at issue time.
"""

import secrets
from collections.abc import Iterable
from datetime import timedelta
from typing import Any, Protocol

from jose import jwt
from jose.exceptions import JWTClaimsError, JWTError
from pydantic import ValidationError

from gatekeeper.config import Settings
from gatekeeper.core.clock import Clock, utcnow
from gatekeeper.core.errors import InvalidSignatureError, MalformedTokenError, TokenExpiredError
from gatekeeper.schemas.auth import AccessClaims, GroupOut, RenewalClaims

ACCESS_TOKEN_TYPE = "access"
RENEWAL_TOKEN_TYPE = "renewal"
TOKEN_ID_BYTES = 16  # 128 bits


class TokenSubject(Protocol):
    id: int
    username: str
    external_id: str


class TokenGroup(Protocol):
    id: int
    name: str


class TokenIssuer:
    def __init__(self, conf: Settings, clock: Clock = utcnow):
        self._key = conf.secret_key
        self._algorithm = conf.jwt_algorithm
        self._issuer = conf.jwt_issuer
        self.access_ttl = timedelta(minutes=conf.access_token_expire_minutes)
        self.renewal_ttl = timedelta(minutes=conf.refresh_token_expire_minutes)
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock().timestamp())

    def _encode(self, payload: dict[str, Any]) -> str:
        result = jwt.encode(payload, self._key, algorithm=self._algorithm)
        return result if isinstance(result, str) else result.decode("utf-8")

    def issue_access(self, user: TokenSubject, groups: Iterable[TokenGroup]) -> tuple[str, AccessClaims]:
        issued_at = self._now()
        claims = AccessClaims(
            user_id=user.id,
            username=user.username,
            external_id=user.external_id,
            groups=[GroupOut(id=g.id, name=g.name) for g in groups],
            issued_at=issued_at,
            expires_at=issued_at + int(self.access_ttl.total_seconds()),
        )
        payload = {
            "sub": str(claims.user_id),
            "typ": ACCESS_TOKEN_TYPE,
            "iss": self._issuer,
            "username": claims.username,
            "external_id": claims.external_id,
            "groups": [g.model_dump() for g in claims.groups],
            "iat": claims.issued_at,
            "exp": claims.expires_at,
        }
        return self._encode(payload), claims

    def issue_renewal(self, user_id: int) -> tuple[str, str]:
        """Return (token, token_id); the caller persists token_id in the registry."""
        token_id = secrets.token_urlsafe(TOKEN_ID_BYTES)
        issued_at = self._now()
        payload = {
            "sub": str(user_id),
            "typ": RENEWAL_TOKEN_TYPE,
            "iss": self._issuer,
            "jti": token_id,
            "iat": issued_at,
            "exp": issued_at + int(self.renewal_ttl.total_seconds()),
        }
        return self._encode(payload), token_id

    def _decode(self, token: str | None, expected_type: str) -> dict[str, Any]:
        if not token:
            raise MalformedTokenError(f"{expected_type} token missing")
        try:
            jwt.get_unverified_header(token)
        except JWTError as e:
            raise MalformedTokenError(f"{expected_type} token is not a JWT") from e
        try:
            # exp is checked below against the issuer's clock
            payload = jwt.decode(
                token,
                self._key,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"verify_exp": False},
            )
        except JWTClaimsError as e:
            raise MalformedTokenError(f"{expected_type} token claims invalid: {e}") from e
        except JWTError as e:
            raise InvalidSignatureError(f"{expected_type} token signature invalid") from e
        if payload.get("typ") != expected_type:
            raise MalformedTokenError(f"expected {expected_type} token, got {payload.get('typ')!r}")
        exp = payload.get("exp")
        if not isinstance(exp, int) or isinstance(exp, bool):
            raise MalformedTokenError(f"{expected_type} token has no valid exp")
        if exp < self._now():
            raise TokenExpiredError(f"{expected_type} token expired")
        return payload

    def verify_access(self, token: str | None) -> AccessClaims:
        payload = self._decode(token, ACCESS_TOKEN_TYPE)
        try:
            return AccessClaims(
                user_id=int(payload["sub"]),
                username=payload["username"],
                external_id=payload["external_id"],
                groups=payload["groups"],
                issued_at=payload["iat"],
                expires_at=payload["exp"],
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise MalformedTokenError(f"access token claims incomplete: {e}") from e

    def verify_renewal(self, token: str | None) -> RenewalClaims:
        payload = self._decode(token, RENEWAL_TOKEN_TYPE)
        try:
            return RenewalClaims(
                user_id=int(payload["sub"]),
                token_id=payload["jti"],
                issued_at=payload["iat"],
                expires_at=payload["exp"],
            )
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            raise MalformedTokenError(f"renewal token claims incomplete: {e}") from e
