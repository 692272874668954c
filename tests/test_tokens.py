"""Unit tests for access/renewal token issue and verification: round trip, expiry vs invalid signature."""

import base64
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from jose import jwt

from gatekeeper.config import settings
from gatekeeper.core.errors import InvalidSignatureError, MalformedTokenError, TokenExpiredError
from gatekeeper.core.tokens import TokenIssuer
from gatekeeper.schemas.auth import GroupOut
from tests.conftest import FrozenClock

USER = SimpleNamespace(id=42, username="alice", external_id="6f1c1c55-3f0b-4a4e-9e55-2b8f1a1f2a10")
GROUPS = [GroupOut(id=1, name="user"), GroupOut(id=2, name="admin")]


def _past_clock(**delta):
    then = datetime.now(timezone.utc) - timedelta(**delta)
    return lambda: then


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode("utf-8")).rstrip(b"=").decode("ascii")


def test_access_roundtrip_keeps_groups():
    issuer = TokenIssuer(settings)
    token, claims = issuer.issue_access(USER, GROUPS)
    assert isinstance(token, str)
    verified = issuer.verify_access(token)
    assert verified.groups == GROUPS
    assert verified.user_id == 42
    assert verified.username == "alice"
    assert verified.external_id == USER.external_id
    assert verified == claims


def test_access_expiry_is_issue_time_plus_ttl():
    issuer = TokenIssuer(settings)
    _, claims = issuer.issue_access(USER, GROUPS)
    assert claims.expires_at - claims.issued_at == settings.access_token_expire_minutes * 60


def test_access_accepts_orm_like_groups():
    issuer = TokenIssuer(settings)
    token, _ = issuer.issue_access(USER, [SimpleNamespace(id=7, name="ops")])
    assert issuer.verify_access(token).groups == [GroupOut(id=7, name="ops")]


def test_expired_access_token_reports_expired():
    """Issued two hours ago with a 20 minute TTL: expired, never an invalid signature."""
    token, _ = TokenIssuer(settings, clock=_past_clock(hours=2)).issue_access(USER, GROUPS)
    with pytest.raises(TokenExpiredError):
        TokenIssuer(settings).verify_access(token)


def test_expired_token_with_wrong_key_reports_invalid_signature():
    other = settings.model_copy(update={"secret_key": "another-secret-another-secret-0000"})
    token, _ = TokenIssuer(other, clock=_past_clock(hours=2)).issue_access(USER, GROUPS)
    with pytest.raises(InvalidSignatureError):
        TokenIssuer(settings).verify_access(token)


def test_wrong_key_raises_invalid_signature():
    token, _ = TokenIssuer(settings).issue_access(USER, GROUPS)
    other = settings.model_copy(update={"secret_key": "another-secret-another-secret-0000"})
    with pytest.raises(InvalidSignatureError):
        TokenIssuer(other).verify_access(token)


def test_tampered_payload_raises_invalid_signature():
    issuer = TokenIssuer(settings)
    token, _ = issuer.issue_access(USER, GROUPS)
    header, payload, signature = token.split(".")
    claims = jwt.get_unverified_claims(token)
    claims["groups"] = [{"id": 99, "name": "root"}]
    forged = ".".join([header, _b64(claims), signature])
    with pytest.raises(InvalidSignatureError):
        issuer.verify_access(forged)


@pytest.mark.parametrize("token", [None, "", "not-a-token", "a.b"])
def test_garbage_raises_malformed(token):
    with pytest.raises(MalformedTokenError):
        TokenIssuer(settings).verify_access(token)


def test_renewal_token_is_not_an_access_token():
    issuer = TokenIssuer(settings)
    renewal, _ = issuer.issue_renewal(USER.id)
    access, _ = issuer.issue_access(USER, GROUPS)
    with pytest.raises(MalformedTokenError):
        issuer.verify_access(renewal)
    with pytest.raises(MalformedTokenError):
        issuer.verify_renewal(access)


def test_foreign_issuer_is_rejected():
    other = settings.model_copy(update={"jwt_issuer": "someone-else"})
    token, _ = TokenIssuer(other).issue_access(USER, GROUPS)
    with pytest.raises(MalformedTokenError):
        TokenIssuer(settings).verify_access(token)


def test_renewal_roundtrip():
    issuer = TokenIssuer(settings)
    token, token_id = issuer.issue_renewal(USER.id)
    claims = issuer.verify_renewal(token)
    assert claims.user_id == USER.id
    assert claims.token_id == token_id
    assert claims.expires_at - claims.issued_at == settings.refresh_token_expire_minutes * 60


def test_renewal_token_ids_are_unique():
    issuer = TokenIssuer(settings)
    ids = {issuer.issue_renewal(USER.id)[1] for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) >= 22 for i in ids)  # 16 random bytes, urlsafe base64


def test_expired_renewal_token_reports_expired():
    token, _ = TokenIssuer(settings, clock=_past_clock(days=31)).issue_renewal(USER.id)
    with pytest.raises(TokenExpiredError):
        TokenIssuer(settings).verify_renewal(token)


def test_renewal_without_jti_is_malformed():
    payload = {
        "sub": "1",
        "typ": "renewal",
        "iss": settings.jwt_issuer,
        "iat": int(datetime.now(timezone.utc).timestamp()),
        "exp": int((datetime.now(timezone.utc) + timedelta(minutes=5)).timestamp()),
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(MalformedTokenError):
        TokenIssuer(settings).verify_renewal(token)


def test_expiry_follows_the_issuer_clock():
    """Issue and verify share one time source: a token expires when that clock passes exp."""
    clock = FrozenClock(datetime.now(timezone.utc))
    issuer = TokenIssuer(settings, clock=clock)
    token, claims = issuer.issue_access(USER, GROUPS)
    clock.advance(minutes=settings.access_token_expire_minutes)
    assert issuer.verify_access(token) == claims
    clock.advance(seconds=1)
    with pytest.raises(TokenExpiredError):
        issuer.verify_access(token)
    # a wall-clock issuer still accepts it
    assert TokenIssuer(settings).verify_access(token) == claims


def test_access_without_exp_is_malformed():
    payload = {
        "sub": "1",
        "typ": "access",
        "iss": settings.jwt_issuer,
        "username": "alice",
        "external_id": USER.external_id,
        "groups": [],
        "iat": int(datetime.now(timezone.utc).timestamp()),
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(MalformedTokenError):
        TokenIssuer(settings).verify_access(token)
