"""Pytest configuration and shared fixtures."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Point config/engine at a throwaway SQLite file before any gatekeeper import
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), f'gatekeeper-test-{os.getpid()}.db')}",
)
os.environ.setdefault("DATABASE_NULL_POOL", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("PURGE_ENABLED", "false")
os.environ.setdefault("HCAPTCHA_SECRET", "")

from gatekeeper.config import settings
from gatekeeper.core.security import BcryptHasher
from gatekeeper.db.base import Base
from gatekeeper.db.session import async_session_maker, engine, init_db
from gatekeeper.main import app
from gatekeeper.services.credentials import CredentialStore
from gatekeeper.services.http_client import close_http_client, init_http_client
from gatekeeper.services.sessions import build_session_coordinator

ALICE_PASSWORD = "Secret123"


class FrozenClock:
    """Settable clock injected into the issuer and the registry."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def cookie_header(access: str | None = None, renewal: str | None = None) -> dict[str, str]:
    """Explicit Cookie header; takes precedence over the client's cookie jar."""
    parts = []
    if access is not None:
        parts.append(f"access={access}")
    if renewal is not None:
        parts.append(f"renewal={renewal}")
    return {"Cookie": "; ".join(parts)}


def cleared_cookies(resp) -> set[str]:
    """Names of cookies the response deletes (Max-Age=0)."""
    names = set()
    for header in resp.headers.get_list("set-cookie"):
        if "max-age=0" in header.lower():
            names.add(header.split("=", 1)[0])
    return names


async def _truncate_all():
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())


@pytest_asyncio.fixture
async def clean_db():
    """Create tables if needed and empty them so the test starts clean."""
    await init_db()
    await _truncate_all()
    yield


@pytest_asyncio.fixture
async def client(clean_db):
    init_http_client(timeout=5.0)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    await close_http_client()


@pytest_asyncio.fixture
async def db_session(clean_db):
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def conf():
    return settings


@pytest.fixture
def hasher():
    return BcryptHasher(rounds=4)


@pytest.fixture
def clock():
    return FrozenClock(datetime.now(timezone.utc))


@pytest.fixture
def coordinator(db_session, conf, hasher, clock):
    return build_session_coordinator(db_session, conf, hasher, clock=clock)


@pytest_asyncio.fixture
async def alice(clean_db, hasher):
    """User alice/Secret123 committed in its own session; returns the User row."""
    async with async_session_maker() as session:
        user, _ = await CredentialStore(session, settings).create_user("alice", hasher.hash(ALICE_PASSWORD))
        await session.commit()
        return user
