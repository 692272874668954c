"""Password hashing capability (bcrypt)."""

import secrets
from functools import cached_property
from typing import Protocol

import bcrypt

BCRYPT_MAX_BYTES = 72


class PasswordHasher(Protocol):
    # Verified against when the user does not exist, so both failures cost the same.
    dummy_digest: str

    def hash(self, secret: str) -> str: ...

    def verify(self, digest: str, secret: str) -> bool: ...


class BcryptHasher:
    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    @cached_property
    def dummy_digest(self) -> str:
        return self.hash(secrets.token_urlsafe(16))

    def hash(self, secret: str) -> str:
        """Hash password with bcrypt. Bytes truncated to 72 (bcrypt limit)."""
        pwd_bytes = secret.encode("utf-8")[:BCRYPT_MAX_BYTES]
        hashed = bcrypt.hashpw(pwd_bytes, bcrypt.gensalt(rounds=self.rounds))
        return hashed.decode("utf-8")

    def verify(self, digest: str, secret: str) -> bool:
        """Verify password with bcrypt. A digest that is not a bcrypt hash never matches."""
        plain_bytes = secret.encode("utf-8")[:BCRYPT_MAX_BYTES]
        try:
            return bcrypt.checkpw(plain_bytes, digest.encode("utf-8"))
        except ValueError:
            return False
