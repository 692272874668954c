"""Pydantic schemas for auth: token claims, request bodies, responses."""

from pydantic import BaseModel, ConfigDict, Field


class GroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class AccessClaims(BaseModel):
    """Identity and authorization carried inside a signed access token."""

    user_id: int
    username: str
    external_id: str
    groups: list[GroupOut]
    issued_at: int  # epoch seconds
    expires_at: int


class RenewalClaims(BaseModel):
    """Body of a signed renewal token; token_id correlates with the server-side record."""

    user_id: int
    token_id: str = Field(min_length=1)
    issued_at: int
    expires_at: int


class AuthOut(BaseModel):
    """Authenticated user as returned to clients."""

    username: str
    external_id: str
    groups: list[GroupOut]

    @classmethod
    def from_claims(cls, claims: AccessClaims) -> "AuthOut":
        return cls(username=claims.username, external_id=claims.external_id, groups=claims.groups)


class DetailOut(BaseModel):
    detail: str


class RegisterBody(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=1)
    confirm_password: str
    captcha_response: str | None = None  # h-captcha-response from the widget


class LoginBody(BaseModel):
    username: str
    password: str


class PasswordBody(BaseModel):
    current_password: str
    new_password: str = Field(min_length=1)
    confirm_password: str
