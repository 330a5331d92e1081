"""Pydantic models for tarsit."""

import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Account roles."""

    CUSTOMER = "customer"
    BUSINESS_OWNER = "business_owner"
    ADMIN = "admin"


class User(BaseModel):
    """Stored user account. Only the password hash is kept."""

    id: str
    email: str
    name: str = Field(..., min_length=1, max_length=100)
    password_hash: str
    role: Role = Role.CUSTOMER
    created_at: datetime = Field(default_factory=utc_now)
    last_login: datetime | None = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Basic email validation."""
        v = v.strip().lower()
        if not re.match(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$", v):
            raise ValueError("Invalid email format")
        return v


class Principal(BaseModel):
    """The authenticated identity attached to a request."""

    id: str
    email: str
    role: Role


class Session(BaseModel):
    """Server-side session record.

    The raw session and CSRF tokens are never stored, only their digests.
    """

    token_hash: str
    csrf_token_hash: str
    user_id: str
    role: Role
    ip: str
    user_agent: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at


class TimeBasedToken(BaseModel):
    """A freshly issued token and the instant it stops being valid."""

    token: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check expiry; callers must reject the token once this is true."""
        return (now or utc_now()) >= self.expires_at


class IssuedSession(BaseModel):
    """Raw tokens handed to the client exactly once at login."""

    session_token: str
    csrf_token: str
    expires_at: datetime
    session: Session


class SignupRequest(BaseModel):
    email: str
    password: str
    name: str = Field(..., min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: str
    password: str


class ApiKeyRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
