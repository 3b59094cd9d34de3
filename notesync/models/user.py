"""
User Models.

The authenticated identity and the request payloads of the auth endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notesync.core.utils import ensure_utc, utc_now


class User(BaseModel):
    """Identity of the signed-in user."""

    id: str
    email: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
    avatar_url: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def full_name(self) -> str:
        """First and last name, either one alone, or the username."""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.last_name or self.username

    @property
    def display_name(self) -> str:
        """Full name when the user has one, email otherwise."""
        names = [name for name in (self.first_name, self.last_name) if name]
        return " ".join(names) if names else self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    """Payload for creating an account."""

    email: str
    username: str
    password: str
    first_name: str | None = None
    last_name: str | None = None


class ProfileUpdate(BaseModel):
    """Partial profile update; only fields that were set are sent."""

    username: str | None = None
    first_name: str | None = Field(default=None, max_length=50)
    last_name: str | None = Field(default=None, max_length=50)
    avatar_url: str | None = None


class AuthTokens(BaseModel):
    """Tokens issued by login, register and refresh."""

    user: User
    access_token: str
    refresh_token: str
    expires_at: datetime

    @field_validator("expires_at")
    @classmethod
    def _normalize_expiry(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def is_expired(self) -> bool:
        return utc_now() >= self.expires_at

    @property
    def is_valid(self) -> bool:
        return not self.is_expired and bool(self.access_token)
