"""
API request and response models for the portal REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field names on the wire follow the existing React client (camelCase where the
client expects it: newPassword, createdAt, expiresAt, lockoutTime). Aliases
keep the Python attribute names snake_case.

Login and registration fields are Optional on purpose: a missing email or
password is a 400 with a specific message from the route, not a generic
validation error.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Identity

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# At least 8 chars with one lowercase letter, one uppercase letter and one digit.
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{8,}$")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def is_strong_password(password: str) -> bool:
    return bool(PASSWORD_PATTERN.match(password))


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/login."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class RegisterRequest(BaseModel):
    """Request body for POST /api/register."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class UserCreate(BaseModel):
    """Request body for POST /api/users. Admins may only create "user" accounts."""

    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    role: str = Field(default="user", max_length=20)


class PasswordChange(BaseModel):
    """Request body for PUT /api/users/{id}/password."""

    model_config = ConfigDict(populate_by_name=True)

    new_password: Optional[str] = Field(default=None, alias="newPassword", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    """Identity summary returned with a session token."""

    model_config = ConfigDict(frozen=True)

    email: str
    id: int
    role: str


class LoginResponse(BaseModel):
    """Response body for a successful POST /api/login."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = "Login successful!"
    token: str
    user: UserSummary


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


class UserResponse(BaseModel):
    """One identity as shown in the admin user table. Never carries the hash."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    email: str
    role: str
    created_at: str = Field(alias="createdAt")

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(id=identity.id, email=identity.email, role=identity.role, created_at=identity.created_at)


class UserListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    users: list[UserResponse]


class UserCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = "User created successfully!"
    user: UserResponse


class SessionUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str


class MeResponse(BaseModel):
    """Response for GET /api/me -- the identity carried by the bearer token."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool = True
    user: SessionUser
    expires_at: int = Field(alias="expiresAt")


class ErrorResponse(BaseModel):
    """Envelope returned on every 4xx/5xx response. Extra keys may follow."""

    model_config = ConfigDict(frozen=True, extra="allow")

    success: bool = False
    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
