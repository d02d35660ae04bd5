"""
auth/models.py -- Domain dataclasses for authentication entities and outcomes.

Pattern: Data class (pure data container, zero logic). Stores, the tracker,
the token authority and routes do the work.

The outcome classes (Allowed/Locked, ValidClaims/Expired/Malformed) are the
discriminated results returned by LockoutTracker and TokenAuthority. Expected
conditions are values, not exceptions; callers branch with isinstance().

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"

ROLES: tuple[str, ...] = (ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN)

# Roles allowed to obtain a session token through POST /api/login and to use
# the account administration routes.
ADMIN_ROLES: frozenset[str] = frozenset({ROLE_ADMIN, ROLE_SUPERADMIN})


def normalize_email(email: str) -> str:
    """Lower-case and trim an email so case variants share one identity key."""
    return email.strip().lower()


@dataclass
class Identity:
    """A credential-bearing account.

    email is always stored normalized. id is None before the record is written
    to the database; created_at is set by the store on insert.
    """

    email: str
    role: str  # "user", "admin", "superadmin"
    hashed_password: str = ""
    id: int | None = None
    created_at: str = ""


@dataclass
class LoginAttemptRecord:
    """Failed-login bookkeeping for one identity key.

    lockout_until is set iff attempt_count has reached the lockout threshold.
    """

    key: str
    attempt_count: int = 0
    lockout_until: float | None = None


@dataclass(frozen=True)
class RevocationEntry:
    token: str
    expires_at: float  # epoch seconds, equal to the token's own exp claim


@dataclass(frozen=True)
class SessionToken:
    """A freshly issued bearer token plus the claims signed into it."""

    value: str
    subject_id: str
    email: str
    role: str
    issued_at: int
    expires_at: int


# ---------------------------------------------------------------------------
# LockoutTracker outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Allowed:
    pass


@dataclass(frozen=True)
class Locked:
    """Active lockout. attempts is every failure recorded in the window.

    Sequential logins stop at the threshold (a locked email is refused before
    its password is checked), but a failure that was admitted just before the
    lock was set still lands afterwards, so attempts may exceed the threshold.
    """

    retry_after_seconds: int
    attempts: int


Admission = Union[Allowed, Locked]


# ---------------------------------------------------------------------------
# TokenAuthority outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidClaims:
    subject_id: str
    email: str
    role: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class Expired:
    expired_at: int


@dataclass(frozen=True)
class Malformed:
    reason: str = "invalid token"


Verification = Union[ValidClaims, Expired, Malformed]


@dataclass(frozen=True)
class AuthenticatedSession:
    """What AccessGate hands to a route: the raw bearer token and its verified claims."""

    token: str
    claims: ValidClaims
