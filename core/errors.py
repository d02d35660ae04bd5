"""
core/errors.py -- Error taxonomy shared by auth/ and api/.

Every PortalError carries the HTTP status it maps to, a client-safe message,
and optional extra fields merged into the response body. api/main.py renders
all of them with the same envelope:

    {"success": false, "message": "...", **extra}

ConfigurationError is deliberately NOT a PortalError: it is raised while the
process is starting and aborts startup instead of producing a response.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Required process configuration is missing or invalid (startup-fatal)."""


class PortalError(Exception):
    """Base class for errors that map to an HTTP rejection."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, **extra) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"success": False, "message": self.message, **self.extra}


class BadRequest(PortalError):
    status_code = 400
    default_message = "Bad request"


class Unauthenticated(PortalError):
    """Missing, invalid, expired or revoked token, or bad credentials."""

    status_code = 401
    default_message = "Authentication required"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Access denied. Admin privileges required."


class NotFound(PortalError):
    status_code = 404
    default_message = "Not found"


class Conflict(PortalError):
    status_code = 409
    default_message = "Resource already exists"


class TooManyAttempts(PortalError):
    """Active login lockout. Carries the countdown a client renders."""

    status_code = 429
    default_message = "Too many login attempts. Please try again later."

    def __init__(self, lockout_time: int, attempts: int, message: str | None = None) -> None:
        super().__init__(message, lockoutTime=lockout_time, attempts=attempts)
        self.lockout_time = lockout_time
        self.attempts = attempts


class Internal(PortalError):
    status_code = 500
    default_message = "Internal server error"
