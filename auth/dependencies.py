"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Every protected route goes through the AccessGate stored on app.state:

  get_current_session() runs gate stages 1-3 (bearer, revocation, signature
      and expiry) and returns the AuthenticatedSession, or raises
      Unauthenticated (401).
  require_roles(*roles) builds a dependency that additionally runs stage 4
      and raises Forbidden (403) when the verified role is not listed.
  require_admin is require_roles("admin", "superadmin").

The gate raises core.errors exceptions; api/main.py turns them into the JSON
error envelope.

Layer rule: auth/dependencies.py may import from fastapi (for Depends/Request)
because this module is part of the FastAPI dependency injection system. It
does not import from api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.gate import AccessGate
from auth.models import ADMIN_ROLES, AuthenticatedSession


def get_access_gate(request: Request) -> AccessGate:
    return request.app.state.access_gate


def get_current_session(request: Request) -> AuthenticatedSession:
    """Require a valid, unrevoked, unexpired bearer token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: AuthenticatedSession = Depends(get_current_session)): ...
    """
    gate = get_access_gate(request)
    return gate.authenticate(request.headers.get("Authorization"))


def require_roles(*roles: str) -> Callable[..., AuthenticatedSession]:
    """Build a dependency that admits only sessions whose role is in roles."""
    allowed = frozenset(roles)

    def dependency(
        request: Request,
        session: AuthenticatedSession = Depends(get_current_session),
    ) -> AuthenticatedSession:
        get_access_gate(request).authorize(session.claims, allowed)
        return session

    return dependency


require_admin = require_roles(*ADMIN_ROLES)
