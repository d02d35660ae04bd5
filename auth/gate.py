"""
auth/gate.py -- Request-time authorization pipeline.

AccessGate holds no state of its own. It composes the RevocationLedger and the
TokenAuthority over the request's Authorization header and either returns an
AuthenticatedSession or raises. Stages run strictly in order and stop at the
first failure:

  1. ExtractBearer      header must be exactly "Bearer <token>"     -> 401
  2. RevocationCheck    token present in the ledger                 -> 401
  3. SignatureAndExpiry TokenAuthority.verify: Expired / Malformed  -> 401
  4. RoleAuthorization  role not in the handler's declared set      -> 403
  5. Dispatch           the route runs with the verified session

Expired and malformed tokens produce different messages and codes so a client
can choose between re-authenticating and treating the failure as hard.

Layer rule: no imports from api/. auth/dependencies.py adapts this to FastAPI.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import AuthenticatedSession, Expired, Malformed, ValidClaims
from auth.revocation import RevocationLedger
from auth.tokens import TokenAuthority
from core.errors import Forbidden, Unauthenticated

_SCHEME = "Bearer "


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" value, else None.

    The scheme is matched literally (case and single space). An empty token or
    one containing whitespace counts as absent.
    """
    if not authorization or not authorization.startswith(_SCHEME):
        return None
    token = authorization[len(_SCHEME) :]
    if not token or any(ch.isspace() for ch in token):
        return None
    return token


class AccessGate:
    def __init__(self, authority: TokenAuthority, ledger: RevocationLedger) -> None:
        self._authority = authority
        self._ledger = ledger

    def authenticate(self, authorization: str | None) -> AuthenticatedSession:
        """Run stages 1-3. Raises Unauthenticated on any failure."""
        token = extract_bearer(authorization)
        if token is None:
            raise Unauthenticated("No token provided", code="token_missing")

        # The ledger is consulted before the signature so a revoked token is
        # reported as invalidated even if it has also expired.
        if self._ledger.is_revoked(token):
            raise Unauthenticated("Token has been invalidated", code="token_revoked")

        outcome = self._authority.verify(token)
        if isinstance(outcome, Expired):
            raise Unauthenticated("Token expired", code="token_expired")
        if isinstance(outcome, Malformed):
            raise Unauthenticated("Invalid token", code="invalid_token")
        return AuthenticatedSession(token=token, claims=outcome)

    @staticmethod
    def authorize(claims: ValidClaims, required_roles: Iterable[str]) -> ValidClaims:
        """Stage 4. Raises Forbidden unless the verified role is in required_roles."""
        if claims.role not in set(required_roles):
            raise Forbidden("Access denied. Admin privileges required.")
        return claims

    def check(self, authorization: str | None, required_roles: Iterable[str] | None = None) -> AuthenticatedSession:
        """Stages 1-4 in one call. required_roles=None admits any authenticated role."""
        session = self.authenticate(authorization)
        if required_roles is not None:
            self.authorize(session.claims, required_roles)
        return session
