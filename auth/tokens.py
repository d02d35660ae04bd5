"""
auth/tokens.py -- Session token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the process secret and
       carry sub (identity id), email, role, iat and exp. Nothing is stored
       server-side at issuance; logout adds the token to the revocation ledger.

  Verification order: signature first, claims second. jwt.decode() checks
       the signature before it hands back any claim, and we turn off jose's own
       exp check so expiry is evaluated against our injectable clock. The
       outcome is a value (ValidClaims | Expired | Malformed), never an
       exception, so AccessGate can tell "expired" apart from "garbage".

  Secret: supplied once at construction. An empty secret raises
       ConfigurationError -- a startup failure, not a per-request error.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from jose import JWTError, jwt

from auth.models import Expired, Identity, Malformed, SessionToken, ValidClaims, Verification
from core.errors import ConfigurationError

logger = logging.getLogger("portal.auth")

_ALGORITHM = "HS256"
DEFAULT_EXPIRE_SECONDS = 24 * 60 * 60

_REQUIRED_CLAIMS = ("sub", "email", "role", "iat", "exp")


class TokenAuthority:
    """Issues and verifies signed, time-bounded session tokens.

    Usage:
        authority = TokenAuthority(settings.jwt_secret)
        token = authority.issue(identity)
        outcome = authority.verify(token.value)
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = DEFAULT_EXPIRE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret_key:
            raise ConfigurationError("No JWT signing secret configured.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self._clock = clock

    def issue(self, identity: Identity) -> SessionToken:
        """Sign a token for the identity, valid for expire_seconds from now."""
        issued_at = int(self._clock())
        expires_at = issued_at + self.expire_seconds
        payload = {
            "sub": str(identity.id),
            "email": identity.email,
            "role": identity.role,
            "iat": issued_at,
            "exp": expires_at,
        }
        value = jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        return SessionToken(
            value=value,
            subject_id=str(identity.id),
            email=identity.email,
            role=identity.role,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def verify(self, token: str) -> Verification:
        """Check signature integrity, then expiry.

        Any signature mismatch, truncation, tampering, foreign algorithm or
        missing claim yields Malformed. A well-signed token whose exp is not
        in the future yields Expired.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            return Malformed(reason=str(exc))

        if any(claim not in payload for claim in _REQUIRED_CLAIMS):
            return Malformed(reason="missing required claim")
        exp = payload["exp"]
        iat = payload["iat"]
        if not isinstance(exp, (int, float)) or not isinstance(iat, (int, float)):
            return Malformed(reason="non-numeric time claim")

        if exp <= self._clock():
            return Expired(expired_at=int(exp))
        return ValidClaims(
            subject_id=str(payload["sub"]),
            email=str(payload["email"]),
            role=str(payload["role"]),
            issued_at=int(iat),
            expires_at=int(exp),
        )
