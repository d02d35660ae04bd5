"""
auth/login.py -- Password login sub-flow.

Distinct from AccessGate: this produces a token instead of consuming one.

  1. email and password present                        else BadRequest (400)
  2. LockoutTracker.check_admission                    Locked -> TooManyAttempts (429)
  3. IdentityStore.find_by_email(normalized)           absent -> failure + Unauthenticated (401)
  4. verify_password                                   mismatch -> failure + Unauthenticated (401)
  5. role in ADMIN_ROLES                               else failure + Forbidden (403)
  6. record_success + TokenAuthority.issue

Steps 3 and 4 raise the same message so the endpoint cannot be used to
enumerate accounts, and step 3 still burns a bcrypt verification so response
time does not give the answer away either. Step 5 counts as a failure even
though the password was right: the login endpoint must not become a role
probing oracle.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.lockout import LockoutTracker
from auth.models import ADMIN_ROLES, Identity, Locked, SessionToken, normalize_email
from auth.passwords import DEFAULT_ROUNDS, burn_verify, dummy_hash, verify_password
from auth.store import IdentityStore
from auth.tokens import TokenAuthority
from core.errors import BadRequest, Forbidden, TooManyAttempts, Unauthenticated

logger = logging.getLogger("portal.auth")

BAD_CREDENTIALS_MESSAGE = "Invalid email or password"


@dataclass(frozen=True)
class LoginResult:
    token: SessionToken
    identity: Identity


class LoginFlow:
    def __init__(
        self,
        store: IdentityStore,
        tracker: LockoutTracker,
        authority: TokenAuthority,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self.store = store
        self.tracker = tracker
        self.authority = authority
        # Must match the cost of stored hashes (BCRYPT_ROUNDS).
        self.bcrypt_rounds = bcrypt_rounds
        # Built here so the first unknown-email login is not slower than later ones.
        dummy_hash(bcrypt_rounds)

    def login(self, email: str | None, password: str | None) -> LoginResult:
        if not email or not password or not email.strip():
            raise BadRequest("Email and password are required")
        key = normalize_email(email)

        admission = self.tracker.check_admission(key)
        if isinstance(admission, Locked):
            raise TooManyAttempts(lockout_time=admission.retry_after_seconds, attempts=admission.attempts)

        identity = self.store.find_by_email(key)
        if identity is None:
            burn_verify(password, self.bcrypt_rounds)
            self.tracker.record_failure(key)
            raise Unauthenticated(BAD_CREDENTIALS_MESSAGE)

        if not verify_password(password, identity.hashed_password):
            self.tracker.record_failure(key)
            raise Unauthenticated(BAD_CREDENTIALS_MESSAGE)

        if identity.role not in ADMIN_ROLES:
            self.tracker.record_failure(key)
            logger.info("Login refused for non-admin identity id=%s", identity.id)
            raise Forbidden("Access denied. Admin privileges required.", redirect="/index.html")

        self.tracker.record_success(key)
        token = self.authority.issue(identity)
        logger.info("Login succeeded for identity id=%s role=%s", identity.id, identity.role)
        return LoginResult(token=token, identity=identity)
