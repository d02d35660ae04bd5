"""
auth/passwords.py -- bcrypt password hashing with a configurable work factor.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Hashing is CPU-bound. Callers run it from plain `def` route handlers, which
FastAPI executes in its threadpool, so the event loop is never blocked.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 10


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password length well below that (Pydantic max_length).
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the store.
        return False


# Timing equalization.
# LoginFlow verifies against a dummy hash when the email is unknown, so response
# time does not reveal whether an account exists. The dummy must carry the same
# cost as the stored hashes, so it is built per work factor and cached.


@lru_cache(maxsize=None)
def dummy_hash(rounds: int = DEFAULT_ROUNDS) -> str:
    return hash_password("portal_timing_dummy", rounds)


def burn_verify(plain: str, rounds: int = DEFAULT_ROUNDS) -> None:
    """Spend one bcrypt verification at the given cost without a real hash to compare against."""
    verify_password(plain, dummy_hash(rounds))

