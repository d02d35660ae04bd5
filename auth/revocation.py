"""
auth/revocation.py -- Durable deny-list of revoked session tokens.

Tokens are stateless and self-verifying, so this ledger is the only durable
shared state authentication needs. Each entry lives exactly as long as the
token it blocks: expires_at equals the token's own exp claim, and the hourly
sweep deletes rows once expires_at < now. After that the token fails the
expiry check in TokenAuthority anyway, so the row has nothing left to block.

Concurrency: every call uses its own connection and a single statement.
A sweep deleting a row while a lookup reads it shows up as "not found"
(not revoked), never as an error.

Pattern: Repository, same as auth/store.py. Reuses the identity store's
engine helper so both tables can live in one database.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time

from sqlalchemy import Column, Float, Integer, String, Table, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.store import make_engine, metadata
from core.errors import Conflict

logger = logging.getLogger("portal.auth")

_revoked_tokens = Table(
    "revoked_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", String(2048), nullable=False, unique=True),
    Column("expires_at", Float, nullable=False, index=True),  # epoch seconds
)


class RevocationLedger:
    """Repository for revoked tokens.

    Usage:
        ledger = RevocationLedger(engine=store.engine)
        ledger.revoke(token, claims.expires_at)
        ledger.is_revoked(token)       # True until the token expires and is swept
        ledger.sweep_expired()         # call periodically
    """

    def __init__(self, db_url: str = "sqlite:///portal_auth.db", engine: Engine | None = None) -> None:
        self.engine: Engine = engine if engine is not None else make_engine(db_url)
        self._owns_engine = engine is None
        metadata.create_all(self.engine, tables=[_revoked_tokens])

    def revoke(self, token: str, expires_at: float) -> None:
        """Insert a revocation entry.

        Raises Conflict if the token is already revoked.
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(_revoked_tokens.insert().values(token=token, expires_at=float(expires_at)))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("Token already revoked") from exc

    def is_revoked(self, token: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_revoked_tokens.c.id).where(_revoked_tokens.c.token == token)).fetchone()
        return row is not None

    def sweep_expired(self, now: float | None = None) -> int:
        """Delete entries whose expires_at is strictly before now. Returns rows removed."""
        cutoff = time.time() if now is None else now
        with self.engine.connect() as conn:
            result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.expires_at < cutoff))
            conn.commit()
        return result.rowcount

    def count(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_revoked_tokens)).scalar()
        return result or 0

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()
