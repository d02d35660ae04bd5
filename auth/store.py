"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper. IdentityStore is the repository;
_row_to_identity is the mapper. Route and flow code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Emails are normalized (trimmed, lower-cased) before every read and write,
  and the UNIQUE constraint on email enforces one identity per address at the
  database level. create_identity() lets IntegrityError propagate so callers
  can map a concurrent duplicate to 409.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine

from auth.models import Identity, normalize_email

_DEFAULT_DB_URL = "sqlite:///portal_auth.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_identities = Table(
    "identities",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine helpers (shared with auth/revocation.py)
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine; SQLite connections are shared across threadpool workers."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity records.

    Usage:
        store = IdentityStore()
        store.create_identity(Identity(email="admin@example.com", role="admin", hashed_password=hash_password("s")))
        identity = store.find_by_email("admin@example.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, engine: Engine | None = None) -> None:
        self.engine: Engine = engine if engine is not None else make_engine(db_url)
        self._owns_engine = engine is None
        metadata.create_all(self.engine, tables=[_identities])

    def has_identities(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_identities)).scalar()
        return (result or 0) > 0

    def create_identity(self, identity: Identity) -> int:
        """Insert a new identity and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _identities.insert().values(
                    email=normalize_email(identity.email),
                    hashed_password=identity.hashed_password,
                    role=identity.role,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def find_by_email(self, email: str) -> Identity | None:
        """Look up an identity by email (normalized before lookup). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _identities.select().where(_identities.c.email == normalize_email(email))
            ).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get_by_id(self, identity_id: int) -> Identity | None:
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def list_identities(self) -> list[Identity]:
        """Return all identities, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _identities.select().order_by(_identities.c.created_at.desc(), _identities.c.id.desc())
            ).fetchall()
        return [_row_to_identity(r) for r in rows]

    def update_password(self, identity_id: int, hashed_password: str) -> bool:
        """Replace the stored hash. Returns True if a row was updated."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _identities.update().where(_identities.c.id == identity_id).values(hashed_password=hashed_password)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_identity(self, identity_id: int) -> bool:
        """Permanently delete an identity. Returns True if deleted, False if not found.

        Role policy (only "user" identities may be deleted, never oneself) is
        the caller's responsibility.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_identities.delete().where(_identities.c.id == identity_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> None:
        """Round-trip a trivial query. Raises SQLAlchemyError when the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def close(self) -> None:
        if self._owns_engine:
            self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
    )
