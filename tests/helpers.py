"""Shared helpers for the test suite (clock, secrets, header builders, harness)."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi.testclient import TestClient

from auth.lockout import LockoutTracker
from auth.models import Identity
from auth.passwords import hash_password
from auth.revocation import RevocationLedger
from auth.store import IdentityStore
from auth.tokens import TokenAuthority

TEST_SECRET = "test-signing-secret-0123456789abcdef"

START_TIME = 1_700_000_000.0


class FakeClock:
    """Callable clock that only moves when a test tells it to."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@dataclass
class PortalHarness:
    """A running TestClient plus the live components behind it."""

    client: TestClient
    store: IdentityStore
    ledger: RevocationLedger
    tracker: LockoutTracker
    authority: TokenAuthority
    clock: FakeClock

    def add_identity(self, email: str, password: str, role: str = "admin") -> int:
        return self.store.create_identity(
            Identity(email=email, role=role, hashed_password=hash_password(password, rounds=4))
        )

    def login(self, email: str, password: str):
        return self.client.post("/api/login", json={"email": email, "password": password})

    def token_for(self, identity_id: int, email: str, role: str) -> str:
        return self.authority.issue(Identity(id=identity_id, email=email, role=role)).value
