"""Unit tests for auth/gate.py -- bearer extraction and the AccessGate stages.

Covers:
- extract_bearer accepts only "Bearer <token>" exactly
- each 401 reason carries its own message and code
- a revoked token reports "invalidated" even once it has also expired
- role authorization raises 403 after successful authentication
"""

import pytest

from auth.gate import AccessGate, extract_bearer
from auth.models import Identity
from auth.revocation import RevocationLedger
from auth.tokens import TokenAuthority
from core.errors import Forbidden, Unauthenticated
from tests.helpers import TEST_SECRET, FakeClock

ADMIN = Identity(id=3, email="admin@example.com", role="admin")
USER = Identity(id=4, email="user@example.com", role="user")


@pytest.fixture
def ledger():
    ledger = RevocationLedger(db_url="sqlite:///:memory:")
    yield ledger
    ledger.close()


@pytest.fixture
def authority(clock: FakeClock) -> TokenAuthority:
    return TokenAuthority(TEST_SECRET, clock=clock)


@pytest.fixture
def gate(authority: TokenAuthority, ledger: RevocationLedger) -> AccessGate:
    return AccessGate(authority, ledger)


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        (None, None),
        ("", None),
        ("Bearer ", None),
        ("bearer abc", None),
        ("BEARER abc", None),
        ("Token abc", None),
        ("Bearer  abc", None),
        ("Bearer abc def", None),
        ("abc", None),
    ],
)
def test_extract_bearer(header, expected) -> None:
    assert extract_bearer(header) == expected


class TestAuthenticate:
    def _reason(self, gate: AccessGate, header) -> tuple[str, str]:
        with pytest.raises(Unauthenticated) as exc_info:
            gate.authenticate(header)
        body = exc_info.value.to_body()
        return body["message"], body["code"]

    def test_valid_token_returns_session(self, gate: AccessGate, authority: TokenAuthority) -> None:
        token = authority.issue(ADMIN)
        session = gate.authenticate(f"Bearer {token.value}")
        assert session.token == token.value
        assert session.claims.subject_id == "3"
        assert session.claims.role == "admin"
        assert session.claims.expires_at == token.expires_at

    def test_missing_header(self, gate: AccessGate) -> None:
        assert self._reason(gate, None) == ("No token provided", "token_missing")

    def test_wrong_scheme(self, gate: AccessGate, authority: TokenAuthority) -> None:
        token = authority.issue(ADMIN).value
        assert self._reason(gate, f"bearer {token}") == ("No token provided", "token_missing")

    def test_revoked(self, gate: AccessGate, authority: TokenAuthority, ledger: RevocationLedger) -> None:
        token = authority.issue(ADMIN)
        ledger.revoke(token.value, token.expires_at)
        assert self._reason(gate, f"Bearer {token.value}") == ("Token has been invalidated", "token_revoked")

    def test_revoked_and_expired_reports_invalidated(
        self, gate: AccessGate, authority: TokenAuthority, ledger: RevocationLedger, clock: FakeClock
    ) -> None:
        token = authority.issue(ADMIN)
        ledger.revoke(token.value, token.expires_at)
        clock.advance(2 * 24 * 60 * 60)
        assert self._reason(gate, f"Bearer {token.value}") == ("Token has been invalidated", "token_revoked")

    def test_expired(self, gate: AccessGate, authority: TokenAuthority, clock: FakeClock) -> None:
        token = authority.issue(ADMIN)
        clock.advance(24 * 60 * 60)
        assert self._reason(gate, f"Bearer {token.value}") == ("Token expired", "token_expired")

    def test_malformed(self, gate: AccessGate) -> None:
        assert self._reason(gate, "Bearer not.a.token") == ("Invalid token", "invalid_token")

    def test_unauthenticated_is_401(self, gate: AccessGate) -> None:
        with pytest.raises(Unauthenticated) as exc_info:
            gate.authenticate(None)
        assert exc_info.value.status_code == 401


class TestAuthorize:
    def test_admin_roles_admit_admin(self, gate: AccessGate, authority: TokenAuthority) -> None:
        token = authority.issue(ADMIN).value
        session = gate.check(f"Bearer {token}", required_roles={"admin", "superadmin"})
        assert session.claims.email == "admin@example.com"

    def test_user_role_is_forbidden(self, gate: AccessGate, authority: TokenAuthority) -> None:
        token = authority.issue(USER).value
        with pytest.raises(Forbidden) as exc_info:
            gate.check(f"Bearer {token}", required_roles={"admin", "superadmin"})
        assert exc_info.value.status_code == 403
        assert exc_info.value.to_body()["message"] == "Access denied. Admin privileges required."

    def test_no_required_roles_admits_any_role(self, gate: AccessGate, authority: TokenAuthority) -> None:
        token = authority.issue(USER).value
        assert gate.check(f"Bearer {token}").claims.role == "user"

    def test_authentication_runs_before_authorization(self, gate: AccessGate) -> None:
        with pytest.raises(Unauthenticated):
            gate.check("Bearer garbage", required_roles={"admin"})
