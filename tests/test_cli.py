"""
tests/test_cli.py -- main.py maintenance commands.

Covers:
  - create-admin writes an admin identity that can log in
  - a second create-admin for the same email is refused
  - sweep-revocations removes expired entries
  - no command prints help and exits 1
"""

from __future__ import annotations

import pytest

from auth.passwords import verify_password
from auth.revocation import RevocationLedger
from auth.store import IdentityStore
from core.config import get_settings
from main import create_admin, main, sweep_revocations


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


@pytest.fixture
def store():
    store = IdentityStore(db_url="sqlite:///:memory:")
    yield store
    store.close()


def test_create_admin_stores_hashed_password(store):
    identity_id = create_admin(store, " Admin@Example.com", "Admin-pass-1", rounds=4)
    identity = store.get_by_id(identity_id)
    assert identity.email == "admin@example.com"
    assert identity.role == "admin"
    assert verify_password("Admin-pass-1", identity.hashed_password)


def test_create_admin_refuses_duplicate(store, capsys):
    create_admin(store, "admin@example.com", "Admin-pass-1", rounds=4)
    assert create_admin(store, "ADMIN@example.com", "Other-pass-1", rounds=4) is None
    assert "already exists" in capsys.readouterr().out


def test_sweep_revocations_reports_removed(capsys):
    ledger = RevocationLedger(db_url="sqlite:///:memory:")
    ledger.revoke("old-token", 100)
    assert sweep_revocations(ledger) == 1
    assert "Removed 1" in capsys.readouterr().out
    ledger.close()


def test_main_create_admin_superadmin(db_url):
    argv = ["create-admin", "--email", "root@example.com", "--password", "Root-pass-1", "--role", "superadmin"]
    assert main(argv) == 0

    store = IdentityStore(db_url=db_url)
    try:
        assert store.find_by_email("root@example.com").role == "superadmin"
    finally:
        store.close()


def test_main_sweep_revocations(db_url):
    assert main(["sweep-revocations"]) == 0


def test_main_without_command_prints_help(capsys):
    assert main([]) == 1
    assert "create-admin" in capsys.readouterr().out


def test_main_rejects_user_role():
    with pytest.raises(SystemExit):
        main(["create-admin", "--email", "x@example.com", "--password", "p", "--role", "user"])
