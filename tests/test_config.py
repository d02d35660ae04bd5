"""
tests/test_config.py -- Settings validation.

Settings is built with _env_file=None so a developer's local .env never leaks
into these cases.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_SECRET = "x" * 32


@pytest.fixture(autouse=True)
def production_env(monkeypatch):
    monkeypatch.setenv("DEBUG", "false")
    for name in ("JWT_SECRET", "SECRET_KEY", "BCRYPT_ROUNDS", "LOCKOUT_THRESHOLD", "LOCKOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)


def test_missing_secret_refuses_to_start():
    with pytest.raises(ValidationError, match="JWT_SECRET is required"):
        Settings(_env_file=None)


def test_short_secret_rejected(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "too-short")
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None)


def test_secret_key_alias(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", GOOD_SECRET)
    assert Settings(_env_file=None).jwt_secret == GOOD_SECRET


def test_debug_generates_secret(monkeypatch):
    monkeypatch.setenv("DEBUG", "true")
    settings = Settings(_env_file=None)
    assert len(settings.jwt_secret) == 64


def test_defaults(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", GOOD_SECRET)
    settings = Settings(_env_file=None)
    assert settings.token_expire_seconds == 86400
    assert settings.lockout_threshold == 5
    assert settings.lockout_seconds == 200
    assert settings.revocation_sweep_seconds == 3600
    assert settings.bcrypt_rounds == 10
    assert settings.register_rate_limit == "10/minute"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", GOOD_SECRET)
    monkeypatch.setenv("LOCKOUT_THRESHOLD", "3")
    monkeypatch.setenv("LOCKOUT_SECONDS", "60")
    settings = Settings(_env_file=None)
    assert (settings.lockout_threshold, settings.lockout_seconds) == (3, 60)


@pytest.mark.parametrize("name, value", [("LOCKOUT_THRESHOLD", "0"), ("BCRYPT_ROUNDS", "3"), ("BCRYPT_ROUNDS", "32")])
def test_out_of_range_values_rejected(monkeypatch, name, value):
    monkeypatch.setenv("JWT_SECRET", GOOD_SECRET)
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
