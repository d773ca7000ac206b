"""Unit tests for core/config.py -- Settings validation and derived values."""

import pytest
from pydantic import ValidationError

from core.config import Settings

_KEY = "k" * 32


def test_missing_secret_key_in_production_refused():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="")


def test_missing_secret_key_in_debug_generated():
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_short_secret_key_refused():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(debug=True, secret_key="too-short")


def test_auth_prefix_follows_api_prefix():
    assert Settings(secret_key=_KEY).auth_prefix == "/api/auth"
    assert Settings(secret_key=_KEY, api_prefix="/v2/").auth_prefix == "/v2/auth"


def test_throttle_rule():
    settings = Settings(secret_key=_KEY, throttle_limit=10, throttle_ttl=30)
    assert settings.throttle_rule == "10 per 30 seconds"


def test_defaults():
    settings = Settings(secret_key=_KEY)
    assert settings.session_expire_seconds == 7 * 24 * 3600
    assert settings.auth_rate_limit_window == 15 * 60
    assert settings.auth_rate_limit_max == 20
    assert settings.body_limit_bytes == 5 * 1024 * 1024


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", _KEY)
    monkeypatch.setenv("CORS_ORIGINS", '["https://app.example.com"]')
    monkeypatch.setenv("AUTH_RATE_LIMIT_MAX", "5")
    settings = Settings()
    assert settings.cors_origins == ["https://app.example.com"]
    assert settings.auth_rate_limit_max == 5
