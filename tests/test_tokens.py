"""Unit tests for auth/tokens.py and auth/rate_limit.py."""

from datetime import datetime, timedelta, timezone

from auth.rate_limit import AuthRateLimiter
from auth.tokens import (
    decode_session_cookie,
    encode_session_cookie,
    generate_session_token,
    hash_password,
    verify_password,
)

# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def test_password_round_trip():
    hashed = hash_password("correct-horse-battery")
    assert hashed != "correct-horse-battery"
    assert verify_password("correct-horse-battery", hashed)
    assert not verify_password("wrong-horse-battery", hashed)


def test_long_password_accepted():
    """Passwords past bcrypt's 72-byte input limit still hash and verify."""
    long_password = "p" * 128
    hashed = hash_password(long_password)
    assert verify_password(long_password, hashed)


def test_malformed_hash_is_a_mismatch():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


# ---------------------------------------------------------------------------
# Session cookie
# ---------------------------------------------------------------------------


def test_cookie_round_trip():
    token = generate_session_token()
    value = encode_session_cookie(token, datetime.now(timezone.utc) + timedelta(hours=1))
    assert decode_session_cookie(value) == token


def test_tampered_cookie_rejected():
    value = encode_session_cookie(generate_session_token(), datetime.now(timezone.utc) + timedelta(hours=1))
    header, payload, signature = value.split(".")
    tampered = f"{header}.{payload}.{signature[::-1]}"
    assert decode_session_cookie(tampered) is None


def test_expired_cookie_rejected():
    value = encode_session_cookie(generate_session_token(), datetime.now(timezone.utc) - timedelta(seconds=5))
    assert decode_session_cookie(value) is None


def test_garbage_cookie_rejected():
    assert decode_session_cookie("garbage") is None


# ---------------------------------------------------------------------------
# Fixed-window rate limiter
# ---------------------------------------------------------------------------


def test_rate_limiter_window(engine):
    limiter = AuthRateLimiter(engine, window_seconds=60, max_requests=3)
    start = 1_700_000_000_000

    assert limiter.hit("1.2.3.4|/sign-in", now_ms=start) is None
    assert limiter.hit("1.2.3.4|/sign-in", now_ms=start + 1) is None
    assert limiter.hit("1.2.3.4|/sign-in", now_ms=start + 2) is None

    retry_after = limiter.hit("1.2.3.4|/sign-in", now_ms=start + 10_000)
    assert retry_after == 50.0

    # Other keys have their own counters.
    assert limiter.hit("5.6.7.8|/sign-in", now_ms=start + 10_000) is None

    # A new window starts once the old one has elapsed.
    assert limiter.hit("1.2.3.4|/sign-in", now_ms=start + 60_000) is None


def test_rate_limiter_retry_after_floor(engine):
    limiter = AuthRateLimiter(engine, window_seconds=1, max_requests=1)
    limiter.hit("k", now_ms=0)
    assert limiter.hit("k", now_ms=999) == 1.0
