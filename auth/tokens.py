"""
auth/tokens.py -- Password hashing, session tokens, and the session cookie.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). Bcrypt is the right choice
       for low-entropy secrets because its cost factor makes brute-force
       expensive. The DUMMY_HASH constant enables timing equalization in
       sign-in so response time does not reveal whether an email exists.

  Session tokens: secrets.token_urlsafe(32) -- 256 bits of entropy. The token
       is opaque and is what the sessions table stores. Revocation is a row
       delete; nothing about the session lives only in the cookie.

  Cookie: python-jose HS256 JWT whose "sid" claim is the opaque token and
       whose "exp" matches the session row. The signature stops a client from
       presenting guessed tokens without a database round trip; the row is
       still the authority on validity.

  SECRET_KEY: sourced from core.config.get_settings(), which validates length
       and refuses to start in production without one.

Layer rule: no imports from api/, web/, or users/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("authstarter.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


_BCRYPT_MAX_BYTES = 72


def _bcrypt_input(plain: str) -> bytes:
    # bcrypt only reads the first 72 bytes; current releases raise on longer input.
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    The API layer caps passwords at 128 characters (pydantic field); anything
    past 72 bytes does not contribute to the hash.
    """
    return bcrypt.hashpw(_bcrypt_input(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_bcrypt_input(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


# Computed once at module load so the first sign-in attempt is not measurably
# slower than later ones. Always verify against this when the email is unknown.
DUMMY_HASH: str = hash_password("authstarter_timing_dummy")


# ---------------------------------------------------------------------------
# Opaque tokens
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def generate_verification_token() -> str:
    return secrets.token_urlsafe(24)


# ---------------------------------------------------------------------------
# Signed session cookie
# ---------------------------------------------------------------------------


def encode_session_cookie(token: str, expires_at: datetime) -> str:
    """Wrap an opaque session token in a signed JWT for the cookie value."""
    payload = {"sid": token, "exp": expires_at}
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_cookie(value: str) -> str | None:
    """Verify a cookie value and return the opaque session token, or None.

    Returning None (rather than raising) keeps the caller simple: any bad
    signature, expired claim, or missing sid is treated as "no session".
    """
    try:
        payload = jwt.decode(value, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None


def session_expiry(seconds: int = 0) -> datetime:
    """Return the absolute expiry for a session issued now."""
    duration = seconds if seconds > 0 else _settings.session_expire_seconds
    return datetime.now(timezone.utc) + timedelta(seconds=duration)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, cookie_value: str, expires_at: datetime) -> None:
    """Write the signed session cookie on a response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation for forms.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the session row so both expire together.
    """
    max_age = max(0, int((expires_at - datetime.now(timezone.utc)).total_seconds()))
    response.set_cookie(
        _settings.session_cookie_name,
        value=cookie_value,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=max_age,
        path="/",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(_settings.session_cookie_name, path="/")
