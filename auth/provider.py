"""
auth/provider.py -- The session-issuing auth provider.

Everything that creates, reads, or destroys a session lives here. The rest of
the codebase treats the provider as an opaque capability:

    provider.get_session(headers) -> SessionResult | None

and never parses the session cookie itself. The provider's own HTTP handler
(api/routes/auth.py) is mounted under the auth prefix; the body-routing middleware
leaves those requests unparsed so the handler can read the raw body.

Storage:
  users         -- written on sign-up, email_verified flipped by verify_email()
  accounts      -- one "credential" row per user holding the bcrypt hash
  sessions      -- one row per live login; the row is the authority on validity
  verifications -- pending email verification tokens
  rate_limits   -- via AuthRateLimiter

The provider does not know about User.is_active. A deactivated user can still
hold or even obtain a session; the auth guard is what refuses to honour it.

Layer rule: no imports from api/, web/, or users/.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from starlette.requests import cookie_parser

from auth.models import SessionResult
from auth.rate_limit import AuthRateLimiter
from auth.tokens import (
    DUMMY_HASH,
    decode_session_cookie,
    encode_session_cookie,
    generate_session_token,
    generate_verification_token,
    hash_password,
    session_expiry,
    verify_password,
)
from core.config import Settings, get_settings
from core.database import (
    accounts,
    new_id,
    now_iso,
    row_to_session,
    row_to_user,
    row_to_verification,
    sessions,
    users,
    verifications,
)
from core.errors import ConflictError, NotFoundError
from core.models import Session, User

logger = logging.getLogger("authstarter.auth")

CREDENTIAL_PROVIDER = "credential"


def _is_expired(expires_at: str) -> bool:
    return datetime.fromisoformat(expires_at) <= datetime.now(timezone.utc)


class AuthProvider:
    """Email/password sign-up and sign-in backed by database sessions.

    Usage:
        provider = AuthProvider(engine)
        result = provider.sign_up_email("Ada", "ada@example.com", "hunter22!")
        set_session_cookie(response, result.cookie_value, ...)
        provider.get_session(request.headers)
    """

    def __init__(
        self,
        engine: Engine,
        settings: Settings | None = None,
        rate_limiter: AuthRateLimiter | None = None,
    ) -> None:
        self.engine = engine
        self.settings = settings or get_settings()
        self.rate_limiter = rate_limiter or AuthRateLimiter(
            engine,
            window_seconds=self.settings.auth_rate_limit_window,
            max_requests=self.settings.auth_rate_limit_max,
        )

    # ------------------------------------------------------------------
    # Sign-up / sign-in / sign-out
    # ------------------------------------------------------------------

    def sign_up_email(
        self,
        name: str | None,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SessionResult:
        """Create a user, its credential account, and a first session.

        All three rows are written in one transaction. Raises ConflictError if
        the email is already registered.
        """
        hashed = hash_password(password)
        now = now_iso()
        user = User(
            id=new_id(),
            email=email,
            name=name,
            email_verified=False,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    users.insert().values(
                        id=user.id,
                        name=user.name,
                        email=user.email,
                        email_verified=False,
                        is_active=True,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.execute(
                    accounts.insert().values(
                        id=new_id(),
                        user_id=user.id,
                        account_id=user.id,
                        provider_id=CREDENTIAL_PROVIDER,
                        password=hashed,
                        created_at=now,
                        updated_at=now,
                    )
                )
                session, cookie_value = self._insert_session(conn, user.id, ip_address, user_agent)
        except IntegrityError as exc:
            raise ConflictError("A user with that email already exists.") from exc
        logger.info("User %s signed up", user.id)
        return SessionResult(session=session, user=user, cookie_value=cookie_value)

    def sign_in_email(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> SessionResult | None:
        """Verify an email/password pair and issue a new session.

        Always runs bcrypt whether or not the email exists, so response time
        does not reveal which emails are registered. Returns None on any
        failure.
        """
        with self.engine.connect() as conn:
            user_row = conn.execute(users.select().where(users.c.email == email)).fetchone()
            account_row = None
            if user_row is not None:
                account_row = conn.execute(
                    accounts.select().where(
                        (accounts.c.user_id == user_row.id) & (accounts.c.provider_id == CREDENTIAL_PROVIDER)
                    )
                ).fetchone()

        if user_row is None or account_row is None or account_row.password is None:
            verify_password(password, DUMMY_HASH)
            return None
        if not verify_password(password, account_row.password):
            return None

        with self.engine.begin() as conn:
            session, cookie_value = self._insert_session(conn, user_row.id, ip_address, user_agent)
        logger.info("User %s signed in", user_row.id)
        return SessionResult(session=session, user=row_to_user(user_row), cookie_value=cookie_value)

    def sign_out(self, headers: Mapping[str, str]) -> bool:
        """Delete the session presented in headers. Returns True if a row was removed."""
        token = self._token_from_headers(headers)
        if token is None:
            return False
        with self.engine.begin() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.token == token))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Session lookup
    # ------------------------------------------------------------------

    def get_session(self, headers: Mapping[str, str]) -> SessionResult | None:
        """Resolve the caller's session from request headers.

        Accepts the session cookie, or the same signed value as an
        Authorization: Bearer header for non-browser clients. Expired rows are
        deleted on sight. Store errors propagate to the caller.
        """
        token = self._token_from_headers(headers)
        if token is None:
            return None

        with self.engine.connect() as conn:
            session_row = conn.execute(sessions.select().where(sessions.c.token == token)).fetchone()
            if session_row is None:
                return None
            user_row = conn.execute(users.select().where(users.c.id == session_row.user_id)).fetchone()

        if _is_expired(session_row.expires_at):
            with self.engine.begin() as conn:
                conn.execute(sessions.delete().where(sessions.c.id == session_row.id))
            logger.info("Expired session %s removed", session_row.id)
            return None
        if user_row is None:
            return None
        return SessionResult(session=row_to_session(session_row), user=row_to_user(user_row))

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    def send_verification_email(self, email: str) -> str | None:
        """Issue a verification token for an unverified user and log the link.

        There is no mail transport; the link is written to the log. Unknown
        or already-verified emails are a silent no-op so callers cannot probe
        which addresses exist. Returns the token when one was issued.
        """
        with self.engine.connect() as conn:
            user_row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        if user_row is None or user_row.email_verified:
            return None

        token = generate_verification_token()
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=self.settings.verification_expire_seconds)
        with self.engine.begin() as conn:
            # Only the most recent link stays valid.
            conn.execute(verifications.delete().where(verifications.c.identifier == email))
            conn.execute(
                verifications.insert().values(
                    id=new_id(),
                    identifier=email,
                    value=token,
                    expires_at=expires_at.isoformat(),
                    created_at=now.isoformat(),
                    updated_at=now.isoformat(),
                )
            )
        link = f"{self.settings.base_url.rstrip('/')}{self.settings.auth_prefix}/verify-email?token={token}"
        logger.info("Verification link for user %s: %s", user_row.id, link)
        return token

    def verify_email(self, token: str) -> User:
        """Consume a verification token and mark its user verified.

        Raises NotFoundError for unknown, expired, or orphaned tokens.
        """
        with self.engine.connect() as conn:
            row = conn.execute(verifications.select().where(verifications.c.value == token)).fetchone()
        if row is None:
            raise NotFoundError("Invalid or expired verification token.")
        verification = row_to_verification(row)
        expired = _is_expired(verification.expires_at)

        # The token is single-use: consumed even when it turns out to be stale.
        with self.engine.begin() as conn:
            conn.execute(verifications.delete().where(verifications.c.id == verification.id))
            updated = 0
            if not expired:
                updated = conn.execute(
                    users.update()
                    .where(users.c.email == verification.identifier)
                    .values(email_verified=True, updated_at=now_iso())
                ).rowcount
        if updated == 0:
            raise NotFoundError("Invalid or expired verification token.")

        with self.engine.connect() as conn:
            user_row = conn.execute(users.select().where(users.c.email == verification.identifier)).fetchone()
        logger.info("User %s verified their email", user_row.id)
        return row_to_user(user_row)

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    def check_rate_limit(self, key: str) -> float | None:
        """Count one auth attempt for key. Returns seconds to wait when over the limit."""
        return self.rate_limiter.hit(key)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _insert_session(
        self,
        conn,
        user_id: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> tuple[Session, str]:
        token = generate_session_token()
        expires_at = session_expiry(self.settings.session_expire_seconds)
        now = now_iso()
        session = Session(
            id=new_id(),
            user_id=user_id,
            token=token,
            expires_at=expires_at.isoformat(),
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
            updated_at=now,
        )
        conn.execute(
            sessions.insert().values(
                id=session.id,
                user_id=session.user_id,
                token=session.token,
                expires_at=session.expires_at,
                ip_address=session.ip_address,
                user_agent=session.user_agent,
                created_at=session.created_at,
                updated_at=session.updated_at,
            )
        )
        return session, encode_session_cookie(token, expires_at)

    def _token_from_headers(self, headers: Mapping[str, str]) -> str | None:
        cookie_header = headers.get("cookie", "")
        value = cookie_parser(cookie_header).get(self.settings.session_cookie_name) if cookie_header else None
        if not value:
            auth_header = headers.get("authorization", "")
            if auth_header.startswith("Bearer "):
                value = auth_header[7:]
        if not value:
            return None
        return decode_session_cookie(value)
