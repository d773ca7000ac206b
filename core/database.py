"""
core/database.py -- SQLAlchemy Core schema and the process-wide engine.

Pattern: one Engine (one connection pool) is built at startup by
create_store_engine() and injected by reference into UserStore and
AuthProvider. Nothing constructs an engine per request.

Schema:
  users          -- identity records (email UNIQUE)
  sessions       -- live logins, FK users.id ON DELETE CASCADE
  accounts       -- credential bindings, FK users.id ON DELETE CASCADE
  verifications  -- pending email verification tokens (auth provider only)
  rate_limits    -- auth provider's fixed-window counters (auth provider only)

SQLite does not enforce foreign keys unless PRAGMA foreign_keys=ON is issued
on every connection, so the cascade from users to sessions/accounts depends
on the connect listener below.

Row mappers (Data Mapper pattern) live here because both the user store and
the auth provider read users and sessions.

Layer rule: no imports from api/, web/, auth/, or users/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from core.models import Account, Session, User, Verification

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255)),
    Column("email", String(255), nullable=False, unique=True),
    Column("email_verified", Boolean, nullable=False, default=False),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("token", String(128), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("ip_address", String(64)),
    Column("user_agent", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

accounts = Table(
    "accounts",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("account_id", String(255), nullable=False),
    Column("provider_id", String(64), nullable=False),
    Column("password", Text),  # bcrypt hash, NULL for non-credential providers
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

verifications = Table(
    "verifications",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("identifier", String(255), nullable=False, index=True),
    Column("value", String(128), nullable=False, unique=True),
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

rate_limits = Table(
    "rate_limits",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("key", String(255), nullable=False, unique=True),
    Column("count", Integer, nullable=False),
    Column("last_request", Integer, nullable=False),  # epoch milliseconds
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable foreign key enforcement and WAL on each new SQLite connection.

    PRAGMAs are per-connection in SQLite and are not inherited by new
    connections from the pool, so this must run on every connect.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_store_engine(db_url: str) -> Engine:
    """Build the single Engine shared by every store in the process."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def init_schema(engine: Engine) -> None:
    """Create all tables if they do not exist. Idempotent."""
    metadata.create_all(engine)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        email_verified=bool(row.email_verified),
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=row.expires_at,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def row_to_account(row) -> Account:
    return Account(
        id=row.id,
        user_id=row.user_id,
        account_id=row.account_id,
        provider_id=row.provider_id,
        password=row.password,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def row_to_verification(row) -> Verification:
    return Verification(
        id=row.id,
        identifier=row.identifier,
        value=row.value,
        expires_at=row.expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
