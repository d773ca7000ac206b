"""
users/store.py -- SQLAlchemy Core repository for the User entity.

Pattern: Repository + Data Mapper. UserStore is the repository; the row
mappers live in core/database.py. Route, guard, and CLI code never touch SQL
directly.

Each operation is one store call plus at most one policy decision:
  create       -- new rows start email_verified=False, is_active=True
  find_all     -- active users only, newest first
  find_one     -- no activity filter (the guard must see inactive users)
  remove       -- soft delete: is_active=False, sessions/accounts untouched
  hard_delete  -- row removed; sessions/accounts go with it via ON DELETE CASCADE

Failures surface as core.errors.NotFoundError / ConflictError, never as raw
SQLAlchemy exceptions. Unexpected SQLAlchemyError is left to propagate to the
top-level handler.

Registration normally goes through the auth provider's sign-up flow (which
also creates the credential account). create() exists for administrative
creation and yields a user with no way to sign in until a credential exists.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.database import accounts, new_id, now_iso, row_to_account, row_to_session, row_to_user, sessions, users
from core.errors import ConflictError, NotFoundError
from core.models import Account, Session, User

logger = logging.getLogger("authstarter.users")

# Fields a caller may change through update(). id and timestamps are owned by the store.
_UPDATABLE_FIELDS = {"name", "email", "email_verified", "is_active"}


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(engine)
        user = store.create(email="a@x.com", name="Ada")
        store.remove(user.id)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, email: str, name: str | None = None) -> User:
        """Insert a new user and return it. It is always unverified and active.

        Raises ConflictError if the email is already registered. The UNIQUE
        constraint is the source of truth; there is no check-then-insert race.
        """
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
                        email_verified=user.email_verified,
                        is_active=user.is_active,
                        created_at=user.created_at,
                        updated_at=user.updated_at,
                    )
                )
        except IntegrityError as exc:
            raise ConflictError("A user with that email already exists.") from exc
        logger.info("User %s created", user.id)
        return user

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_all(self) -> list[User]:
        """Return active users, newest first. Soft-deleted users are excluded."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                users.select().where(users.c.is_active.is_(True)).order_by(users.c.created_at.desc())
            ).fetchall()
        return [row_to_user(r) for r in rows]

    def find_one(self, user_id: str) -> User | None:
        """Look up a user by id regardless of is_active. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return row_to_user(row) if row is not None else None

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email regardless of is_active."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return row_to_user(row) if row is not None else None

    def get_profile(self, user_id: str) -> tuple[User, list[Session], list[Account]]:
        """Return a user together with its sessions and accounts.

        Raises NotFoundError if the user does not exist.
        """
        user = self.find_one(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        with self.engine.connect() as conn:
            session_rows = conn.execute(
                select(sessions).where(sessions.c.user_id == user_id).order_by(sessions.c.created_at.desc())
            ).fetchall()
            account_rows = conn.execute(select(accounts).where(accounts.c.user_id == user_id)).fetchall()
        return user, [row_to_session(r) for r in session_rows], [row_to_account(r) for r in account_rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update(self, user_id: str, **fields) -> User:
        """Apply a partial update and return the updated user.

        Accepted fields: name, email, email_verified, is_active. Unknown
        fields raise ValueError rather than being silently dropped.

        Raises NotFoundError for a missing id and ConflictError if the new
        email belongs to another user.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        values = dict(fields, updated_at=now_iso())
        try:
            with self.engine.begin() as conn:
                result = conn.execute(users.update().where(users.c.id == user_id).values(**values))
        except IntegrityError as exc:
            raise ConflictError("A user with that email already exists.") from exc
        if result.rowcount == 0:
            raise NotFoundError("User not found.")
        updated = self.find_one(user_id)
        if updated is None:
            # Deleted between the UPDATE and the re-read.
            raise NotFoundError("User not found.")
        return updated

    def set_active(self, user_id: str, is_active: bool) -> User:
        return self.update(user_id, is_active=is_active)

    def remove(self, user_id: str) -> None:
        """Soft delete: mark the user inactive. Idempotent.

        Sessions and accounts are left in place; the auth guard rejects them
        because the owning user is inactive.
        """
        self.update(user_id, is_active=False)
        logger.info("User %s deactivated", user_id)

    def hard_delete(self, user_id: str) -> None:
        """Permanently delete a user. Sessions and accounts cascade.

        Raises NotFoundError if the user does not exist.
        """
        with self.engine.begin() as conn:
            result = conn.execute(users.delete().where(users.c.id == user_id))
        if result.rowcount == 0:
            raise NotFoundError("User not found.")
        logger.info("User %s permanently deleted", user_id)
