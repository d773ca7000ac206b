"""
auth/models.py -- Result and context types produced by the auth layer.

Pattern: Data class (pure data container, zero logic). Mirrors
core/models.py -- dataclasses own shape; the provider and guard do the work.

SessionResult is what the auth provider hands back from a session lookup or a
successful sign-in/sign-up. AuthContext is what the guard attaches to the
request for downstream handlers: a typed structure instead of ad-hoc
attributes on the request object.

Layer rule: no imports from api/, web/, or users/.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.models import Session, User


@dataclass(frozen=True)
class SessionResult:
    """A resolved session and its user, as the auth provider sees them.

    cookie_value is only set when the session was just issued (sign-in or
    sign-up); lookups of an existing session leave it None.

    The provider does not look at User.is_active. Rejecting inactive accounts
    is the guard's job.
    """

    session: Session
    user: User
    cookie_value: str | None = None


@dataclass(frozen=True)
class AuthContext:
    """Identity attached to a request by the auth guard.

    user is the freshly loaded row from the user store (guaranteed active at
    the time of the check), not the provider's copy.
    """

    user: User
    session: Session
