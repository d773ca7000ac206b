"""
core/models.py -- Domain dataclasses for the persisted entities.

Pattern: Data class (pure data container, zero logic). Stores and the auth
provider own the work; routes map these onto the pydantic API models.

Timestamps are ISO 8601 UTC strings, the same representation the tables use.

Layer rule: no imports from api/, web/, auth/, or users/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An identity record.

    is_active=False marks a soft-deleted account: it stays in the table (and
    is still returned by id/email lookups) but is hidden from listings and
    rejected by the auth guard.
    """

    id: str
    email: str
    name: str | None = None
    email_verified: bool = False
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Session:
    """A live login. token is opaque; the cookie only carries a signed copy."""

    id: str
    user_id: str
    token: str
    expires_at: str
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Account:
    """A credential binding for a user under a provider id ("credential" = password).

    password holds the bcrypt hash and is never serialized to API responses.
    """

    id: str
    user_id: str
    account_id: str
    provider_id: str
    password: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Verification:
    """A pending email verification. identifier is the email, value the token."""

    id: str
    identifier: str
    value: str
    expires_at: str
    created_at: str | None = None
    updated_at: str | None = None
