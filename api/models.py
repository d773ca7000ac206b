"""
API request and response models for the auth starter REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
Password hashes live on Account rows and have no field in any response model.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from core.models import Account, Session, User

# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/users (administrative creation)."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    email: EmailStr = Field(max_length=255)
    # Accepted for client compatibility but never stored: new users always
    # start unverified and active.
    email_verified: Optional[bool] = None
    is_active: Optional[bool] = None


class UserUpdate(BaseModel):
    """Request body for PATCH /api/users/{id}. Every field is optional."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    email: Optional[EmailStr] = Field(default=None, max_length=255)
    email_verified: Optional[bool] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Users -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """One user record."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: Optional[str]
    email: str
    email_verified: bool
    is_active: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build a UserResponse from a core User dataclass."""
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            email_verified=user.email_verified,
            is_active=user.is_active,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class SessionInfo(BaseModel):
    """A session as shown to its owner. The token itself is never returned."""

    model_config = ConfigDict(frozen=True)

    id: str
    expires_at: str
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: str

    @classmethod
    def from_session(cls, session: Session) -> "SessionInfo":
        return cls(
            id=session.id,
            expires_at=session.expires_at,
            ip_address=session.ip_address,
            user_agent=session.user_agent,
            created_at=session.created_at or "",
        )


class AccountInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    provider_id: str
    created_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountInfo":
        return cls(id=account.id, provider_id=account.provider_id, created_at=account.created_at or "")


class MeResponse(BaseModel):
    """Response for GET /api/users/me."""

    model_config = ConfigDict(frozen=True)

    message: str = "Authenticated user profile"
    user: UserResponse
    session: SessionInfo


class ProfileResponse(BaseModel):
    """Response for GET /api/users/me/profile -- user plus sessions and accounts."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    sessions: list[SessionInfo]
    accounts: list[AccountInfo]


# ---------------------------------------------------------------------------
# Auth provider -- request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Body for POST /api/auth/sign-up/email."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)
    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=8, max_length=128)


class SignInRequest(BaseModel):
    """Body for POST /api/auth/sign-in/email."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=1, max_length=128)


class VerificationRequest(BaseModel):
    """Body for POST /api/auth/send-verification-email."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr = Field(max_length=255)


# ---------------------------------------------------------------------------
# Auth provider -- response models
# ---------------------------------------------------------------------------


class SessionResponse(BaseModel):
    """Response for sign-up, sign-in, and get-session."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    session: SessionInfo


class StatusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: bool = True


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    timestamp: str
    auth: str = "configured"
    database: str = "ok"
