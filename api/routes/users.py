"""
api/routes/users.py -- User CRUD endpoints.

Routes:
  POST   /users              -- administrative creation (public)
  GET    /users              -- active users, newest first (requires session)
  GET    /users/me           -- the caller's own record (requires session)
  GET    /users/me/profile   -- caller's record plus sessions and accounts (requires session)
  GET    /users/{id}         -- any user, active or not (requires session)
  PATCH  /users/{id}         -- partial update (requires session)
  DELETE /users/{id}         -- soft delete, 204 (requires session)

Auth policy: every route except POST /users depends on require_session. There
is no per-field or per-record authorization beyond that; any authenticated
caller may read or modify any user.

Route registration order: /users/me and /users/me/profile must be registered
before /users/{user_id} or FastAPI captures "me" as a path parameter.

Errors come from the store as NotFoundError / ConflictError and are mapped to
404 / 409 by the handlers in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import AccountInfo, MeResponse, ProfileResponse, SessionInfo, UserCreate, UserResponse, UserUpdate
from auth.dependencies import require_session
from auth.models import AuthContext
from core.errors import NotFoundError
from users.store import UserStore

router = APIRouter()


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    """Create a user record without credentials.

    Self-service registration goes through POST /auth/sign-up/email instead,
    which also creates the password account and a session.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.create(email=body.email, name=body.name)
    return UserResponse.from_user(user)


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, ctx: AuthContext = Depends(require_session)) -> list[UserResponse]:
    """List active users, newest first."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.find_all()]


@router.get("/users/me", response_model=MeResponse)
def get_me(ctx: AuthContext = Depends(require_session)) -> MeResponse:
    """Return the authenticated caller's user record and current session."""
    return MeResponse(user=UserResponse.from_user(ctx.user), session=SessionInfo.from_session(ctx.session))


@router.get("/users/me/profile", response_model=ProfileResponse)
def get_my_profile(request: Request, ctx: AuthContext = Depends(require_session)) -> ProfileResponse:
    """Return the caller's record with every session and account they own."""
    user_store: UserStore = request.app.state.user_store
    user, sessions, accounts = user_store.get_profile(ctx.user.id)
    return ProfileResponse(
        user=UserResponse.from_user(user),
        sessions=[SessionInfo.from_session(s) for s in sessions],
        accounts=[AccountInfo.from_account(a) for a in accounts],
    )


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: str, ctx: AuthContext = Depends(require_session)) -> UserResponse:
    """Return one user by id, including inactive users. 404 when absent."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.find_one(user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return UserResponse.from_user(user)


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserUpdate,
    ctx: AuthContext = Depends(require_session),
) -> UserResponse:
    """Apply a partial update. Fields omitted from the body are left unchanged."""
    user_store: UserStore = request.app.state.user_store
    # An explicit null only makes sense for name; the other columns are NOT NULL.
    updates = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "name"}
    if not updates:
        user = user_store.find_one(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return UserResponse.from_user(user)
    return UserResponse.from_user(user_store.update(user_id, **updates))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: str, ctx: AuthContext = Depends(require_session)) -> Response:
    """Soft delete: the user is deactivated, not removed. Repeating it is harmless."""
    user_store: UserStore = request.app.state.user_store
    user_store.remove(user_id)
    return Response(status_code=204)
