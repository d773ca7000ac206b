"""
auth/dependencies.py -- FastAPI Depends() helpers implementing the auth guard.

The guard is a linear pipeline, no retries:

  SESSION_LOOKUP -- provider.get_session(request.headers)
  USER_LOOKUP    -- user_store.find_one(session.user_id); must exist and be active
  ATTACH         -- AuthContext(user, session) on request.state.auth
  ALLOW          -- the protected handler runs

Any failed step is REJECT: HTTP 401 with one fixed body, whatever the cause.
A caller cannot tell a stale token from a deactivated account. Any error
raised during either lookup is logged with a traceback (so operators can
tell it apart from ordinary rejections) and then rejected the same way.

try_get_auth_context() is the soft variant (returns None on failure) used by
the web layouts. require_session() wraps it and raises HTTP 401.

Layer rule: no imports from web/. auth/dependencies.py may import from
fastapi because it is part of the FastAPI dependency injection system, and
from users/ for the user store the guard re-checks against.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import AuthContext
from auth.provider import AuthProvider
from users.store import UserStore

logger = logging.getLogger("authstarter.auth")

UNAUTHORIZED_DETAIL = {"code": "unauthorized", "message": "Authentication required."}


def try_get_auth_context(request: Request) -> AuthContext | None:
    """Run the guard pipeline. Returns the AuthContext on success, None on any failure.

    Never raises -- callers that need a hard 401 should use require_session().
    """
    provider: AuthProvider = request.app.state.auth
    user_store: UserStore = request.app.state.user_store

    # SESSION_LOOKUP
    try:
        resolved = provider.get_session(request.headers)
    except Exception:
        logger.exception("Session lookup failed on %s %s", request.method, request.url.path)
        return None
    if resolved is None:
        return None

    # USER_LOOKUP -- the provider's copy of the user is not trusted for is_active.
    try:
        user = user_store.find_one(resolved.session.user_id)
    except Exception:
        logger.exception("User lookup failed for session %s", resolved.session.id)
        return None
    if user is None or not user.is_active:
        logger.info("Session %s rejected: user missing or inactive", resolved.session.id)
        return None

    # ATTACH
    context = AuthContext(user=user, session=resolved.session)
    request.state.auth = context
    return context


def require_session(request: Request) -> AuthContext:
    """Require a valid session for an active user. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: AuthContext = Depends(require_session)): ...
    """
    context = try_get_auth_context(request)
    if context is None:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED_DETAIL)
    return context
