"""
api/routes/auth.py -- The auth provider's own HTTP handler.

Mounted at {api_prefix}/auth. The body-routing middleware skips this prefix,
so every endpoint here reads and decodes the raw body itself before
validating it against the request models.

Routes:
  POST /sign-up/email              -- create user + credential, start a session (cookie)
  POST /sign-in/email              -- password sign-in, start a session (cookie)
  POST /sign-out                   -- delete the presented session, clear cookie
  GET  /get-session                -- current session and user, or null
  POST /send-verification-email    -- issue a verification link (logged, not mailed)
  GET  /verify-email?token=...     -- consume a verification token

Security:
  sign-up and sign-in are limited per client IP by the provider's
  database-backed limiter, on top of the global slowapi throttle.
  Sign-in returns one generic "bad_credentials" error for unknown email and
  wrong password alike. Session responses carry Cache-Control: no-store.

get-session reports what the provider knows. It does not apply the
is_active re-check; protected routes go through the guard for that.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from api.middleware import parse_body
from api.models import (
    SessionInfo,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    StatusResponse,
    UserResponse,
    VerificationRequest,
)
from auth.models import SessionResult
from auth.provider import AuthProvider
from auth.tokens import clear_session_cookie, set_session_cookie
from core.errors import MalformedBodyError

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _read_model(request: Request, model: type[BaseModel]):
    """Read the raw body, decode it by content type, and validate it against model."""
    raw = await request.body()
    payload = parse_body(raw, request.headers.get("content-type", "application/json"))
    if not isinstance(payload, dict):
        raise MalformedBodyError("Request body must be an object.")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _enforce_rate_limit(request: Request, provider: AuthProvider) -> None:
    retry_after = provider.check_rate_limit(f"{_client_ip(request)}|{request.url.path}")
    if retry_after is not None:
        raise HTTPException(
            status_code=429,
            detail={"code": "rate_limited", "message": "Too many requests."},
            headers={"Retry-After": str(int(retry_after))},
        )


def _session_response(result: SessionResult) -> SessionResponse:
    return SessionResponse(
        user=UserResponse.from_user(result.user),
        session=SessionInfo.from_session(result.session),
    )


def _issue(result: SessionResult) -> JSONResponse:
    resp = JSONResponse(content=_session_response(result).model_dump())
    set_session_cookie(resp, result.cookie_value, datetime.fromisoformat(result.session.expires_at))
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/sign-up/email", response_model=SessionResponse)
async def sign_up_email(request: Request) -> JSONResponse:
    """Register with email and password; the new session cookie is set on the response.

    409 conflict if the email is already registered.
    """
    provider: AuthProvider = request.app.state.auth
    await run_in_threadpool(_enforce_rate_limit, request, provider)
    body = await _read_model(request, SignUpRequest)
    result = await run_in_threadpool(
        provider.sign_up_email,
        body.name,
        body.email,
        body.password,
        _client_ip(request),
        request.headers.get("user-agent"),
    )
    return _issue(result)


@router.post("/sign-in/email", response_model=SessionResponse)
async def sign_in_email(request: Request) -> JSONResponse:
    """Sign in with email and password; sets the session cookie."""
    provider: AuthProvider = request.app.state.auth
    await run_in_threadpool(_enforce_rate_limit, request, provider)
    body = await _read_model(request, SignInRequest)
    result = await run_in_threadpool(
        provider.sign_in_email,
        body.email,
        body.password,
        _client_ip(request),
        request.headers.get("user-agent"),
    )
    if result is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _issue(result)


@router.post("/sign-out", response_model=StatusResponse)
async def sign_out(request: Request) -> JSONResponse:
    """Delete the presented session (if any) and clear the cookie. Always 200."""
    provider: AuthProvider = request.app.state.auth
    await run_in_threadpool(provider.sign_out, request.headers)
    resp = JSONResponse(content=StatusResponse().model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/get-session", response_model=Optional[SessionResponse])
def get_session(request: Request) -> Optional[SessionResponse]:
    """Return the caller's session and user, or null when there is none."""
    provider: AuthProvider = request.app.state.auth
    result = provider.get_session(request.headers)
    if result is None:
        return None
    return _session_response(result)


@router.post("/send-verification-email", response_model=StatusResponse)
async def send_verification_email(request: Request) -> StatusResponse:
    """Issue a verification link. Responds identically whether or not the email exists."""
    provider: AuthProvider = request.app.state.auth
    body = await _read_model(request, VerificationRequest)
    await run_in_threadpool(provider.send_verification_email, body.email)
    return StatusResponse()


@router.get("/verify-email", response_model=UserResponse)
def verify_email(request: Request, token: str) -> UserResponse:
    """Mark the token's user as verified. 404 for unknown or expired tokens."""
    provider: AuthProvider = request.app.state.auth
    return UserResponse.from_user(provider.verify_email(token))
