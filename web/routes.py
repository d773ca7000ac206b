"""
web/routes.py -- Jinja2 template routes for the auth starter web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same auth provider, same user store) but return HTML instead of JSON.

Two layouts gate every page:
  - anonymous-only (/login, /register): a live session redirects to /dashboard
  - authenticated-only (/dashboard): no session redirects to /login?next=...

Both checks run the same guard pipeline as the API (try_get_auth_context), so
a deactivated user is "signed out" here too. The session is resolved before
the template renders, so neither layout ever shows content while the session
state is still unknown.

Form bodies are read from request.state.parsed_body, populated by the
body-routing middleware.

Routes:
  GET  /            -- landing page with navbar
  GET  /dashboard   -- profile view (auth required)
  GET  /login       -- sign-in form (anonymous only)
  POST /login       -- handle password sign-in
  GET  /register    -- sign-up form (anonymous only)
  POST /register    -- handle sign-up
  POST /logout      -- delete session, clear cookie, redirect /login
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool

from auth.dependencies import try_get_auth_context
from auth.models import SessionResult
from auth.provider import AuthProvider
from auth.tokens import clear_session_cookie, set_session_cookie
from core.errors import ConflictError
from users.store import UserStore

logger = logging.getLogger("authstarter.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# Exposed as a Jinja2 global so base.html can render the navbar without every
# handler passing the auth context explicitly.
templates.env.globals["current_auth"] = try_get_auth_context
router = APIRouter()

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params on /login and /register.
# The raw query param is NEVER passed to templates, only the message from
# this dict is.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid email or password.",
    "account_disabled": "Your account has been disabled. Contact an admin.",
    "email_taken": "An account with that email already exists.",
    "rate_limited": "Too many attempts. Please wait and try again.",
}

_MIN_PASSWORD = 8
_MAX_PASSWORD = 128


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative ones ("//attacker.com"),
    both of which would redirect off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/dashboard"


def _require_auth(request: Request) -> Optional[RedirectResponse]:
    """Authenticated-only layout check.

    Returns a RedirectResponse to /login if not authenticated, None if OK.
    Call at the top of protected route handlers:
        if redirect := _require_auth(request):
            return redirect
    """
    if try_get_auth_context(request) is None:
        return RedirectResponse(f"/login?next={request.url.path}", status_code=302)
    return None


def _require_anonymous(request: Request) -> Optional[RedirectResponse]:
    """Anonymous-only layout check: signed-in users are sent to /dashboard."""
    if try_get_auth_context(request) is not None:
        return RedirectResponse("/dashboard", status_code=302)
    return None


def _form(request: Request) -> dict:
    parsed = getattr(request.state, "parsed_body", None)
    return parsed if isinstance(parsed, dict) else {}


def _field(form: dict, name: str, strip: bool = True) -> str:
    value = form.get(name, "")
    if not isinstance(value, str):
        return ""
    return value.strip() if strip else value


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _signed_in(result: SessionResult, next_url: str) -> RedirectResponse:
    resp = RedirectResponse(next_url, status_code=302)
    set_session_cookie(resp, result.cookie_value, datetime.fromisoformat(result.session.expires_at))
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# GET / and GET /dashboard
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "index.html", {})


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    """Profile page for the signed-in user."""
    if redirect := _require_auth(request):
        return redirect

    ctx = request.state.auth
    user_store: UserStore = request.app.state.user_store
    _, sessions, accounts = user_store.get_profile(ctx.user.id)
    resp = templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": ctx.user,
            "current_session": ctx.session,
            "sessions": sessions,
            "accounts": accounts,
        },
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Sign-in / sign-up / sign-out
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the sign-in form."""
    if redirect := _require_anonymous(request):
        return redirect

    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""), None)
    return templates.TemplateResponse(
        request,
        "login.html",
        {"error_msg": error_msg, "next": _safe_next(request.query_params.get("next"))},
    )


@router.post("/login", response_class=HTMLResponse)
async def login_post(request: Request) -> RedirectResponse:
    """Handle the sign-in form; the provider issues the session in-process."""
    if redirect := _require_anonymous(request):
        return redirect

    provider: AuthProvider = request.app.state.auth
    form = _form(request)
    next_url = _safe_next(_field(form, "next") or request.query_params.get("next"))

    if await run_in_threadpool(provider.check_rate_limit, f"{_client_ip(request)}|/login") is not None:
        return RedirectResponse("/login?error=rate_limited", status_code=302)

    result = await run_in_threadpool(
        provider.sign_in_email,
        _field(form, "email"),
        _field(form, "password", strip=False),
        _client_ip(request),
        request.headers.get("user-agent"),
    )
    if result is None:
        return RedirectResponse("/login?error=bad_credentials", status_code=302)
    if not result.user.is_active:
        # The provider will sign a deactivated user in; the guard would then
        # bounce every page straight back here. Drop the session instead.
        await run_in_threadpool(provider.sign_out, {"authorization": f"Bearer {result.cookie_value}"})
        return RedirectResponse("/login?error=account_disabled", status_code=302)
    return _signed_in(result, next_url)


@router.get("/register", response_class=HTMLResponse)
def register_form(request: Request) -> HTMLResponse:
    """Render the sign-up form."""
    if redirect := _require_anonymous(request):
        return redirect

    error_msg = _ERROR_MESSAGES.get(request.query_params.get("error", ""), None)
    return templates.TemplateResponse(request, "register.html", {"error_msg": error_msg, "form": {}})


@router.post("/register", response_class=HTMLResponse)
async def register_post(request: Request):
    """Handle the sign-up form.

    Field errors re-render the form with the submitted name and email kept;
    passwords are never echoed back.
    """
    if redirect := _require_anonymous(request):
        return redirect

    provider: AuthProvider = request.app.state.auth
    form = _form(request)
    name = _field(form, "name")
    email = _field(form, "email")
    password = _field(form, "password", strip=False)
    confirm = _field(form, "confirm_password", strip=False)

    def _rerender(message: str) -> HTMLResponse:
        return templates.TemplateResponse(
            request,
            "register.html",
            {"error_msg": message, "form": {"name": name, "email": email}},
            status_code=400,
        )

    if len(name) < 2:
        return _rerender("Name must be at least 2 characters.")
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError:
        return _rerender("Enter a valid email address.")
    if not _MIN_PASSWORD <= len(password) <= _MAX_PASSWORD:
        return _rerender(f"Password must be {_MIN_PASSWORD} to {_MAX_PASSWORD} characters.")
    if password != confirm:
        return _rerender("Passwords do not match.")

    if await run_in_threadpool(provider.check_rate_limit, f"{_client_ip(request)}|/register") is not None:
        return RedirectResponse("/register?error=rate_limited", status_code=302)

    try:
        result = await run_in_threadpool(
            provider.sign_up_email,
            name,
            email,
            password,
            _client_ip(request),
            request.headers.get("user-agent"),
        )
    except ConflictError:
        return RedirectResponse("/register?error=email_taken", status_code=302)
    return _signed_in(result, "/dashboard")


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Delete the current session server-side, clear the cookie, go to /login."""
    provider: AuthProvider = request.app.state.auth
    provider.sign_out(request.headers)
    resp = RedirectResponse("/login", status_code=302)
    clear_session_cookie(resp)
    return resp
