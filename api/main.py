"""
api/main.py -- FastAPI application entry point for the auth starter.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. log_requests           -- one access-log line per request
  2. CORSMiddleware         -- credentialed CORS for the configured origins
  3. SlowAPIMiddleware      -- default per-IP throttle from api.limiter
  4. BodyRoutingMiddleware  -- parses non-auth bodies, leaves /api/auth/* alone

Lifespan builds the single Engine (one connection pool) and injects it into
the user store and the auth provider on app.state. Nothing else creates an
engine.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.middleware import BodyRoutingMiddleware
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.provider import AuthProvider
from core.config import get_settings
from core.database import create_store_engine, init_schema
from core.errors import AppError
from users.store import UserStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authstarter.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the shared engine and the components that hold it; dispose on shutdown."""
    logger.info("Auth starter API starting up")
    engine = create_store_engine(_settings.database_url)
    init_schema(engine)
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.auth = AuthProvider(engine, _settings)
    logger.info("Database ready, auth provider mounted at %s", _settings.auth_prefix)

    yield

    engine.dispose()
    logger.info("Auth starter API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title=_settings.app_title,
    description="Session-cookie authentication and user management.",
    version=_settings.app_version,
    lifespan=lifespan,
    docs_url=_settings.docs_path if _settings.docs_enabled else None,
    redoc_url=None,
    openapi_url=f"{_settings.api_prefix}/openapi.json" if _settings.docs_enabled else None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the current stack, so the LAST registration is the
# outermost layer. Register innermost first: BodyRouting -> SlowAPI -> CORS,
# then the request logger via @app.middleware last.
# ---------------------------------------------------------------------------

app.add_middleware(
    BodyRoutingMiddleware,
    auth_prefix=_settings.auth_prefix,
    limit_bytes=_settings.body_limit_bytes,
)

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix=_settings.auth_prefix, tags=["Auth"])
app.include_router(users_router, prefix=_settings.api_prefix, tags=["Users"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
        headers=headers,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map domain failures (not found, conflict, malformed body) to their status codes."""
    return _error(exc.status_code, exc.code, exc.message, exc.detail)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when the global throttle trips."""
    retry_after = int(getattr(exc, "retry_after", 60))
    return _error(429, "rate_limited", "Too many requests.", str(exc), headers={"Retry-After": str(retry_after)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when a body, path, or query value fails validation."""
    return _error(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all HTTP exceptions.

    Route handlers and the auth guard raise HTTPException with a dict detail.
    When detail is already structured, use it directly as the error field
    rather than stringifying it. Headers (e.g. Retry-After) are preserved.
    """
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=headers)
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected failures, store outages included.

    The traceback goes to the server log only. The client receives a generic
    message with no internal detail.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Root and health
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get(_settings.api_prefix or "/", tags=["Health"])
async def root() -> dict:
    """Liveness greeting."""
    return {"message": "Hello World!"}


@app.get(f"{_settings.api_prefix}/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Report API liveness and database reachability."""
    database = "ok"
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check could not reach the database")
        database = "error"
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=database,
    )
