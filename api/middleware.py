"""
api/middleware.py -- Body-routing middleware.

Runs once per inbound HTTP request, before any route handler touches the body.

  - Paths under the auth prefix pass through untouched. The auth provider's
    handler reads the raw body itself; reading it here first would either
    consume the stream or parse it twice.
  - Every other request has its body read into memory (capped at
    limit_bytes, never spooled to disk) and parsed according to its content
    type: JSON, then URL-encoded form data. The result is attached to the
    request as request.state.parsed_body and the raw bytes are replayed to the
    downstream app so FastAPI's own validation still runs.
  - A body that cannot be decoded stops the request here with 400
    malformed_body; an oversized one with 413 payload_too_large. The route
    handler never runs with a half-parsed body.

This is a pure ASGI middleware rather than @app.middleware("http") so the
replayed receive channel is under our control.
"""

from __future__ import annotations

import json
import logging
from urllib.parse import parse_qs

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from api.models import ErrorDetail, ErrorResponse
from core.errors import AppError, MalformedBodyError, PayloadTooLargeError

logger = logging.getLogger("authstarter.api")

_JSON_TYPES = ("application/json",)
_FORM_TYPES = ("application/x-www-form-urlencoded",)


def is_auth_path(path: str, auth_prefix: str) -> bool:
    """True for the auth prefix itself and anything beneath it (not /api/authors)."""
    prefix = auth_prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def parse_body(body: bytes, content_type: str) -> dict | list:
    """Parse a request body by content type.

    JSON bodies may be any JSON value; form bodies become a dict whose
    repeated keys map to lists. Empty bodies and unknown content types parse
    to an empty dict.

    Raises MalformedBodyError when the body does not decode.
    """
    media_type = content_type.split(";", 1)[0].strip().lower()
    if not body:
        return {}
    if media_type in _JSON_TYPES or media_type.endswith("+json"):
        try:
            return json.loads(body.decode("utf-8"))
        except ValueError as exc:
            raise MalformedBodyError("Request body is not valid JSON.", detail=str(exc)) from exc
    if media_type in _FORM_TYPES:
        try:
            fields = parse_qs(body.decode("utf-8"), keep_blank_values=True, errors="strict")
        except ValueError as exc:
            raise MalformedBodyError("Request body is not valid form data.", detail=str(exc)) from exc
        return {k: v[0] if len(v) == 1 else v for k, v in fields.items()}
    return {}


async def _read_body(receive: Receive, limit_bytes: int) -> bytes:
    chunks: list[bytes] = []
    size = 0
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        chunk = message.get("body", b"")
        size += len(chunk)
        if size > limit_bytes:
            raise PayloadTooLargeError(f"Request body exceeds {limit_bytes} bytes.")
        chunks.append(chunk)
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


def _error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message, detail=exc.detail)).model_dump(),
    )


class BodyRoutingMiddleware:
    """Parse non-auth request bodies up front; leave auth-prefix requests alone."""

    def __init__(self, app: ASGIApp, auth_prefix: str, limit_bytes: int = 5 * 1024 * 1024) -> None:
        self.app = app
        self.auth_prefix = auth_prefix
        self.limit_bytes = limit_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or is_auth_path(scope["path"], self.auth_prefix):
            await self.app(scope, receive, send)
            return

        headers = {k.decode("latin-1").lower(): v.decode("latin-1") for k, v in scope.get("headers", [])}
        try:
            declared = int(headers.get("content-length", "0") or 0)
        except ValueError:
            declared = 0

        try:
            if declared > self.limit_bytes:
                raise PayloadTooLargeError(f"Request body exceeds {self.limit_bytes} bytes.")
            body = await _read_body(receive, self.limit_bytes)
            parsed = parse_body(body, headers.get("content-type", ""))
        except AppError as exc:
            logger.warning("Rejected body on %s %s: %s", scope["method"], scope["path"], exc.code)
            await _error_response(exc)(scope, receive, send)
            return

        scope.setdefault("state", {})["parsed_body"] = parsed

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)
