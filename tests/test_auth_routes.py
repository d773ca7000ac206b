"""
tests/test_auth_routes.py -- Integration tests for the auth provider's handler.

Covers:
  - sign-up: session cookie issued (httponly), user created unverified, 409 on duplicate
  - sign-up: password length and email validation -> 422
  - sign-in: correct password issues a new session; wrong password and unknown
    email both give the same 401 bad_credentials
  - sign-out: session row deleted, cookie cleared, idempotent
  - get-session: null without a session, session + user with one
  - email verification: token issued and logged, single use, unknown -> 404
  - provider rate limit: 429 with Retry-After once the window is full
"""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import select

from core.database import sessions

PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# sign-up
# ---------------------------------------------------------------------------


def test_sign_up_issues_session_cookie(client):
    resp = client.post(
        "/api/auth/sign-up/email",
        json={"name": "Ada Lovelace", "email": "ada@example.com", "password": PASSWORD},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "ada@example.com"
    assert data["user"]["email_verified"] is False
    assert data["user"]["is_active"] is True
    assert "token" not in data["session"]

    set_cookie = resp.headers["set-cookie"].lower()
    assert "session_token=" in set_cookie
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert resp.headers["cache-control"] == "no-store"


def test_sign_up_duplicate_email_409(client, sign_up):
    sign_up(client)
    client.cookies.clear()
    resp = client.post(
        "/api/auth/sign-up/email",
        json={"name": "Impostor", "email": "ada@example.com", "password": PASSWORD},
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"


@pytest.mark.parametrize(
    "body",
    [
        {"name": "Ada", "email": "ada@example.com", "password": "short"},
        {"name": "Ada", "email": "ada@example.com", "password": "x" * 129},
        {"name": "Ada", "email": "nope", "password": PASSWORD},
        {"email": "ada@example.com"},
    ],
)
def test_sign_up_validation_422(client, body):
    resp = client.post("/api/auth/sign-up/email", json=body)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation_error"


def test_sign_up_rejects_non_object_body(client):
    resp = client.post("/api/auth/sign-up/email", json=["ada@example.com"])
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "malformed_body"


# ---------------------------------------------------------------------------
# sign-in / sign-out
# ---------------------------------------------------------------------------


def test_sign_in_creates_new_session(client, sign_up):
    created = sign_up(client)
    client.cookies.clear()

    resp = client.post("/api/auth/sign-in/email", json={"email": "ada@example.com", "password": PASSWORD})
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["id"] == created["user"]["id"]
    assert data["session"]["id"] != created["session"]["id"]
    assert client.get("/api/users/me").status_code == 200


@pytest.mark.parametrize(
    "email,password",
    [
        ("ada@example.com", "wrong-password"),
        ("nobody@example.com", PASSWORD),
    ],
)
def test_sign_in_failures_are_indistinguishable(client, sign_up, email, password):
    sign_up(client)
    client.cookies.clear()
    resp = client.post("/api/auth/sign-in/email", json={"email": email, "password": password})
    assert resp.status_code == 401
    assert resp.json() == {"error": {"code": "bad_credentials", "message": "Invalid email or password."}}
    assert "set-cookie" not in resp.headers


def test_sign_out_deletes_session(client, sign_up):
    created = sign_up(client)
    resp = client.post("/api/auth/sign-out")
    assert resp.status_code == 200
    assert resp.json() == {"status": True}
    assert "session_token=" in resp.headers["set-cookie"]

    with client.app.state.engine.connect() as conn:
        rows = conn.execute(select(sessions).where(sessions.c.id == created["session"]["id"])).fetchall()
    assert rows == []
    assert client.get("/api/users/me").status_code == 401


def test_sign_out_without_session_is_ok(client):
    resp = client.post("/api/auth/sign-out")
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# get-session
# ---------------------------------------------------------------------------


def test_get_session_without_cookie_is_null(client):
    resp = client.get("/api/auth/get-session")
    assert resp.status_code == 200
    assert resp.json() is None


def test_get_session_with_cookie(client, sign_up):
    created = sign_up(client)
    resp = client.get("/api/auth/get-session")
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"]["email"] == "ada@example.com"
    assert data["session"]["id"] == created["session"]["id"]


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


def test_verification_flow(client, sign_up, caplog):
    sign_up(client)
    with caplog.at_level(logging.INFO, logger="authstarter.auth"):
        resp = client.post("/api/auth/send-verification-email", json={"email": "ada@example.com"})
    assert resp.status_code == 200
    assert resp.json() == {"status": True}

    links = [r.getMessage() for r in caplog.records if "verify-email?token=" in r.getMessage()]
    assert len(links) == 1
    token = links[0].rsplit("token=", 1)[1]

    resp = client.get("/api/auth/verify-email", params={"token": token})
    assert resp.status_code == 200
    assert resp.json()["email_verified"] is True
    assert client.get("/api/users/me").json()["user"]["email_verified"] is True

    # Tokens are single use.
    again = client.get("/api/auth/verify-email", params={"token": token})
    assert again.status_code == 404


def test_verification_unknown_email_is_silent(client):
    resp = client.post("/api/auth/send-verification-email", json={"email": "ghost@example.com"})
    assert resp.status_code == 200
    assert resp.json() == {"status": True}


def test_newer_verification_token_replaces_older(client, sign_up):
    sign_up(client)
    provider = client.app.state.auth
    first = provider.send_verification_email("ada@example.com")
    second = provider.send_verification_email("ada@example.com")
    assert first != second
    assert client.get("/api/auth/verify-email", params={"token": first}).status_code == 404
    assert client.get("/api/auth/verify-email", params={"token": second}).status_code == 200


def test_verify_unknown_token_404(client):
    resp = client.get("/api/auth/verify-email", params={"token": "nope"})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


# ---------------------------------------------------------------------------
# Provider rate limit
# ---------------------------------------------------------------------------


def test_sign_in_rate_limited(limited_client):
    limited = limited_client
    body = {"email": "nobody@example.com", "password": PASSWORD}
    assert limited.post("/api/auth/sign-in/email", json=body).status_code == 401
    assert limited.post("/api/auth/sign-in/email", json=body).status_code == 401

    resp = limited.post("/api/auth/sign-in/email", json=body)
    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "rate_limited"
    assert int(resp.headers["retry-after"]) >= 1

    # Counters are per path, so sign-up has its own window.
    other = limited.post("/api/auth/sign-up/email", json={"name": "Ada", "email": "a@x.com", "password": PASSWORD})
    assert other.status_code == 200
