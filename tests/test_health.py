"""
tests/test_health.py -- Integration tests for GET /api and GET /api/health.

Covers:
  - Greeting at the API root
  - 200 response with status, timestamp, auth, and database fields
  - Database outage reported as "error" rather than a 500
  - No authentication required
  - Interactive docs and OpenAPI schema under the API prefix
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import OperationalError


def test_root_returns_greeting(client):
    resp = client.get("/api")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Hello World!"}


def test_health_returns_200_with_fields(client):
    """Health endpoint reports ok, a parseable timestamp, and the auth/database state."""
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["auth"] == "configured"
    assert data["database"] == "ok"
    assert datetime.fromisoformat(data["timestamp"]).tzinfo is not None


def test_health_reports_database_error(client, monkeypatch):
    """A failing database shows up in the body; the endpoint itself stays up."""

    class _BrokenEngine:
        def connect(self):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(client.app.state, "engine", _BrokenEngine())
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["database"] == "error"
    assert data["status"] == "degraded"


def test_health_no_auth_required(client):
    """Health endpoint is accessible without any cookie or Authorization header."""
    client.cookies.clear()
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_api_docs_served(client):
    assert client.get("/api/docs").status_code == 200
    schema = client.get("/api/openapi.json").json()
    assert "/api/users" in schema["paths"]
    assert "/api/auth/sign-in/email" in schema["paths"]
