"""
tests/test_health.py -- Integration tests for GET /health and GET /api.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against a live store
  - No authentication required
  - /api lists every public route
"""

from __future__ import annotations

from api.main import VERSION


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _ = api_client
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert "timestamp" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _ = api_client
    resp = client.get("/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_health_ignores_bad_token(api_client):
    client, _ = api_client
    resp = client.get("/health", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 200


def test_api_index_lists_endpoints(api_client):
    """GET /api describes the auth routes and which ones need a bearer token."""
    client, _ = api_client
    resp = client.get("/api")
    assert resp.status_code == 200
    endpoints = resp.json()["endpoints"]
    for key in ("POST /register", "POST /login", "GET /protected", "GET /admin", "GET /health"):
        assert key in endpoints
    assert endpoints["POST /login"]["auth"] == "public"
    assert endpoints["GET /protected"]["auth"].startswith("Authorization: Bearer")
