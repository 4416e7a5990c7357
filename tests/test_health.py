"""
tests/test_health.py -- Integration tests for GET /api/v1/health and GET /.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok', and 503 when the database is unreachable
  - No authentication required
  - Unknown paths render the failure envelope
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError


def test_health_returns_200_with_components(client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["database"] == "ok"


def test_health_reports_database_down(client, user_store, monkeypatch):
    def boom():
        raise OperationalError("SELECT 1", {}, Exception("disk gone"))

    monkeypatch.setattr(user_store, "ping", boom)
    resp = client.get("/api/v1/health")
    assert resp.status_code == 503
    assert resp.json()["status"] == "degraded"
    assert resp.json()["components"]["database"] == "unavailable"


def test_health_no_auth_required(client):
    """Health endpoint is accessible without any authentication headers."""
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_root_welcome(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert "Welcome" in resp.json()["message"]


def test_unknown_path_envelope(client):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "status": 404, "code": "http_404", "error": "Not Found"}
