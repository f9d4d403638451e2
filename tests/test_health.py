"""
tests/test_health.py -- GET /api/v1/health.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.main import __version__


def test_health_is_public(client: TestClient) -> None:
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["version"] == __version__
    assert body["components"] == {"app": "ok", "database": "ok"}


def test_unexpected_host_is_rejected(client: TestClient) -> None:
    resp = client.get("/api/v1/health", headers={"Host": "evil.example.com"})
    assert resp.status_code == 400
