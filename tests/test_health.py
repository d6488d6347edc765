"""Tests for /health and /ready observability endpoints.

Uses FastAPI TestClient with in-memory SQLite connections to verify
liveness and readiness probes without external dependencies.
"""

from __future__ import annotations

import sqlite3

from fastapi import FastAPI
from fastapi.testclient import TestClient

from triage.health import register_health_routes


def _make_app(services: dict | None = None) -> FastAPI:
    """Create a minimal FastAPI app with health routes and given services."""
    app = FastAPI()
    app.state.services = services or {}
    register_health_routes(app)
    return app


class TestHealthEndpoint:
    """GET /health liveness probe."""

    def test_health_returns_200(self) -> None:
        response = TestClient(_make_app()).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestReadyEndpoint:
    """GET /ready readiness probe."""

    def test_ready_when_database_and_mailbox_ok(self) -> None:
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        client = TestClient(_make_app({"db_conn": conn, "mailbox": object()}))

        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {"database": "ok", "mailbox": "ok"},
        }
        conn.close()

    def test_not_ready_without_mailbox(self) -> None:
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        client = TestClient(_make_app({"db_conn": conn, "mailbox": None}))

        response = client.get("/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert body["checks"] == {"database": "ok", "mailbox": "fail"}
        conn.close()

    def test_not_ready_without_database(self) -> None:
        client = TestClient(_make_app({"db_conn": None, "mailbox": object()}))

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["database"] == "fail"

    def test_not_ready_when_database_connection_broken(self) -> None:
        """A closed connection raises ProgrammingError on execute."""
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        conn.close()
        client = TestClient(_make_app({"db_conn": conn, "mailbox": object()}))

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"] == {"database": "fail", "mailbox": "ok"}
