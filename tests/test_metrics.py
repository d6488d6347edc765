"""Tests for Prometheus metrics endpoint and custom business metrics."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from triage.observability.metrics import (
    COMMANDS_TOTAL,
    SESSIONS_STARTED,
    UNDO_APPLIED,
    setup_metrics,
)


@pytest.fixture()
def metrics_app() -> FastAPI:
    """Create a minimal FastAPI app with Prometheus instrumentation."""
    app = FastAPI()

    @app.get("/hello")
    async def hello():
        return {"msg": "hello"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready():
        return {"status": "ready"}

    setup_metrics(app)
    return app


@pytest.fixture()
def metrics_client(metrics_app: FastAPI) -> TestClient:
    return TestClient(metrics_app)


def test_metrics_endpoint_returns_prometheus_format(metrics_client: TestClient) -> None:
    metrics_client.get("/hello")
    resp = metrics_client.get("/metrics")
    assert resp.status_code == 200
    body = resp.text
    assert "http_request" in body
    assert "triage_sessions_started_total" in body
    assert "triage_undo_applied_total" in body


def test_excluded_handlers_not_in_metrics(metrics_client: TestClient) -> None:
    """/health and /ready do NOT appear as handler labels."""
    metrics_client.get("/health")
    metrics_client.get("/ready")
    body = metrics_client.get("/metrics").text
    lines = [
        line
        for line in body.splitlines()
        if "http_request_duration" in line and 'handler="' in line
    ]
    for line in lines:
        assert '/health"' not in line, f"/health found in metrics: {line}"
        assert '/ready"' not in line, f"/ready found in metrics: {line}"


def test_sessions_started_counter_increments(metrics_client: TestClient) -> None:
    initial = _extract_value(metrics_client.get("/metrics").text, "triage_sessions_started_total")
    SESSIONS_STARTED.inc()
    updated = _extract_value(metrics_client.get("/metrics").text, "triage_sessions_started_total")
    assert updated == initial + 1.0


def test_commands_counter_labelled_by_command_and_outcome(metrics_client: TestClient) -> None:
    COMMANDS_TOTAL.labels(command="archive", outcome="success").inc()
    body = metrics_client.get("/metrics").text
    assert 'triage_commands_total{command="archive",outcome="success"}' in body


def test_undo_counter_exposed(metrics_client: TestClient) -> None:
    UNDO_APPLIED.inc()
    assert _extract_value(metrics_client.get("/metrics").text, "triage_undo_applied_total") >= 1.0


def _extract_value(text: str, metric_name: str) -> float:
    """Extract the numeric value of an unlabelled sample from Prometheus text output."""
    for line in text.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[0] == metric_name:
            return float(parts[1])
    raise ValueError(f"Metric {metric_name} not found in output")
