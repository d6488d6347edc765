"""Health and readiness endpoints for container orchestration.

- ``GET /health`` -- Liveness probe.  Returns 200 while the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when the session
  database answers **and** a mailbox backend is configured.  Returns 503 with
  per-check details otherwise.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*."""

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        db_conn = services.get("db_conn")
        if db_conn is not None:
            try:
                await asyncio.to_thread(db_conn.execute, "SELECT 1")
                checks["database"] = "ok"
            except sqlite3.Error:
                checks["database"] = "fail"
        else:
            checks["database"] = "fail"

        checks["mailbox"] = "ok" if services.get("mailbox") is not None else "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
