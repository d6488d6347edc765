"""Session REST surface.

Thin HTTP adapter over ``TriageDispatcher``; all state changes go through it.
Domain errors are translated to HTTP status codes by the handlers that
``register_error_handlers`` installs.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from triage.dispatch.dispatcher import TriageDispatcher
from triage.domain.errors import (
    InvalidCommandError,
    InvalidTransitionError,
    InvariantViolationError,
    SessionBusyError,
    SessionNotFoundError,
    TriageError,
)
from triage.domain.types import SessionStatus

logger = structlog.get_logger()

router = APIRouter(prefix="/sessions", tags=["sessions"])


class StartSessionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    account_email: str = Field(min_length=3)
    use_canonical_order: bool = False


class CommandRequest(BaseModel):
    command: str
    params: dict[str, Any] | None = None


def get_dispatcher(request: Request) -> TriageDispatcher:
    dispatcher: TriageDispatcher | None = request.app.state.services.get("dispatcher")
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="Triage dispatcher not configured")
    return dispatcher


@router.post("", status_code=201)
async def start_session(body: StartSessionRequest, request: Request) -> dict[str, Any]:
    """Create a session for the account and return its first item."""
    dispatcher = get_dispatcher(request)
    try:
        started = await dispatcher.start_session(body.account_email, body.use_canonical_order)
    except TriageError:
        raise
    except Exception as exc:
        logger.exception("session_start_failed", account=body.account_email)
        raise HTTPException(status_code=502, detail="Could not load the inbox") from exc
    return started.model_dump(by_alias=True)


@router.get("")
async def list_sessions(
    request: Request, account: str, status: SessionStatus | None = None
) -> dict[str, Any]:
    store = request.app.state.services["session_store"]
    return {"sessions": store.list_for_account(account, status)}


@router.get("/{session_id}")
async def get_session(session_id: str, request: Request) -> dict[str, Any]:
    return get_dispatcher(request).get_status(session_id)


@router.post("/{session_id}/commands")
async def run_command(session_id: str, body: CommandRequest, request: Request) -> dict[str, Any]:
    """Dispatch one command; recoverable failures come back as ``success: false``."""
    result = await get_dispatcher(request).command(session_id, body.command, body.params)
    return result.model_dump(by_alias=True)


@router.post("/{session_id}/stop")
async def stop_session(session_id: str, request: Request) -> dict[str, Any]:
    return await get_dispatcher(request).pause_session(session_id)


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str, request: Request) -> None:
    if not await get_dispatcher(request).delete_session(session_id):
        raise SessionNotFoundError(session_id)


def register_error_handlers(app: FastAPI) -> None:
    """Map domain exceptions onto HTTP responses."""

    @app.exception_handler(SessionNotFoundError)
    async def _not_found(request: Request, exc: SessionNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidCommandError)
    async def _invalid_command(request: Request, exc: InvalidCommandError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc), "command": exc.command, "reason": exc.reason},
        )

    @app.exception_handler(SessionBusyError)
    async def _busy(request: Request, exc: SessionBusyError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def _invalid_transition(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(InvariantViolationError)
    async def _invariant(request: Request, exc: InvariantViolationError) -> JSONResponse:
        logger.error("invariant_violation", error=str(exc), path=request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})
