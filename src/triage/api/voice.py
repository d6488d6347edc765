"""Voice-transport webhook.

The voice agent posts one JSON message per event.  ``tool-calls`` messages are
translated into dispatcher commands for the session named in
``call.metadata.sessionId``; ``end-of-call-report`` pauses that session so a
later call can pick up where this one stopped.  Other message types are
acknowledged and ignored.

When ``VOICE_WEBHOOK_SECRET`` is set, the raw body must carry a valid
HMAC-SHA256 hex digest in the ``X-Signature`` header.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request

from triage.api.routes import get_dispatcher
from triage.dispatch.commands import Command
from triage.dispatch.dispatcher import TriageDispatcher
from triage.dispatch.messages import SESSION_BUSY, SESSION_NOT_FOUND, UNKNOWN_COMMAND
from triage.domain.errors import InvalidCommandError, SessionBusyError, SessionNotFoundError

logger = structlog.get_logger()

router = APIRouter()

TOOL_COMMANDS: dict[str, Command] = {
    "archive_email": Command.ARCHIVE,
    "delete_email": Command.DELETE,
    "star_email": Command.STAR,
    "skip_email": Command.SKIP,
    "undo_action": Command.UNDO,
    "get_remaining_count": Command.QUERY_REMAINING,
    "end_session": Command.END_SESSION,
    "get_current_email": Command.GET_CURRENT,
}


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Verify the HMAC-SHA256 hex digest of the raw request body.

    Must be given the raw bytes, before any JSON parsing.
    """
    computed = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, signature)


def _object(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _session_id(message: dict[str, Any]) -> str | None:
    metadata = _object(_object(message.get("call")).get("metadata"))
    session_id = metadata.get("sessionId")
    return session_id if isinstance(session_id, str) and session_id else None


def _tool_calls(message: dict[str, Any]) -> list[dict[str, Any]]:
    """Tool calls in order; entries that are not JSON objects are dropped."""
    calls = message.get("toolCallList")
    if calls is None:
        wrapped = message.get("toolWithToolCallList")
        entries = wrapped if isinstance(wrapped, list) else []
        calls = [_object(entry).get("toolCall") for entry in entries]
    if not isinstance(calls, list):
        return []
    return [call for call in calls if isinstance(call, dict)]


def _tool_name(call: dict[str, Any]) -> str:
    name = call.get("name") or _object(call.get("function")).get("name")
    return name if isinstance(name, str) else ""


def _tool_params(call: dict[str, Any]) -> dict[str, Any] | None:
    params = call.get("parameters")
    if params is None:
        params = _object(call.get("function")).get("arguments")
    if isinstance(params, str):
        try:
            params = json.loads(params) if params else None
        except json.JSONDecodeError:
            return None
    return params if isinstance(params, dict) else None


async def handle_tool_calls(
    dispatcher: TriageDispatcher, message: dict[str, Any]
) -> dict[str, Any]:
    """Run each tool call in order and speak the last reply."""
    session_id = _session_id(message)
    if session_id is None:
        logger.warning("voice_tool_calls_without_session")
        return {"results": [], "spokenMessage": SESSION_NOT_FOUND}

    results: list[dict[str, str]] = []
    spoken_message = ""
    for call in _tool_calls(message):
        name = _tool_name(call)
        command = TOOL_COMMANDS.get(name)
        if command is None:
            logger.warning("voice_unknown_tool", session_id=session_id, tool=name)
            data: dict[str, Any] = {"success": False, "error": "Unknown function"}
            spoken_message = UNKNOWN_COMMAND
        else:
            try:
                result = await dispatcher.command(session_id, command, _tool_params(call))
            except SessionNotFoundError:
                return {"results": results, "spokenMessage": SESSION_NOT_FOUND}
            except SessionBusyError:
                data = {"success": False, "error": "busy"}
                spoken_message = SESSION_BUSY
            except InvalidCommandError as exc:
                data = {"success": False, "error": exc.reason}
                spoken_message = UNKNOWN_COMMAND
            else:
                data = result.data
                spoken_message = result.spoken_message

        results.append(
            {"name": name, "toolCallId": str(call.get("id", "")), "result": json.dumps(data)}
        )

    return {"results": results, "spokenMessage": spoken_message}


async def handle_end_of_call(dispatcher: TriageDispatcher, message: dict[str, Any]) -> None:
    session_id = _session_id(message)
    if session_id is None:
        return
    try:
        status = await dispatcher.pause_session(session_id)
    except SessionNotFoundError:
        logger.info("voice_call_ended_for_missing_session", session_id=session_id)
        return
    logger.info(
        "voice_call_ended",
        session_id=session_id,
        status=status["status"],
        ended_reason=message.get("endedReason"),
    )


@router.post("/webhooks/voice")
async def voice_webhook(request: Request) -> dict[str, Any]:
    """Receive one voice-transport event.

    Raises:
        HTTPException: 401 if a secret is configured and the signature is
            missing or wrong; 400 if the body is not a JSON object.
    """
    raw_body = await request.body()

    secret = request.app.state.settings.voice_webhook_secret.get_secret_value()
    if secret:
        signature = request.headers.get("X-Signature")
        if not signature:
            logger.warning("voice_webhook_missing_signature")
            raise HTTPException(status_code=401, detail="Missing signature")
        if not verify_signature(raw_body, signature, secret):
            logger.warning("voice_webhook_invalid_signature")
            raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        payload = json.loads(raw_body)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")

    # Some transports wrap the event in a top-level "message" key.
    message = payload.get("message") if isinstance(payload.get("message"), dict) else payload
    message_type = message.get("type")
    logger.info("voice_webhook_received", message_type=message_type)

    dispatcher = get_dispatcher(request)
    if message_type == "tool-calls":
        return await handle_tool_calls(dispatcher, message)
    if message_type == "end-of-call-report":
        await handle_end_of_call(dispatcher, message)
    return {"received": True}
