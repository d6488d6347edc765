"""HTTP surface: session REST routes and the voice-transport webhook."""

from triage.api.routes import get_dispatcher, register_error_handlers
from triage.api.routes import router as sessions_router
from triage.api.voice import TOOL_COMMANDS, verify_signature
from triage.api.voice import router as voice_router

__all__ = [
    "TOOL_COMMANDS",
    "get_dispatcher",
    "register_error_handlers",
    "sessions_router",
    "verify_signature",
    "voice_router",
]
