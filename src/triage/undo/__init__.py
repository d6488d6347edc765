"""Time-boxed single-action undo."""

from triage.undo.ledger import DEFAULT_UNDO_WINDOW_SECONDS, ReverseCall, UndoLedger

__all__ = [
    "DEFAULT_UNDO_WINDOW_SECONDS",
    "ReverseCall",
    "UndoLedger",
]
