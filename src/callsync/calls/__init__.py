"""Call webhook processing -- normalization, note rendering, reconciliation."""

from src.callsync.calls.normalizer import normalize_payload
from src.callsync.calls.note_formatter import format_note
from src.callsync.calls.reconciler import CallReconciler
from src.callsync.calls.schemas import CallRecord, ChatMessage, ReconciliationResult

__all__ = [
    "CallReconciler",
    "CallRecord",
    "ChatMessage",
    "ReconciliationResult",
    "format_note",
    "normalize_payload",
]
