"""FastAPI dependency injection for the token store and the reconciler."""

from __future__ import annotations

from functools import lru_cache

from src.callsync.calls.reconciler import CallReconciler
from src.callsync.config import get_settings
from src.callsync.core.token_store import TokenStore, get_token_store
from src.callsync.crm import build_gateway


def get_tokens() -> TokenStore:
    """Process-wide token store (seeded at startup)."""
    return get_token_store()


@lru_cache
def _reconciler() -> CallReconciler:
    settings = get_settings()
    gateway = build_gateway(settings, get_token_store())
    return CallReconciler(
        gateway,
        tz_label=settings.NOTE_TIMEZONE_LABEL,
        tz_offset_hours=settings.NOTE_TIMEZONE_OFFSET_HOURS,
    )


def get_reconciler() -> CallReconciler:
    """Process-wide reconciler; its field id cache lives as long as the process."""
    return _reconciler()
