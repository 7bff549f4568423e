"""Health check endpoint."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from src.callsync.api.deps import get_tokens
from src.callsync.config import get_settings
from src.callsync.core.token_store import TokenStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(tokens: TokenStore = Depends(get_tokens)):
    """Liveness check; also reports whether an amoCRM token is configured."""
    settings = get_settings()
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "hasToken": tokens.has(),
        "environment": settings.ENVIRONMENT.value,
    }
