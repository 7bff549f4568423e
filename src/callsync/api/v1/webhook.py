"""Call-center webhook receiver.

POST /webhook runs the reconciliation pipeline for one call and maps its
failures onto HTTP status codes:

- 200: {"success": true, "contactId": ..., "leadId": ...}
- 400: invalid JSON body or ValidationError (no phone)
- 500: missing token, CRM failures and anything else
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

import structlog

from src.callsync.api.deps import get_reconciler, get_tokens
from src.callsync.calls.reconciler import CallReconciler
from src.callsync.core.errors import PreconditionError, UpstreamError, ValidationError
from src.callsync.core.monitoring import record_reconciliation
from src.callsync.core.token_store import TokenStore

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["webhook"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    tokens: TokenStore = Depends(get_tokens),
    reconciler: CallReconciler = Depends(get_reconciler),
):
    """Reconcile one call into an amoCRM contact, lead and note."""
    try:
        payload = await request.json()
    except ValueError:
        record_reconciliation("validation_error")
        return _error(status.HTTP_400_BAD_REQUEST, "Request body must be valid JSON")

    logger.info("webhook.received", payload=payload)

    if not tokens.has():
        logger.error("webhook.token_missing")
        record_reconciliation("precondition_error")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "amoCRM access token is not set; configure AMO_ACCESS_TOKEN",
        )

    try:
        result = await reconciler.handle_webhook(payload)
    except ValidationError as exc:
        logger.warning("webhook.invalid_payload", error=str(exc))
        record_reconciliation("validation_error")
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except PreconditionError as exc:
        logger.error("webhook.precondition_failed", error=str(exc))
        record_reconciliation("precondition_error")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
    except UpstreamError as exc:
        logger.error("webhook.upstream_failed", error=str(exc), status_code=exc.status_code, exc_info=True)
        record_reconciliation("upstream_error")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
    except Exception as exc:
        logger.error("webhook.processing_failed", exc_info=True)
        record_reconciliation("error")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Internal server error")

    record_reconciliation("success")
    return {"success": True, "contactId": result.contact_id, "leadId": result.lead_id}
