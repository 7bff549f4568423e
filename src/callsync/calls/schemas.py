"""Pydantic schemas for normalized call-center webhook data.

- ChatMessage: one transcript turn
- CallRecord: immutable, flat view of one webhook payload
- ReconciliationResult: entity ids produced by one pipeline run
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """One turn of the call transcript. role is "user" for the client."""

    model_config = ConfigDict(frozen=True)

    role: str = ""
    content: str = ""


class CallRecord(BaseModel):
    """Normalized webhook payload.

    `phone` holds the digits-only number used for matching and rendering;
    `raw_phone` is the value exactly as received, written to the CRM.
    """

    model_config = ConfigDict(frozen=True)

    phone: str
    raw_phone: str

    # Contact
    name: str | None = None
    email: str | None = None
    company: str | None = None
    position: str | None = None

    # Lead transfer
    budget: float | None = None
    region: str | None = None
    tags: tuple[str, ...] = ()

    # Call
    record_url: str | None = None
    call_duration_ms: float | None = None
    call_started_at: Any = None
    contact_rate: Any = None
    cval_rate: Any = None
    client_facts: str | None = None
    chat_history: tuple[ChatMessage, ...] = Field(default_factory=tuple)

    # Agreements
    agreements: str | None = None
    agreements_time_local: Any = None


class ReconciliationResult(BaseModel):
    """Ids of the CRM entities touched by one webhook."""

    contact_id: int
    lead_id: int
