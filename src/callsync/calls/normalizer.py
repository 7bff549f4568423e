"""Webhook payload normalization.

Turns the heterogeneous call-center webhook body into a CallRecord. Only the
phone number is required; every other field defaults independently.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from src.callsync.calls.schemas import CallRecord, ChatMessage
from src.callsync.core.errors import ValidationError
from src.callsync.crm.schemas import digits_only

PHONE_PATHS: tuple[tuple[str, ...], ...] = (("contact", "phone"),)
NAME_PATHS: tuple[tuple[str, ...], ...] = (
    ("contact", "additionalFields", "name"),
    ("call", "agreements", "client_name"),
)


def _dig(body: Any, path: Sequence[str]) -> Any:
    node = body
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first_present(body: Any, paths: Sequence[Sequence[str]]) -> Any:
    for path in paths:
        value = _dig(body, path)
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_budget(value: Any) -> float | None:
    """Parse a budget; non-numeric, non-finite or negative values are absent."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def _parse_duration(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _parse_tags(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(tag) for tag in value if tag is not None and tag != "")


def _parse_chat_history(value: Any) -> tuple[ChatMessage, ...]:
    if not isinstance(value, list):
        return ()
    messages = []
    for item in value:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        messages.append(
            ChatMessage(
                role="" if role is None else str(role),
                content="" if content is None else str(content),
            )
        )
    return tuple(messages)


def normalize_payload(body: Any) -> CallRecord:
    """Build a CallRecord from a raw webhook body.

    Raises:
        ValidationError: The body is not an object or carries no phone
            number with at least one digit.
    """
    if not isinstance(body, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    raw_phone = _first_present(body, PHONE_PATHS)
    phone = digits_only(raw_phone)
    if not phone:
        raise ValidationError("Phone number is required to create a contact")

    agreements = _dig(body, ("call", "agreements"))
    if not isinstance(agreements, dict):
        agreements = {}
    lead_transfer = agreements.get("leadTransfer")
    if not isinstance(lead_transfer, dict):
        lead_transfer = {}

    return CallRecord(
        phone=phone,
        raw_phone=str(raw_phone),
        name=_text(_first_present(body, NAME_PATHS)),
        email=_text(lead_transfer.get("email")),
        company=_text(lead_transfer.get("company")),
        position=_text(lead_transfer.get("position")),
        budget=parse_budget(lead_transfer.get("budget")),
        region=_text(lead_transfer.get("region")),
        tags=_parse_tags(_dig(body, ("contact", "tags"))),
        record_url=_text(_dig(body, ("call", "recordUrl"))),
        call_duration_ms=_parse_duration(_dig(body, ("call", "duration"))),
        call_started_at=_dig(body, ("call", "startedAt")),
        contact_rate=agreements.get("contact_rate"),
        cval_rate=agreements.get("cval_rate"),
        client_facts=_text(agreements.get("client_facts")),
        chat_history=_parse_chat_history(_dig(body, ("call", "callDetails", "chatHistory"))),
        agreements=_text(agreements.get("agreements")),
        agreements_time_local=agreements.get("agreements_time_local"),
    )
