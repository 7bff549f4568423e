"""Call webhook reconciliation into amoCRM.

Runs the linear pipeline for one webhook:

    normalize -> find contact -> create | update contact -> create lead
    -> format note -> attach note

Any error aborts the remaining steps and propagates unchanged. Entities
created before the failure stay in the CRM.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.callsync.calls.normalizer import normalize_payload
from src.callsync.calls.note_formatter import DEFAULT_TZ_LABEL, DEFAULT_TZ_OFFSET_HOURS, format_note
from src.callsync.calls.schemas import CallRecord, ReconciliationResult
from src.callsync.crm.gateway import AmoGateway

logger = structlog.get_logger(__name__)


def lead_name(record: CallRecord) -> str:
    """`<company or name or phone> / <phone>`."""
    return f"{record.company or record.name or record.raw_phone} / {record.raw_phone}"


class CallReconciler:
    """Reconciles call-center webhooks into contacts, leads and notes.

    Args:
        gateway: amoCRM gateway used for every round trip.
        tz_label: Timezone label printed in note timestamps.
        tz_offset_hours: Fixed UTC offset of that timezone.
    """

    def __init__(
        self,
        gateway: AmoGateway,
        tz_label: str = DEFAULT_TZ_LABEL,
        tz_offset_hours: int = DEFAULT_TZ_OFFSET_HOURS,
    ) -> None:
        self._gateway = gateway
        self._tz_label = tz_label
        self._tz_offset_hours = tz_offset_hours

    async def handle_webhook(self, body: Any) -> ReconciliationResult:
        """Process one webhook body and return the contact and lead ids."""
        record = normalize_payload(body)
        log = logger.bind(phone=record.phone)

        contact_name = record.name or record.raw_phone
        contact = await self._gateway.find_contact_by_phone(record.phone)
        if contact is None:
            contact = await self._gateway.create_contact(
                contact_name,
                record.raw_phone,
                record.email,
                record.company,
                record.position,
            )
        else:
            contact = await self._gateway.update_contact(
                contact.id,
                contact_name,
                record.raw_phone,
                record.email,
                record.company,
                record.position,
            )

        lead = await self._gateway.create_lead(
            contact.id,
            lead_name(record),
            record.budget,
            list(record.tags),
            record.company,
        )

        note = format_note(record, self._tz_label, self._tz_offset_hours)
        await self._gateway.add_note_to_lead(lead.id, note)

        log.info("webhook.reconciled", contact_id=contact.id, lead_id=lead.id)
        return ReconciliationResult(contact_id=contact.id, lead_id=lead.id)
