"""amoCRM gateway -- idempotent entity operations for webhook reconciliation.

Every method translates domain values into amoCRM's entity / custom-field
shape, calls the shared AmoClient transport and parses the HAL response
(`_embedded.<entities>[0]`) back into schema models.

Failure policy:
- Upstream failures propagate as UpstreamError (or CredentialRejectedError).
- Company resolution and the pre-update contact fetch are best-effort: they
  return a LookupResult carrying a DegradedLookupError instead of raising.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from src.callsync.core.errors import DegradedLookupError, UpstreamError
from src.callsync.crm.client import AmoClient
from src.callsync.crm.field_mapping import FieldIdResolver, FieldIds, get_enum_id
from src.callsync.crm.schemas import (
    Company,
    Contact,
    CustomField,
    CustomFieldValue,
    Lead,
    LookupResult,
    digits_only,
)

logger = structlog.get_logger(__name__)


def _first_embedded(response: Any, key: str) -> dict[str, Any] | None:
    """Return `_embedded.<key>[0]` or None."""
    if not isinstance(response, dict):
        return None
    items = (response.get("_embedded") or {}).get(key) or []
    if items and isinstance(items[0], dict):
        return items[0]
    return None


def _embedded_list(response: Any, key: str) -> list[dict[str, Any]]:
    if not isinstance(response, dict):
        return []
    items = (response.get("_embedded") or {}).get(key) or []
    return [item for item in items if isinstance(item, dict)]


def _single_entity(response: Any, key: str) -> dict[str, Any] | None:
    """Accept either a HAL collection or a bare entity with an `id`."""
    embedded = _first_embedded(response, key)
    if embedded is not None:
        return embedded
    if isinstance(response, dict) and response.get("id") is not None:
        return response
    return None


class AmoGateway:
    """CRM operations used by the reconciliation pipeline.

    Args:
        client: Authenticated amoCRM transport.
        resolver: Memoizing custom field id resolver.
        pipeline_id: Pipeline every new lead is placed in.
        status_id: Stage every new lead starts at.
    """

    def __init__(
        self,
        client: AmoClient,
        resolver: FieldIdResolver,
        pipeline_id: int,
        status_id: int,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._pipeline_id = pipeline_id
        self._status_id = status_id

    # ── Contacts ─────────────────────────────────────────────────────────

    async def find_contact_by_phone(self, phone: str) -> Contact | None:
        """Find a contact by phone number.

        Searches by the digits-only phone and prefers the candidate whose
        phone field digits equal the query exactly; otherwise the first
        search result wins. Returns None when the search is empty.
        """
        query = digits_only(phone)
        response = await self._client.request(
            "GET", "/api/v4/contacts", params={"query": query}
        )
        candidates = [Contact.model_validate(item) for item in _embedded_list(response, "contacts")]
        if not candidates:
            logger.info("crm.contact_not_found", phone=query)
            return None

        field_ids = await self._resolver.resolve()
        phone_code = self._resolver.fields["phone"].code
        for contact in candidates:
            if query in contact.phone_digits(phone_code, field_ids.phone):
                logger.info("crm.contact_matched", contact_id=contact.id, match="exact")
                return contact

        logger.info(
            "crm.contact_matched",
            contact_id=candidates[0].id,
            match="first_result",
            candidates=len(candidates),
        )
        return candidates[0]

    async def get_contact(self, contact_id: int) -> Contact | None:
        response = await self._client.request("GET", f"/api/v4/contacts/{contact_id}")
        entity = _single_entity(response, "contacts")
        return Contact.model_validate(entity) if entity else None

    async def create_contact(
        self,
        name: str,
        phone: str,
        email: str | None = None,
        company: str | None = None,
        position: str | None = None,
    ) -> Contact:
        """Create a contact with phone/email/position custom fields.

        Raises:
            UpstreamError: The create response contained no contact.
        """
        field_ids = await self._resolver.resolve()

        contact_data: dict[str, Any] = {"name": name or phone}
        custom_fields = self.build_contact_custom_fields(field_ids, phone, email, position)
        if custom_fields:
            contact_data["custom_fields_values"] = [field.to_payload() for field in custom_fields]

        if company:
            contact_data["company_name"] = company
            lookup = await self.find_or_create_company(company)
            if lookup.ok:
                contact_data["_embedded"] = {"companies": [{"id": lookup.value.id}]}

        response = await self._client.request("POST", "/api/v4/contacts", json=[contact_data])
        entity = _first_embedded(response, "contacts")
        if entity is None:
            raise UpstreamError("amoCRM did not return the created contact")

        contact = Contact.model_validate(entity)
        logger.info("crm.contact_created", contact_id=contact.id)
        return contact

    async def update_contact(
        self,
        contact_id: int,
        name: str,
        phone: str,
        email: str | None = None,
        company: str | None = None,
        position: str | None = None,
    ) -> Contact:
        """Update a contact, merging custom fields with its current state.

        Fields being written replace their previous values; every other
        existing custom field is sent back unchanged. The company name is
        replaced when supplied and preserved otherwise.

        Raises:
            UpstreamError: Neither the update response nor a follow-up
                fetch yielded the contact.
        """
        field_ids = await self._resolver.resolve()

        existing = await self._fetch_existing_contact(contact_id)
        current = existing.value

        contact_data: dict[str, Any] = {"id": contact_id, "name": name or phone}

        new_fields = self.build_contact_custom_fields(field_ids, phone, email, position)
        merged = self.merge_custom_fields(
            current.custom_fields_values if current else None,
            new_fields,
        )
        if merged:
            contact_data["custom_fields_values"] = [field.to_payload() for field in merged]

        if company:
            contact_data["company_name"] = company
            lookup = await self.find_or_create_company(company)
            if lookup.ok:
                contact_data["_embedded"] = {"companies": [{"id": lookup.value.id}]}
        elif current and current.company_name:
            contact_data["company_name"] = current.company_name

        response = await self._client.request(
            "PATCH", f"/api/v4/contacts/{contact_id}", json=contact_data
        )
        entity = _first_embedded(response, "contacts")
        if entity is not None:
            contact = Contact.model_validate(entity)
        else:
            try:
                contact = await self.get_contact(contact_id)
            except UpstreamError as exc:
                raise UpstreamError(
                    f"amoCRM did not return the updated contact {contact_id}: {exc.message}",
                    status_code=exc.status_code,
                ) from exc
            if contact is None:
                raise UpstreamError(f"amoCRM did not return the updated contact {contact_id}")

        logger.info("crm.contact_updated", contact_id=contact.id, fields=len(merged))
        return contact

    async def _fetch_existing_contact(self, contact_id: int) -> LookupResult[Contact]:
        try:
            contact = await self.get_contact(contact_id)
        except UpstreamError as exc:
            error = DegradedLookupError("contact_prefetch", exc)
            logger.warning("crm.contact_prefetch_failed", contact_id=contact_id, error=str(exc))
            return LookupResult.failed(error)
        if contact is None:
            return LookupResult.not_found()
        return LookupResult.found(contact)

    def build_contact_custom_fields(
        self,
        field_ids: FieldIds,
        phone: str,
        email: str | None,
        position: str | None,
    ) -> list[CustomField]:
        """Build custom field entries for the values being written.

        Phone is always written when its field id is known; email and
        position only when both the value and the field id are present.
        """
        fields = self._resolver.fields
        entries: list[CustomField] = []

        if field_ids.phone:
            spec = fields["phone"]
            entries.append(
                CustomField(
                    field_id=field_ids.phone,
                    values=[CustomFieldValue(value=phone, enum_id=get_enum_id("phone", spec.default_enum, fields))],
                )
            )

        if email and field_ids.email:
            spec = fields["email"]
            entries.append(
                CustomField(
                    field_id=field_ids.email,
                    values=[CustomFieldValue(value=email, enum_id=get_enum_id("email", spec.default_enum, fields))],
                )
            )

        if position and field_ids.position:
            entries.append(
                CustomField(field_id=field_ids.position, values=[CustomFieldValue(value=position)])
            )

        return entries

    @staticmethod
    def merge_custom_fields(
        existing: list[CustomField] | None,
        new_fields: list[CustomField],
    ) -> list[CustomField]:
        """Merge existing and new custom fields keyed by field id.

        Existing fields that are not being written keep their order and
        content. Fields being written replace their previous values.
        """
        written = {field.field_id for field in new_fields}
        merged: dict[int, CustomField] = {}
        for field in existing or []:
            if field.field_id not in written:
                merged[field.field_id] = field
        for field in new_fields:
            merged[field.field_id] = field
        return list(merged.values())

    # ── Companies ────────────────────────────────────────────────────────

    async def find_or_create_company(self, name: str | None) -> LookupResult[Company]:
        """Resolve a company by name, creating it when the search is empty.

        Prefers an exact (case-sensitive) name match, else the first search
        result. Never raises: failures come back as a FAILED LookupResult.
        """
        if not name:
            return LookupResult.skipped()

        try:
            return await self._resolve_company(name)
        except (UpstreamError, DegradedLookupError, PydanticValidationError) as exc:
            error = exc if isinstance(exc, DegradedLookupError) else DegradedLookupError("company", exc)
            logger.warning("crm.company_lookup_failed", company=name, error=str(error))
            return LookupResult.failed(error)

    async def _resolve_company(self, name: str) -> LookupResult[Company]:
        response = await self._client.request(
            "GET", "/api/v4/companies", params={"query": name}
        )
        candidates = [Company.model_validate(item) for item in _embedded_list(response, "companies")]
        if candidates:
            for company in candidates:
                if company.name == name:
                    return LookupResult.found(company)
            return LookupResult.found(candidates[0])

        created = await self._client.request("POST", "/api/v4/companies", json=[{"name": name}])
        entity = _first_embedded(created, "companies")
        if entity is None:
            raise DegradedLookupError(
                "company", UpstreamError("amoCRM did not return the created company")
            )
        company = Company.model_validate(entity)
        logger.info("crm.company_created", company_id=company.id, company=name)
        return LookupResult.created(company)

    # ── Leads & Notes ────────────────────────────────────────────────────

    async def create_lead(
        self,
        contact_id: int,
        name: str,
        budget: float | None = None,
        tags: list[str] | tuple[str, ...] | None = None,
        company_name: str | None = None,
    ) -> Lead:
        """Create a lead linked to the contact, optional company and tags.

        Raises:
            UpstreamError: The create response contained no lead.
        """
        embedded: dict[str, Any] = {"contacts": [{"id": contact_id}]}
        lead_data: dict[str, Any] = {
            "name": name,
            "price": int(budget) if budget else 0,
            "pipeline_id": self._pipeline_id,
            "status_id": self._status_id,
            "_embedded": embedded,
        }

        if company_name:
            lookup = await self.find_or_create_company(company_name)
            if lookup.ok:
                embedded["companies"] = [{"id": lookup.value.id}]

        if tags:
            embedded["tags"] = [{"name": tag} for tag in tags]

        response = await self._client.request("POST", "/api/v4/leads", json=[lead_data])
        entity = _first_embedded(response, "leads")
        if entity is None:
            raise UpstreamError("amoCRM did not return the created lead")

        lead = Lead.model_validate(entity)
        logger.info("crm.lead_created", lead_id=lead.id, contact_id=contact_id)
        return lead

    async def add_note_to_lead(self, lead_id: int, text: str) -> None:
        """Attach a common text note to a lead."""
        note_data = [
            {
                "entity_id": lead_id,
                "note_type": "common",
                "params": {"text": text},
            }
        ]
        await self._client.request("POST", f"/api/v4/leads/{lead_id}/notes", json=note_data)
        logger.info("crm.note_added", lead_id=lead_id, length=len(text))
