"""amoCRM custom field mappings for contact writes.

Defines:
- FieldSpec: one semantic field (phone, email, position) with its optional
  static id, discovery code, enum table and default enum key.
- DEFAULT_CONTACT_FIELDS: the mapping used when no overrides are supplied.
- build_contact_fields(): applies static id overrides from Settings.
- get_enum_id(): enum lookup with fallback to the field's default enum.
- FieldIdResolver: lazily resolves field ids (static id, else discovery by
  code via /api/v4/contacts/custom_fields) and memoizes the result for the
  process lifetime, including partial results.

Enum ids are account-specific; look them up in the `enums` array of
GET /api/v4/contacts/custom_fields.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.callsync.config import Settings
from src.callsync.core.errors import UpstreamError
from src.callsync.crm.client import AmoClient

logger = structlog.get_logger(__name__)


class FieldSpec(BaseModel):
    """Mapping of one semantic contact field to its amoCRM custom field."""

    model_config = ConfigDict(frozen=True)

    code: str
    field_id: int | None = None
    enums: dict[str, int] = Field(default_factory=dict)
    default_enum: str | None = None


class FieldIds(BaseModel):
    """Resolved custom field ids; None means the field is not written."""

    model_config = ConfigDict(frozen=True)

    phone: int | None = None
    email: int | None = None
    position: int | None = None


# ── Default Mapping ────────────────────────────────────────────────────────

DEFAULT_CONTACT_FIELDS: dict[str, FieldSpec] = {
    # multitext
    "phone": FieldSpec(
        code="PHONE",
        enums={"WORK": 1322665, "MOB": 1322669, "HOME": 1322673, "OTHER": 1322675},
        default_enum="WORK",
    ),
    # multitext
    "email": FieldSpec(
        code="EMAIL",
        enums={"WORK": 1322677, "PRIV": 1322679, "OTHER": 1322681},
        default_enum="WORK",
    ),
    # text
    "position": FieldSpec(code="POSITION"),
}


def build_contact_fields(settings: Settings) -> dict[str, FieldSpec]:
    """Return the default mapping with static field ids taken from settings."""
    overrides = {
        "phone": settings.AMO_PHONE_FIELD_ID,
        "email": settings.AMO_EMAIL_FIELD_ID,
        "position": settings.AMO_POSITION_FIELD_ID,
    }
    fields: dict[str, FieldSpec] = {}
    for name, spec in DEFAULT_CONTACT_FIELDS.items():
        field_id = overrides.get(name)
        fields[name] = spec.model_copy(update={"field_id": field_id}) if field_id else spec
    return fields


def get_enum_id(
    field_type: str,
    key: str | None,
    fields: dict[str, FieldSpec] | None = None,
) -> int | None:
    """Return the enum id for `key`, else the field's default enum id, else None."""
    if fields is None:
        fields = DEFAULT_CONTACT_FIELDS

    spec = fields.get(field_type)
    if spec is None or not spec.enums:
        return None
    if key and key in spec.enums:
        return spec.enums[key]
    if spec.default_enum:
        return spec.enums.get(spec.default_enum)
    return None


# ── Field Id Resolution ────────────────────────────────────────────────────


class FieldIdResolver:
    """Memoizing resolver for contact custom field ids.

    The first call decides the ids for the lifetime of this resolver. A
    failed or partial discovery is cached as well and never retried.

    Args:
        client: Transport used for discovery.
        fields: Semantic field mapping (see build_contact_fields).
    """

    def __init__(self, client: AmoClient, fields: dict[str, FieldSpec]) -> None:
        self._client = client
        self._fields = fields
        self._cached: FieldIds | None = None
        self._lock = asyncio.Lock()

    @property
    def fields(self) -> dict[str, FieldSpec]:
        return self._fields

    @property
    def cached(self) -> FieldIds | None:
        return self._cached

    async def resolve(self) -> FieldIds:
        """Return phone/email/position field ids, discovering missing ones once."""
        if self._cached is not None:
            return self._cached

        async with self._lock:
            if self._cached is None:
                self._cached = await self._discover()
        return self._cached

    async def _discover(self) -> FieldIds:
        resolved: dict[str, int | None] = {
            name: spec.field_id for name, spec in self._fields.items()
        }
        missing = [name for name, field_id in resolved.items() if field_id is None]
        if not missing:
            return FieldIds(**resolved)

        try:
            response = await self._client.request("GET", "/api/v4/contacts/custom_fields")
        except UpstreamError as exc:
            logger.error("crm.custom_fields_lookup_failed", error=str(exc))
            return FieldIds(**resolved)

        for field in _custom_field_list(response):
            for name in missing:
                if resolved[name] is None and field.get("code") == self._fields[name].code:
                    resolved[name] = field.get("id")

        unresolved = [name for name, field_id in resolved.items() if field_id is None]
        if unresolved:
            logger.warning(
                "crm.custom_fields_unresolved",
                fields=unresolved,
                hint="set AMO_<FIELD>_FIELD_ID to configure them explicitly",
            )
        else:
            logger.info("crm.custom_fields_resolved", **resolved)

        return FieldIds(**resolved)


def _custom_field_list(response: Any) -> list[dict[str, Any]]:
    """Accept both the HAL-embedded and the bare-list response shapes."""
    if isinstance(response, list):
        fields = response
    elif isinstance(response, dict):
        fields = response.get("_embedded", {}).get("custom_fields") or []
    else:
        fields = []
    return [field for field in fields if isinstance(field, dict)]
