"""Pydantic schemas for amoCRM entities and best-effort lookup results.

Defines:
- CustomFieldValue / CustomField: amoCRM `custom_fields_values` entries
- Contact, Company, Lead: the entities the pipeline reads and writes
- LookupStatus / LookupResult: outcome of best-effort sub-operations

Entity models allow extra keys so that whatever amoCRM returns (field_name,
field_type, _links, ...) round-trips untouched when written back.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from src.callsync.core.errors import DegradedLookupError


def digits_only(value: Any) -> str:
    """Strip everything except ASCII digits from a phone-like value."""
    if value is None:
        return ""
    return "".join(ch for ch in str(value) if "0" <= ch <= "9")


# ── Custom Fields ───────────────────────────────────────────────────────────


class CustomFieldValue(BaseModel):
    """One (value, enum) pair of a custom field."""

    model_config = ConfigDict(extra="allow")

    value: Any = None
    enum_id: int | None = None
    enum_code: str | None = None


class CustomField(BaseModel):
    """A custom field attached to an entity, keyed by its numeric id."""

    model_config = ConfigDict(extra="allow")

    field_id: int
    field_name: str | None = None
    field_code: str | None = None
    field_type: str | None = None
    values: list[CustomFieldValue] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Serialize for amoCRM write calls, dropping null keys."""
        return self.model_dump(exclude_none=True)


# ── Entities ────────────────────────────────────────────────────────────────


class Company(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""


class Contact(BaseModel):
    """amoCRM contact as returned by /api/v4/contacts."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str | None = None
    company_name: str | None = None
    custom_fields_values: list[CustomField] | None = None

    def phone_digits(self, phone_code: str, phone_field_id: int | None = None) -> list[str]:
        """Return digits-only values of every phone-type custom field.

        A field counts as a phone field when its field_code matches the
        discovery code or its id equals the configured phone field id.
        """
        digits: list[str] = []
        for field in self.custom_fields_values or []:
            is_phone = field.field_code == phone_code or (
                phone_field_id is not None and field.field_id == phone_field_id
            )
            if not is_phone:
                continue
            digits.extend(digits_only(item.value) for item in field.values)
        return digits


class Lead(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str | None = None
    price: int | None = None
    pipeline_id: int | None = None
    status_id: int | None = None


# ── Lookup Results ──────────────────────────────────────────────────────────


class LookupStatus(str, Enum):
    """How a best-effort lookup ended."""

    FOUND = "found"
    CREATED = "created"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    SKIPPED = "skipped"


T = TypeVar("T")


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    """Value of a best-effort lookup, distinguishing absent from failed."""

    status: LookupStatus
    value: T | None = None
    error: DegradedLookupError | None = None

    @classmethod
    def found(cls, value: T) -> LookupResult[T]:
        return cls(status=LookupStatus.FOUND, value=value)

    @classmethod
    def created(cls, value: T) -> LookupResult[T]:
        return cls(status=LookupStatus.CREATED, value=value)

    @classmethod
    def not_found(cls) -> LookupResult[T]:
        return cls(status=LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: DegradedLookupError) -> LookupResult[T]:
        return cls(status=LookupStatus.FAILED, error=error)

    @classmethod
    def skipped(cls) -> LookupResult[T]:
        return cls(status=LookupStatus.SKIPPED)

    @property
    def ok(self) -> bool:
        return self.value is not None
