"""Unit tests for custom field mapping and lazy field id resolution.

Tests cover:
- get_enum_id lookup and default-enum fallback
- build_contact_fields static id overrides from Settings
- FieldIdResolver: static ids skip discovery, discovery by code,
  memoization, cached partial/failed discovery, list-shaped responses
"""

from __future__ import annotations

import pytest

from src.callsync.config import Settings
from src.callsync.core.errors import PreconditionError, UpstreamError
from src.callsync.crm.field_mapping import (
    DEFAULT_CONTACT_FIELDS,
    FieldIdResolver,
    FieldIds,
    build_contact_fields,
    get_enum_id,
)

PATH = "/api/v4/contacts/custom_fields"


# ── get_enum_id ──────────────────────────────────────────────────────────────


class TestGetEnumId:
    def test_known_key(self):
        assert get_enum_id("phone", "MOB") == 1322669

    def test_unknown_key_falls_back_to_default(self):
        assert get_enum_id("phone", "FAX") == DEFAULT_CONTACT_FIELDS["phone"].enums["WORK"]

    def test_none_key_falls_back_to_default(self):
        assert get_enum_id("email", None) == 1322677

    def test_field_without_enums(self):
        assert get_enum_id("position", "WORK") is None

    def test_unknown_field(self):
        assert get_enum_id("fax", "WORK") is None


# ── build_contact_fields ─────────────────────────────────────────────────────


class TestBuildContactFields:
    def test_overrides_applied(self):
        settings = Settings(AMO_PHONE_FIELD_ID=11, AMO_EMAIL_FIELD_ID=None, AMO_POSITION_FIELD_ID=33)
        fields = build_contact_fields(settings)

        assert fields["phone"].field_id == 11
        assert fields["email"].field_id is None
        assert fields["position"].field_id == 33
        # Enum tables survive the override
        assert fields["phone"].enums == DEFAULT_CONTACT_FIELDS["phone"].enums

    def test_defaults_untouched(self):
        build_contact_fields(Settings(AMO_PHONE_FIELD_ID=11))
        assert DEFAULT_CONTACT_FIELDS["phone"].field_id is None


# ── FieldIdResolver ──────────────────────────────────────────────────────────


def _fields(phone=None, email=None, position=None):
    return {
        "phone": DEFAULT_CONTACT_FIELDS["phone"].model_copy(update={"field_id": phone}),
        "email": DEFAULT_CONTACT_FIELDS["email"].model_copy(update={"field_id": email}),
        "position": DEFAULT_CONTACT_FIELDS["position"].model_copy(update={"field_id": position}),
    }


class TestFieldIdResolver:
    @pytest.mark.asyncio
    async def test_static_ids_skip_discovery(self, fake_client):
        resolver = FieldIdResolver(fake_client, _fields(1, 2, 3))

        ids = await resolver.resolve()

        assert ids == FieldIds(phone=1, email=2, position=3)
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_discovers_missing_by_code(self, fake_client):
        fake_client.add(
            "GET",
            PATH,
            {
                "_embedded": {
                    "custom_fields": [
                        {"id": 900, "code": "PHONE"},
                        {"id": 901, "code": "EMAIL"},
                        {"id": 902, "code": "WEB"},
                    ]
                }
            },
        )
        resolver = FieldIdResolver(fake_client, _fields(phone=5))

        ids = await resolver.resolve()

        # Static phone id wins over the discovered one
        assert ids == FieldIds(phone=5, email=901, position=None)

    @pytest.mark.asyncio
    async def test_memoized_after_first_call(self, fake_client):
        fake_client.add("GET", PATH, {"_embedded": {"custom_fields": [{"id": 7, "code": "PHONE"}]}})
        resolver = FieldIdResolver(fake_client, _fields())

        first = await resolver.resolve()
        second = await resolver.resolve()

        assert first is second
        assert len(fake_client.calls_to("GET", PATH)) == 1

    @pytest.mark.asyncio
    async def test_failed_discovery_is_cached(self, fake_client):
        fake_client.add("GET", PATH, UpstreamError("boom", status_code=500))
        resolver = FieldIdResolver(fake_client, _fields(phone=5))

        first = await resolver.resolve()
        second = await resolver.resolve()

        assert first == FieldIds(phone=5)
        assert second == first
        assert len(fake_client.calls_to("GET", PATH)) == 1

    @pytest.mark.asyncio
    async def test_accepts_bare_list_response(self, fake_client):
        fake_client.add("GET", PATH, [{"id": 3, "code": "POSITION"}, "junk"])
        resolver = FieldIdResolver(fake_client, _fields())

        ids = await resolver.resolve()

        assert ids.position == 3
        assert ids.phone is None

    @pytest.mark.asyncio
    async def test_missing_token_is_not_cached(self, fake_client):
        fake_client.add("GET", PATH, PreconditionError("no token"))
        resolver = FieldIdResolver(fake_client, _fields())

        with pytest.raises(PreconditionError):
            await resolver.resolve()

        assert resolver.cached is None
