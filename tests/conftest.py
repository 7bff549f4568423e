"""Shared test doubles for the amoCRM pipeline.

Provides:
- FakeAmoClient: scripted stand-in for AmoClient.request that records calls
- Fixtures for a fake client, a field id resolver and a gateway
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from src.callsync.crm.field_mapping import DEFAULT_CONTACT_FIELDS, FieldIdResolver
from src.callsync.crm.gateway import AmoGateway

PHONE_FIELD_ID = 101
EMAIL_FIELD_ID = 102
POSITION_FIELD_ID = 103
PIPELINE_ID = 555
STATUS_ID = 777

CUSTOM_FIELDS_RESPONSE = {
    "_embedded": {
        "custom_fields": [
            {"id": PHONE_FIELD_ID, "code": "PHONE", "name": "Телефон"},
            {"id": EMAIL_FIELD_ID, "code": "EMAIL", "name": "Email"},
            {"id": POSITION_FIELD_ID, "code": "POSITION", "name": "Должность"},
        ]
    }
}


class FakeAmoClient:
    """Scripted AmoClient replacement.

    Responses are queued per (method, path). The last queued response for a
    route is reused once the queue is down to one item. Exceptions queued as
    responses are raised.
    """

    def __init__(self) -> None:
        self.calls: list[SimpleNamespace] = []
        self._routes: dict[tuple[str, str], list[Any]] = {}

    def add(self, method: str, path: str, response: Any) -> FakeAmoClient:
        self._routes.setdefault((method, path), []).append(response)
        return self

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        self.calls.append(SimpleNamespace(method=method, path=path, params=params, json=json))
        queue = self._routes.get((method, path))
        if not queue:
            raise AssertionError(f"Unexpected request: {method} {path}")
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, method: str, path: str) -> list[SimpleNamespace]:
        return [c for c in self.calls if c.method == method and c.path == path]


@pytest.fixture
def fake_client() -> FakeAmoClient:
    return FakeAmoClient()


@pytest.fixture
def resolver(fake_client) -> FieldIdResolver:
    """Resolver that discovers ids through the fake custom_fields endpoint."""
    fake_client.add("GET", "/api/v4/contacts/custom_fields", CUSTOM_FIELDS_RESPONSE)
    return FieldIdResolver(fake_client, dict(DEFAULT_CONTACT_FIELDS))


@pytest.fixture
def gateway(fake_client, resolver) -> AmoGateway:
    return AmoGateway(fake_client, resolver, pipeline_id=PIPELINE_ID, status_id=STATUS_ID)
