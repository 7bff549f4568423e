"""amoCRM integration layer.

- AmoClient: authenticated JSON transport with the uniform error contract
- FieldIdResolver / FieldSpec: custom field mapping and lazy id discovery
- AmoGateway: contact, company, lead and note operations
- build_gateway(): wires the three from Settings and a TokenStore
"""

from src.callsync.config import Settings
from src.callsync.core.token_store import TokenStore
from src.callsync.crm.client import AmoClient
from src.callsync.crm.field_mapping import (
    DEFAULT_CONTACT_FIELDS,
    FieldIdResolver,
    FieldIds,
    FieldSpec,
    build_contact_fields,
    get_enum_id,
)
from src.callsync.crm.gateway import AmoGateway


def build_gateway(settings: Settings, token_store: TokenStore) -> AmoGateway:
    """Create an AmoGateway for the configured amoCRM account."""
    client = AmoClient(settings.AMO_DOMAIN, token_store, timeout=settings.AMO_REQUEST_TIMEOUT)
    resolver = FieldIdResolver(client, build_contact_fields(settings))
    return AmoGateway(
        client,
        resolver,
        pipeline_id=settings.AMO_PIPELINE_ID,
        status_id=settings.AMO_STATUS_ID,
    )


__all__ = [
    "AmoClient",
    "AmoGateway",
    "DEFAULT_CONTACT_FIELDS",
    "FieldIdResolver",
    "FieldIds",
    "FieldSpec",
    "build_contact_fields",
    "build_gateway",
    "get_enum_id",
]
