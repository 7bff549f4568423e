"""In-process holder for the amoCRM access token.

The token is seeded once at startup from AMO_ACCESS_TOKEN. Refresh flows
are not handled here: an expired token must be replaced externally.
"""

from __future__ import annotations

from functools import lru_cache


class TokenStore:
    """Mutable cell holding the bearer token used for CRM calls."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    def get(self) -> str | None:
        return self._token

    def set(self, token: str | None) -> None:
        self._token = token or None

    def has(self) -> bool:
        return self._token is not None


@lru_cache
def get_token_store() -> TokenStore:
    """Process-wide token store."""
    return TokenStore()
