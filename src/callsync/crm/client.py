"""Async HTTP client wrapper for the amoCRM REST API (v4).

Provides AmoClient.request, the single transport primitive shared by every
CRM gateway operation. Each call:

- reads the bearer token from the TokenStore and raises PreconditionError
  before any network I/O if it is missing,
- sends an authenticated JSON request with httpx.AsyncClient,
- maps 401 to CredentialRejectedError and every other failure to
  UpstreamError carrying the CRM's `detail`/`title` message.

No retries are attempted: a failure is reported to the caller immediately.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.callsync.core.errors import CredentialRejectedError, PreconditionError, UpstreamError
from src.callsync.core.monitoring import track_crm_request
from src.callsync.core.token_store import TokenStore

logger = structlog.get_logger(__name__)


class AmoClient:
    """Authenticated JSON transport for one amoCRM account.

    Args:
        base_url: Account URL, e.g. https://acme.amocrm.ru.
        token_store: Source of the bearer token, read on every request.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, token_store: TokenStore, timeout: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._token_store = token_store
        self._timeout = timeout

    def _client(self, token: str) -> httpx.AsyncClient:
        """Create a new httpx client carrying the auth headers."""
        return httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: API path starting with /api/v4.
            params: Optional query parameters.
            json: Optional JSON body.

        Returns:
            Decoded JSON, or an empty dict for 204 / empty bodies.

        Raises:
            PreconditionError: No access token configured.
            CredentialRejectedError: The CRM answered 401.
            UpstreamError: Any other HTTP or transport failure.
        """
        token = self._token_store.get()
        if not token:
            raise PreconditionError("amoCRM access token is not set; configure AMO_ACCESS_TOKEN")

        url = f"{self._base_url}{path}"

        async with track_crm_request(method):
            try:
                async with self._client(token) as client:
                    response = await client.request(method, url, params=params, json=json)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code == 401:
                    logger.warning("crm.token_rejected", method=method, path=path)
                    raise CredentialRejectedError() from exc
                message = _error_message(exc.response) or str(exc)
                raise UpstreamError(f"amoCRM API error: {message}", status_code=status_code) from exc
            except httpx.HTTPError as exc:
                raise UpstreamError(f"amoCRM API error: {exc}") from exc

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                "amoCRM API returned a non-JSON body", status_code=response.status_code
            ) from exc


def _error_message(response: httpx.Response) -> str | None:
    """Extract `detail` or `title` from an amoCRM problem+json body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    return body.get("detail") or body.get("title")
