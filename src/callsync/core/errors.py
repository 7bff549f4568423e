"""Error taxonomy for the webhook-to-CRM reconciliation pipeline.

- ValidationError: the inbound payload is malformed or incomplete.
- PreconditionError: no CRM credential is available.
- UpstreamError: the CRM returned an error or an unexpected success shape.
  CredentialRejectedError narrows this to HTTP 401 (terminal, never retried).
- DegradedLookupError: a best-effort sub-operation failed. Created and
  swallowed where it happens; travels inside a LookupResult.
"""

from __future__ import annotations


class CallSyncError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(CallSyncError):
    """Raised when the webhook payload cannot be normalized."""


class PreconditionError(CallSyncError):
    """Raised before any outbound call when the access token is missing."""


class UpstreamError(CallSyncError):
    """Raised when the CRM API fails or answers with an unusable shape.

    Attributes:
        status_code: HTTP status returned by the CRM, or None for
            transport-level failures and empty success payloads.
        message: Human-readable error detail.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class CredentialRejectedError(UpstreamError):
    """Raised when the CRM rejects the access token (HTTP 401)."""

    def __init__(self, message: str = "amoCRM rejected the access token; renew AMO_ACCESS_TOKEN") -> None:
        super().__init__(message, status_code=401)


class DegradedLookupError(CallSyncError):
    """A best-effort lookup failed and the pipeline continues without its value.

    Attributes:
        operation: Name of the sub-operation that degraded.
        cause: The underlying error.
    """

    def __init__(self, operation: str, cause: Exception) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} degraded: {cause}")
