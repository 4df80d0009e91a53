"""Error taxonomy for document intake.

Retry behaviour of the validation queue is keyed on these classes:
TransientProviderError and PermanentClassificationError consume the backoff
schedule, AuthError stops the job and raises an account-level alert.
Routing fallbacks and ambiguous correlations are not errors and are carried
on RoutingDecision / CorrelationResult instead.
"""

from typing import Any, Optional


class DocIntakeError(Exception):
    """Base class for all docintake errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class TransientProviderError(DocIntakeError):
    """Network blip, throttling or timeout at a classification or storage provider.

    Retried by the validation queue per its backoff schedule.
    """


class ProviderTimeoutError(TransientProviderError):
    """Provider call exceeded its timeout."""


class AuthError(DocIntakeError):
    """Expired or invalid credential at an email or storage provider.

    Never retried; requires re-authorization of the account.
    """


class PermanentClassificationError(DocIntakeError):
    """Classification output stayed malformed or empty after normalization."""


class StorageError(DocIntakeError):
    """Storage operation failed for a non-transient reason."""


class RateLimitExceeded(DocIntakeError):
    """Manual validation trigger exceeded the per-document window."""

    def __init__(self, message: str, retry_after: int, limit: int, window_seconds: int):
        super().__init__(
            message,
            {"retry_after": retry_after, "limit": limit, "window_seconds": window_seconds},
        )
        self.retry_after = retry_after
        self.limit = limit
        self.window_seconds = window_seconds


class NotFoundError(DocIntakeError):
    """Entity does not exist or belongs to another organization."""


class StateTransitionError(DocIntakeError):
    """Raised when an invalid request status transition is attempted."""
