"""Failure taxonomy shared by every provider client and both dispatchers.

Each client classifies its own failures at the call site by raising one of
the subclasses below; the dispatchers never inspect error strings.
"""
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    PERMANENT = "permanent"        # no data exists, or inputs are missing
    RATE_LIMITED = "rate_limited"  # provider throttled us or the monthly budget is spent
    TRANSIENT = "transient"        # network blip, 5xx, timeout


class ProviderError(Exception):
    """Base class for classified collaborator failures."""

    kind: FailureKind = FailureKind.TRANSIENT

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class PermanentError(ProviderError):
    kind = FailureKind.PERMANENT


class RateLimitedError(ProviderError):
    kind = FailureKind.RATE_LIMITED


class TransientError(ProviderError):
    kind = FailureKind.TRANSIENT


def error_for_status(status_code: int, message: str, provider: str) -> ProviderError:
    """Map an HTTP status code onto the failure taxonomy."""
    if status_code == 429:
        return RateLimitedError(message, provider)
    if 400 <= status_code < 500:
        return PermanentError(message, provider)
    return TransientError(message, provider)


def check_response(resp, provider: str) -> None:
    """Raise the classified error for a non-2xx ``requests`` response."""
    if resp.status_code >= 400:
        raise error_for_status(
            resp.status_code, f"{provider} API error: {resp.status_code}", provider
        )
