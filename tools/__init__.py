from .errors import (
    FailureKind,
    ProviderError,
    PermanentError,
    RateLimitedError,
    TransientError,
)

__all__ = [
    "FailureKind", "ProviderError", "PermanentError", "RateLimitedError", "TransientError",
]
