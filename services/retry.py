"""Retry state machine shared by the enrichment and email dispatchers.

    pending --claim--> in_progress --ok--> completed / sent
    in_progress --transient, attempts < max--> pending  (backoff 2^attempts min)
    in_progress --permanent or attempts >= max--> failed
    in_progress --rate limited--> pending  (fixed cooldown)

``attempts`` is incremented at claim time, so it already counts the attempt
that just failed when a decision is made. A rate-limited attempt is refunded
on reschedule and never counts toward ``max_attempts``.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from queue_config import RATE_LIMIT_COOLDOWN
from tools.errors import FailureKind, ProviderError


@dataclass(frozen=True)
class RetryDecision:
    status: str
    next_attempt_at: Optional[datetime]
    kind: FailureKind

    @property
    def retrying(self) -> bool:
        return self.status == "pending"

    @property
    def refunds_attempt(self) -> bool:
        return self.kind == FailureKind.RATE_LIMITED


def backoff_delay(attempts: int) -> timedelta:
    return timedelta(minutes=2 ** attempts)


def classify_failure(exc: BaseException) -> FailureKind:
    """Classified provider errors carry their own kind; anything else is transient."""
    if isinstance(exc, ProviderError):
        return exc.kind
    return FailureKind.TRANSIENT


def decide_retry(
    kind: FailureKind,
    attempts: int,
    max_attempts: int,
    now: datetime,
    cooldown: timedelta = RATE_LIMIT_COOLDOWN,
) -> RetryDecision:
    if kind == FailureKind.RATE_LIMITED:
        return RetryDecision("pending", now + cooldown, kind)
    if kind == FailureKind.PERMANENT or attempts >= max_attempts:
        return RetryDecision("failed", None, kind)
    return RetryDecision("pending", now + backoff_delay(attempts), kind)


def describe(exc: BaseException) -> str:
    message = str(exc) or exc.__class__.__name__
    return f"{classify_failure(exc).value}: {message}"
