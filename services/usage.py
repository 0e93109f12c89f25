"""Usage ledger: persisted monthly provider budgets and per-second pacing.

Counters live in ``usage_records`` so quotas survive restarts and are shared
by every worker process.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from db.repositories import usage as usage_repo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderLimit:
    monthly_calls: Optional[int]  # None = uncapped
    min_interval: float           # seconds between consecutive calls
    cost_cents: int = 0


PROVIDER_LIMITS: Dict[str, ProviderLimit] = {
    "hunter": ProviderLimit(monthly_calls=50, min_interval=1.0),
    "lusha": ProviderLimit(monthly_calls=50, min_interval=0.2),
    "proxycurl": ProviderLimit(monthly_calls=100, min_interval=30.0),  # 2 req/minute
    "coresignal": ProviderLimit(monthly_calls=100, min_interval=1.0),
    "twilio": ProviderLimit(monthly_calls=None, min_interval=0.0, cost_cents=1),
    "llm": ProviderLimit(monthly_calls=None, min_interval=0.0, cost_cents=1),
}

# Which provider's budget an enrichment task type draws on
TASK_PROVIDERS: Dict[str, str] = {
    "find_email": "hunter",
    "verify_email": "hunter",
    "find_phone": "lusha",
    "verify_phone": "twilio",
    "linkedin_profile": "proxycurl",
    "company_info": "coresignal",
    "ai_score": "llm",
}


def current_month(now: Optional[datetime] = None) -> str:
    """Return the ledger key for ``now``, e.g. '2026-10'."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m")


def _column(provider: str) -> str:
    return f"{provider}_calls"


async def get_monthly_usage(
    session: AsyncSession, workspace_id: UUID, now: Optional[datetime] = None
) -> Dict[str, int]:
    """Return {provider: calls, 'total_cost_cents': n} for the current month."""
    record = await usage_repo.get_record(session, workspace_id, current_month(now))
    usage = {provider: 0 for provider in PROVIDER_LIMITS}
    usage["total_cost_cents"] = 0
    if record is None:
        return usage
    for provider in PROVIDER_LIMITS:
        usage[provider] = getattr(record, _column(provider))
    usage["total_cost_cents"] = record.total_cost_cents
    return usage


async def can_call(
    session: AsyncSession,
    workspace_id: UUID,
    provider: str,
    limits: Mapping[str, ProviderLimit] = PROVIDER_LIMITS,
    now: Optional[datetime] = None,
) -> bool:
    """True if the workspace still has budget for ``provider`` this month."""
    limit = limits.get(provider)
    if limit is None or limit.monthly_calls is None:
        return True
    usage = await get_monthly_usage(session, workspace_id, now)
    return usage.get(provider, 0) < limit.monthly_calls


async def record_call(
    session: AsyncSession,
    workspace_id: UUID,
    provider: str,
    calls: int = 1,
    cost_cents: Optional[int] = None,
    limits: Mapping[str, ProviderLimit] = PROVIDER_LIMITS,
    now: Optional[datetime] = None,
) -> None:
    if cost_cents is None:
        limit = limits.get(provider)
        cost_cents = (limit.cost_cents if limit else 0) * calls
    await usage_repo.increment(
        session,
        workspace_id,
        current_month(now),
        _column(provider),
        calls=calls,
        cost_cents=cost_cents,
    )
    logger.debug("Recorded %d %s call(s) for workspace %s", calls, provider, workspace_id)


class ProviderThrottle:
    """Spaces consecutive calls to one provider by its ``min_interval``.

    Lives for one batch; the monthly budget is what persists.
    """

    def __init__(
        self,
        limits: Mapping[str, ProviderLimit] = PROVIDER_LIMITS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._limits = limits
        self._sleep = sleep
        self._clock = clock
        self._last_call: Dict[str, float] = {}

    async def wait(self, provider: str) -> None:
        limit = self._limits.get(provider)
        if limit is None or limit.min_interval <= 0:
            return
        last = self._last_call.get(provider)
        if last is not None:
            delay = limit.min_interval - (self._clock() - last)
            if delay > 0:
                await self._sleep(delay)
        self._last_call[provider] = self._clock()
