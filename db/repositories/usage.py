"""Usage repository: monthly provider call counters."""
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.dialect import upsert_insert
from db.models import UsageRecord

logger = logging.getLogger(__name__)

COUNTER_COLUMNS = (
    "hunter_calls",
    "lusha_calls",
    "proxycurl_calls",
    "coresignal_calls",
    "twilio_calls",
    "llm_calls",
)


async def get_record(
    session: AsyncSession, workspace_id: UUID, month: str
) -> Optional[UsageRecord]:
    result = await session.execute(
        select(UsageRecord)
        .where(UsageRecord.workspace_id == workspace_id)
        .where(UsageRecord.month == month)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def increment(
    session: AsyncSession,
    workspace_id: UUID,
    month: str,
    column: str,
    calls: int = 1,
    cost_cents: int = 0,
) -> None:
    """Atomically add to one counter (and the cost total) for a workspace-month.

    A single INSERT ... ON CONFLICT DO UPDATE, so concurrent workers never
    lose increments.
    """
    if column not in COUNTER_COLUMNS:
        raise ValueError(f"Unknown usage counter: {column}")
    table = UsageRecord.__table__
    now = datetime.now(timezone.utc)
    stmt = (
        upsert_insert(session, UsageRecord)
        .values(
            workspace_id=workspace_id,
            month=month,
            total_cost_cents=cost_cents,
            updated_at=now,
            **{column: calls},
        )
        .on_conflict_do_update(
            index_elements=["workspace_id", "month"],
            set_={
                column: table.c[column] + calls,
                "total_cost_cents": table.c.total_cost_cents + cost_cents,
                "updated_at": now,
            },
        )
    )
    await session.execute(stmt)
    await session.flush()
