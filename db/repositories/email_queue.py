"""Email queue repository: delivery queue selection, claiming and transitions."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import EmailQueueItem

logger = logging.getLogger(__name__)


async def enqueue(session: AsyncSession, **fields) -> EmailQueueItem:
    """Create a pending queue item. ``to_address`` is stored lower-cased."""
    fields["to_address"] = fields["to_address"].lower().strip()
    item = EmailQueueItem(status="pending", attempts=0, **fields)
    session.add(item)
    await session.flush()
    return item


async def get_item(session: AsyncSession, item_id: UUID) -> Optional[EmailQueueItem]:
    result = await session.execute(
        select(EmailQueueItem)
        .where(EmailQueueItem.id == item_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def select_due(
    session: AsyncSession, workspace_id: UUID, now: datetime, limit: int
) -> list[EmailQueueItem]:
    """Pending items due at ``now`` whose scheduled time (if any) has passed."""
    result = await session.execute(
        select(EmailQueueItem)
        .where(EmailQueueItem.workspace_id == workspace_id)
        .where(EmailQueueItem.status == "pending")
        .where(EmailQueueItem.next_attempt_at <= now)
        .where(or_(EmailQueueItem.scheduled_for.is_(None), EmailQueueItem.scheduled_for <= now))
        .order_by(EmailQueueItem.priority, EmailQueueItem.next_attempt_at)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def claim(session: AsyncSession, item: EmailQueueItem, now: datetime) -> bool:
    """Flip a pending item to in_progress. False if another worker claimed it."""
    result = await session.execute(
        update(EmailQueueItem)
        .where(EmailQueueItem.id == item.id)
        .where(EmailQueueItem.status == "pending")
        .values(
            status="in_progress",
            attempts=EmailQueueItem.attempts + 1,
            last_attempt_at=now,
            updated_at=now,
        )
        .returning(EmailQueueItem.id)
        .execution_options(synchronize_session=False)
    )
    claimed = result.scalar_one_or_none() is not None
    await session.refresh(item)
    return claimed


async def mark_sent(
    session: AsyncSession, item: EmailQueueItem, provider_message_id: str, sent_at: datetime
) -> None:
    item.status = "sent"
    item.provider_message_id = provider_message_id
    item.sent_at = sent_at
    item.last_error = None
    await session.flush()


async def mark_cancelled(session: AsyncSession, item: EmailQueueItem, reason: str) -> None:
    item.status = "cancelled"
    item.last_error = reason
    await session.flush()


async def mark_retry(
    session: AsyncSession,
    item: EmailQueueItem,
    error: str,
    next_attempt_at: datetime,
    refund_attempt: bool = False,
) -> None:
    if refund_attempt:
        item.attempts = max(item.attempts - 1, 0)
    item.status = "pending"
    item.last_error = error
    item.next_attempt_at = next_attempt_at
    await session.flush()


async def mark_failed(session: AsyncSession, item: EmailQueueItem, error: str) -> None:
    item.status = "failed"
    item.last_error = error
    await session.flush()


async def count_pending(session: AsyncSession, workspace_id: UUID) -> int:
    result = await session.execute(
        select(func.count(EmailQueueItem.id))
        .where(EmailQueueItem.workspace_id == workspace_id)
        .where(EmailQueueItem.status == "pending")
    )
    return result.scalar_one()


async def status_counts(session: AsyncSession, workspace_id: UUID) -> dict[str, int]:
    result = await session.execute(
        select(EmailQueueItem.status, func.count(EmailQueueItem.id))
        .where(EmailQueueItem.workspace_id == workspace_id)
        .group_by(EmailQueueItem.status)
    )
    return {status: count for status, count in result.all()}


async def pending_older_than(session: AsyncSession, workspace_id: UUID, cutoff: datetime) -> int:
    result = await session.execute(
        select(func.count(EmailQueueItem.id))
        .where(EmailQueueItem.workspace_id == workspace_id)
        .where(EmailQueueItem.status == "pending")
        .where(EmailQueueItem.created_at < cutoff)
    )
    return result.scalar_one()


async def oldest_pending_created_at(
    session: AsyncSession, workspace_id: UUID
) -> Optional[datetime]:
    result = await session.execute(
        select(EmailQueueItem.created_at)
        .where(EmailQueueItem.workspace_id == workspace_id)
        .where(EmailQueueItem.status == "pending")
        .order_by(EmailQueueItem.created_at)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def last_sent_at(session: AsyncSession, workspace_id: UUID) -> Optional[datetime]:
    result = await session.execute(
        select(EmailQueueItem.sent_at)
        .where(EmailQueueItem.workspace_id == workspace_id)
        .where(EmailQueueItem.status == "sent")
        .order_by(EmailQueueItem.sent_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def recover_stuck(
    session: AsyncSession,
    older_than: datetime,
    now: datetime,
    workspace_id: Optional[UUID] = None,
) -> int:
    """Return abandoned in_progress items to pending. Returns the count."""
    stmt = (
        update(EmailQueueItem)
        .where(EmailQueueItem.status == "in_progress")
        .where(EmailQueueItem.last_attempt_at < older_than)
        .values(status="pending", next_attempt_at=now, updated_at=now)
        .returning(EmailQueueItem.id)
        .execution_options(synchronize_session=False)
    )
    if workspace_id is not None:
        stmt = stmt.where(EmailQueueItem.workspace_id == workspace_id)
    result = await session.execute(stmt)
    count = len(result.fetchall())
    await session.flush()
    if count:
        logger.warning("Recovered %d stuck email queue item(s)", count)
    return count
