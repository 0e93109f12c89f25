"""Enrichment task repository: queue selection, claiming and state transitions."""
import logging
from datetime import datetime
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Candidate, EnrichmentTask

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("pending", "in_progress")


async def create_tasks(
    session: AsyncSession,
    candidate: Candidate,
    planned: Iterable[Any],
    max_attempts: int,
    next_attempt_at: datetime,
) -> list[EnrichmentTask]:
    """Insert one pending task per planned entry (objects with task_type, priority)."""
    tasks = [
        EnrichmentTask(
            candidate_id=candidate.id,
            workspace_id=candidate.workspace_id,
            task_type=p.task_type,
            priority=p.priority,
            status="pending",
            attempts=0,
            max_attempts=max_attempts,
            next_attempt_at=next_attempt_at,
        )
        for p in planned
    ]
    session.add_all(tasks)
    await session.flush()
    return tasks


async def active_types_for_candidate(session: AsyncSession, candidate_id: UUID) -> set[str]:
    result = await session.execute(
        select(EnrichmentTask.task_type)
        .where(EnrichmentTask.candidate_id == candidate_id)
        .where(EnrichmentTask.status.in_(ACTIVE_STATUSES))
    )
    return {row[0] for row in result.all()}


async def get_for_candidate(session: AsyncSession, candidate_id: UUID) -> list[EnrichmentTask]:
    result = await session.execute(
        select(EnrichmentTask)
        .where(EnrichmentTask.candidate_id == candidate_id)
        .order_by(EnrichmentTask.priority, EnrichmentTask.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def select_due(
    session: AsyncSession, workspace_id: UUID, now: datetime, limit: int
) -> list[EnrichmentTask]:
    """Pending tasks due at ``now``, in (priority, next_attempt_at) order."""
    result = await session.execute(
        select(EnrichmentTask)
        .where(EnrichmentTask.workspace_id == workspace_id)
        .where(EnrichmentTask.status == "pending")
        .where(EnrichmentTask.next_attempt_at <= now)
        .order_by(EnrichmentTask.priority, EnrichmentTask.next_attempt_at)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def claim(session: AsyncSession, task: EnrichmentTask, now: datetime) -> bool:
    """Flip a pending task to in_progress. False if someone else got there first."""
    result = await session.execute(
        update(EnrichmentTask)
        .where(EnrichmentTask.id == task.id)
        .where(EnrichmentTask.status == "pending")
        .values(
            status="in_progress",
            attempts=EnrichmentTask.attempts + 1,
            last_attempt_at=now,
            updated_at=now,
        )
        .returning(EnrichmentTask.id)
        .execution_options(synchronize_session=False)
    )
    claimed = result.scalar_one_or_none() is not None
    await session.refresh(task)
    return claimed


async def mark_completed(
    session: AsyncSession, task: EnrichmentTask, result: dict[str, Any], now: datetime
) -> None:
    task.status = "completed"
    task.result = result
    task.completed_at = now
    task.last_error = None
    await session.flush()


async def mark_retry(
    session: AsyncSession,
    task: EnrichmentTask,
    error: str,
    next_attempt_at: datetime,
    refund_attempt: bool = False,
) -> None:
    """Return a task to pending. ``refund_attempt`` undoes the claim's increment."""
    if refund_attempt:
        task.attempts = max(task.attempts - 1, 0)
    task.status = "pending"
    task.last_error = error
    task.next_attempt_at = next_attempt_at
    await session.flush()


async def mark_failed(session: AsyncSession, task: EnrichmentTask, error: str) -> None:
    task.status = "failed"
    task.last_error = error
    await session.flush()


async def fail_pending_of_types(
    session: AsyncSession, workspace_id: UUID, task_types: Iterable[str], message_for
) -> set[UUID]:
    """Fail every pending task of the given types. Returns affected candidate ids.

    ``message_for`` maps a task type to the last_error text to store.
    """
    task_types = list(task_types)
    if not task_types:
        return set()
    result = await session.execute(
        select(EnrichmentTask)
        .where(EnrichmentTask.workspace_id == workspace_id)
        .where(EnrichmentTask.status == "pending")
        .where(EnrichmentTask.task_type.in_(task_types))
    )
    affected: set[UUID] = set()
    for task in result.scalars().all():
        task.status = "failed"
        task.last_error = message_for(task.task_type)
        affected.add(task.candidate_id)
    await session.flush()
    return affected


async def status_counts_for_candidate(session: AsyncSession, candidate_id: UUID) -> dict[str, int]:
    result = await session.execute(
        select(EnrichmentTask.status, func.count(EnrichmentTask.id))
        .where(EnrichmentTask.candidate_id == candidate_id)
        .group_by(EnrichmentTask.status)
    )
    return {status: count for status, count in result.all()}


async def status_counts(session: AsyncSession, workspace_id: UUID) -> dict[str, int]:
    result = await session.execute(
        select(EnrichmentTask.status, func.count(EnrichmentTask.id))
        .where(EnrichmentTask.workspace_id == workspace_id)
        .group_by(EnrichmentTask.status)
    )
    return {status: count for status, count in result.all()}


async def count_pending(session: AsyncSession, workspace_id: UUID) -> int:
    result = await session.execute(
        select(func.count(EnrichmentTask.id))
        .where(EnrichmentTask.workspace_id == workspace_id)
        .where(EnrichmentTask.status == "pending")
    )
    return result.scalar_one()


async def recover_stuck(
    session: AsyncSession,
    older_than: datetime,
    now: datetime,
    workspace_id: Optional[UUID] = None,
) -> int:
    """Return abandoned in_progress tasks to pending. Returns the count."""
    stmt = (
        update(EnrichmentTask)
        .where(EnrichmentTask.status == "in_progress")
        .where(EnrichmentTask.last_attempt_at < older_than)
        .values(status="pending", next_attempt_at=now, updated_at=now)
        .returning(EnrichmentTask.id)
        .execution_options(synchronize_session=False)
    )
    if workspace_id is not None:
        stmt = stmt.where(EnrichmentTask.workspace_id == workspace_id)
    result = await session.execute(stmt)
    count = len(result.fetchall())
    await session.flush()
    if count:
        logger.warning("Recovered %d stuck enrichment task(s)", count)
    return count
