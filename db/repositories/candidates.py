"""Candidate repository: workspace-scoped reads and conflict-safe inserts."""
import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.dialect import upsert_insert
from db.models import Candidate

logger = logging.getLogger(__name__)


async def get_by_id(session: AsyncSession, candidate_id: UUID) -> Optional[Candidate]:
    result = await session.execute(
        select(Candidate)
        .where(Candidate.id == candidate_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_by_email(
    session: AsyncSession, workspace_id: UUID, email: str
) -> Optional[Candidate]:
    """Return the candidate in this workspace with this email, or None."""
    result = await session.execute(
        select(Candidate)
        .where(Candidate.workspace_id == workspace_id)
        .where(Candidate.email == email.lower().strip())
    )
    return result.scalar_one_or_none()


async def insert_if_absent(session: AsyncSession, values: dict[str, Any]) -> Optional[UUID]:
    """INSERT ... ON CONFLICT DO NOTHING RETURNING id.

    Returns None when a concurrent writer already holds the email or LinkedIn
    key for this workspace.
    """
    stmt = (
        upsert_insert(session, Candidate)
        .values(**values)
        .on_conflict_do_nothing()
        .returning(Candidate.id)
    )
    result = await session.execute(stmt)
    await session.flush()
    return result.scalar_one_or_none()


async def count_in_workspace(session: AsyncSession, workspace_id: UUID) -> int:
    result = await session.execute(
        select(func.count(Candidate.id)).where(Candidate.workspace_id == workspace_id)
    )
    return result.scalar_one()


async def status_counts(session: AsyncSession, workspace_id: UUID) -> dict[str, int]:
    """Return {enrichment_status: count} for the workspace."""
    result = await session.execute(
        select(Candidate.enrichment_status, func.count(Candidate.id))
        .where(Candidate.workspace_id == workspace_id)
        .group_by(Candidate.enrichment_status)
    )
    return {status: count for status, count in result.all()}


async def average_completeness(session: AsyncSession, workspace_id: UUID) -> float:
    result = await session.execute(
        select(func.avg(Candidate.data_completeness)).where(
            Candidate.workspace_id == workspace_id
        )
    )
    value = result.scalar_one_or_none()
    return round(float(value), 1) if value is not None else 0.0
