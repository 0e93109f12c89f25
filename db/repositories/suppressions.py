"""Suppression repository: the per-workspace do-not-contact list."""
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.dialect import upsert_insert
from db.models import SUPPRESSION_REASONS, EmailSuppression

logger = logging.getLogger(__name__)


async def add_suppression(
    session: AsyncSession,
    workspace_id: UUID,
    email: str,
    reason: str = "manual",
    source: str = "manual",
) -> EmailSuppression:
    """Add an email to the workspace suppression list. Idempotent: safe to call twice.

    reason must be one of: 'unsubscribe', 'bounce', 'complaint', 'manual'
    """
    if reason not in SUPPRESSION_REASONS:
        raise ValueError(f"Invalid suppression reason: {reason}")
    email = email.lower().strip()
    stmt = (
        upsert_insert(session, EmailSuppression)
        .values(workspace_id=workspace_id, email=email, reason=reason, source=source)
        .on_conflict_do_nothing(index_elements=["workspace_id", "email"])
        .returning(EmailSuppression.id)
    )
    result = await session.execute(stmt)
    await session.flush()
    inserted_id = result.scalar_one_or_none()
    if inserted_id is None:
        logger.debug("%s already suppressed in workspace %s", email, workspace_id)
    else:
        logger.info("Suppressed %s in workspace %s (%s)", email, workspace_id, reason)
    existing = await session.execute(
        select(EmailSuppression)
        .where(EmailSuppression.workspace_id == workspace_id)
        .where(EmailSuppression.email == email)
    )
    return existing.scalar_one()


async def is_suppressed(session: AsyncSession, workspace_id: UUID, email: str) -> bool:
    """Return True if this email is on the workspace's suppression list."""
    email = email.lower().strip()
    result = await session.execute(
        select(EmailSuppression.id)
        .where(EmailSuppression.workspace_id == workspace_id)
        .where(EmailSuppression.email == email)
    )
    return result.scalar_one_or_none() is not None
