"""Email account repository."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import EmailAccount


async def get_account(session: AsyncSession, account_id: UUID) -> Optional[EmailAccount]:
    result = await session.execute(select(EmailAccount).where(EmailAccount.id == account_id))
    return result.scalar_one_or_none()


async def touch_last_used(session: AsyncSession, account_id: UUID, at: datetime) -> None:
    await session.execute(
        update(EmailAccount)
        .where(EmailAccount.id == account_id)
        .values(last_used_at=at, updated_at=at)
        .execution_options(synchronize_session=False)
    )
    await session.flush()
