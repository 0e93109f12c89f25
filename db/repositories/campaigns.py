"""Campaign, follow-up step and campaign send repositories."""
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.dialect import upsert_insert
from db.models import Campaign, CampaignFollowUp, CampaignSend, Candidate
from db.repositories.suppressions import add_suppression

logger = logging.getLogger(__name__)

SENT_STATUSES = ("sent", "delivered", "opened", "clicked")
COUNTER_COLUMNS = (
    "total_recipients",
    "total_sent",
    "total_opened",
    "total_clicked",
    "total_replied",
    "total_bounced",
)
SEND_EVENTS = ("delivered", "opened", "clicked", "replied", "bounced", "complained")


async def get_campaign(session: AsyncSession, campaign_id: UUID) -> Optional[Campaign]:
    result = await session.execute(
        select(Campaign)
        .where(Campaign.id == campaign_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_active_campaigns_with_follow_ups(session: AsyncSession) -> list[Campaign]:
    """Active campaigns that have at least one active follow-up step."""
    has_steps = exists().where(
        CampaignFollowUp.campaign_id == Campaign.id,
        CampaignFollowUp.status == "active",
    )
    result = await session.execute(
        select(Campaign)
        .where(Campaign.status == "active")
        .where(has_steps)
        .order_by(Campaign.created_at)
    )
    return list(result.scalars().all())


async def get_active_follow_ups(
    session: AsyncSession, campaign_id: UUID
) -> list[CampaignFollowUp]:
    result = await session.execute(
        select(CampaignFollowUp)
        .where(CampaignFollowUp.campaign_id == campaign_id)
        .where(CampaignFollowUp.status == "active")
        .order_by(CampaignFollowUp.step_number)
    )
    return list(result.scalars().all())


async def get_send(session: AsyncSession, send_id: UUID) -> Optional[CampaignSend]:
    result = await session.execute(
        select(CampaignSend)
        .where(CampaignSend.id == send_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_sends(
    session: AsyncSession, campaign_id: UUID, step: Optional[int] = None
) -> list[CampaignSend]:
    stmt = select(CampaignSend).where(CampaignSend.campaign_id == campaign_id)
    if step is not None:
        stmt = stmt.where(CampaignSend.follow_up_step == step)
    result = await session.execute(
        stmt.order_by(CampaignSend.created_at).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def eligible_initial_sends(
    session: AsyncSession, campaign_id: UUID, sent_before: datetime
) -> list[tuple[CampaignSend, Candidate]]:
    """Step-0 sends that went out before ``sent_before`` and never replied or bounced."""
    result = await session.execute(
        select(CampaignSend, Candidate)
        .join(Candidate, Candidate.id == CampaignSend.candidate_id)
        .where(CampaignSend.campaign_id == campaign_id)
        .where(CampaignSend.follow_up_step == 0)
        .where(CampaignSend.status.in_(SENT_STATUSES))
        .where(CampaignSend.replied_at.is_(None))
        .where(CampaignSend.bounced_at.is_(None))
        .where(CampaignSend.sent_at.is_not(None))
        .where(CampaignSend.sent_at <= sent_before)
        .order_by(CampaignSend.sent_at)
    )
    return [(send, candidate) for send, candidate in result.all()]


async def has_send(
    session: AsyncSession, campaign_id: UUID, candidate_id: UUID, step: int
) -> bool:
    """True if any send, in any status, exists for (campaign, candidate, step)."""
    result = await session.execute(
        select(CampaignSend.id)
        .where(CampaignSend.campaign_id == campaign_id)
        .where(CampaignSend.candidate_id == candidate_id)
        .where(CampaignSend.follow_up_step == step)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def create_send(
    session: AsyncSession,
    campaign_id: UUID,
    candidate_id: UUID,
    step: int,
    status: str = "queued",
) -> Optional[UUID]:
    """Insert a send unless a live one already exists for the step.

    Returns the new id, or None when the partial unique index swallowed it.
    """
    stmt = (
        upsert_insert(session, CampaignSend)
        .values(
            campaign_id=campaign_id,
            candidate_id=candidate_id,
            follow_up_step=step,
            status=status,
        )
        .on_conflict_do_nothing()
        .returning(CampaignSend.id)
    )
    result = await session.execute(stmt)
    await session.flush()
    return result.scalar_one_or_none()


async def update_send(session: AsyncSession, send_id: UUID, **values) -> None:
    values.setdefault("updated_at", datetime.now(timezone.utc))
    await session.execute(
        update(CampaignSend)
        .where(CampaignSend.id == send_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.flush()


async def increment_counter(
    session: AsyncSession, campaign_id: UUID, column: str, by: int = 1
) -> None:
    """Atomic ``column = column + by`` on a campaign."""
    if column not in COUNTER_COLUMNS:
        raise ValueError(f"Unknown campaign counter: {column}")
    await session.execute(
        update(Campaign)
        .where(Campaign.id == campaign_id)
        .values({column: getattr(Campaign, column) + by})
        .execution_options(synchronize_session=False)
    )
    await session.flush()


async def record_send_event(
    session: AsyncSession,
    send_id: UUID,
    event: str,
    at: Optional[datetime] = None,
) -> Optional[CampaignSend]:
    """Apply a provider webhook event to a send and its campaign counters.

    opened and clicked only count the first time. bounced and complained put
    the recipient on the workspace suppression list.
    """
    if event not in SEND_EVENTS:
        raise ValueError(f"Unknown send event: {event}")
    at = at or datetime.now(timezone.utc)
    send = await get_send(session, send_id)
    if send is None:
        logger.warning("Event %s for unknown campaign send %s", event, send_id)
        return None

    if event == "delivered":
        if send.status in ("sent", "queued", "pending"):
            send.status = "delivered"
        send.delivered_at = send.delivered_at or at
    elif event == "opened":
        if send.opened_at is None:
            send.opened_at = at
            if send.status in ("sent", "delivered"):
                send.status = "opened"
            await increment_counter(session, send.campaign_id, "total_opened")
    elif event == "clicked":
        if send.clicked_at is None:
            send.clicked_at = at
            if send.status in ("sent", "delivered", "opened"):
                send.status = "clicked"
            await increment_counter(session, send.campaign_id, "total_clicked")
    elif event == "replied":
        if send.replied_at is None:
            send.replied_at = at
            send.status = "replied"
            await increment_counter(session, send.campaign_id, "total_replied")
    elif event in ("bounced", "complained"):
        if event == "bounced" and send.bounced_at is None:
            send.bounced_at = at
            send.status = "bounced"
            await increment_counter(session, send.campaign_id, "total_bounced")
        campaign = await get_campaign(session, send.campaign_id)
        candidate = await session.get(Candidate, send.candidate_id)
        if campaign is not None and candidate is not None and candidate.email:
            await add_suppression(
                session,
                campaign.workspace_id,
                candidate.email,
                reason="bounce" if event == "bounced" else "complaint",
                source="webhook",
            )
    await session.flush()
    return send
