"""Campaign launch and follow-up scheduling.

Both paths create a CampaignSend for (campaign, candidate, step) and hand the
rendered message to the email queue. Existing sends are never modified.
Follow-ups skip a step that has a send in any status, cancelled included, so
each (campaign, candidate, step) gets at most one. Launch relies on the partial
unique index over live sends instead.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Campaign, Candidate, EmailAccount
from db.repositories import accounts as accounts_repo
from db.repositories import campaigns as campaigns_repo
from db.repositories import candidates as candidates_repo
from db.repositories import suppressions as suppressions_repo
from schemas.email import CampaignLaunchResult, FollowUpRunSummary
from services.email_queue import enqueue_email
from services.templates import candidate_context, render_template

logger = logging.getLogger(__name__)


async def _sending_account(
    session: AsyncSession, campaign: Campaign
) -> Optional[EmailAccount]:
    if campaign.email_account_id is None:
        return None
    account = await accounts_repo.get_account(session, campaign.email_account_id)
    if account is None or account.status != "active":
        return None
    return account


async def _queue_step(
    session: AsyncSession,
    campaign: Campaign,
    account: EmailAccount,
    candidate: Candidate,
    step: int,
    subject: str,
    body: str,
    now: datetime,
) -> bool:
    """Create the send row and its queue item. False if a live send already exists."""
    send_id = await campaigns_repo.create_send(session, campaign.id, candidate.id, step, "queued")
    if send_id is None:
        return False
    context = candidate_context(candidate, account.from_name or "")
    await enqueue_email(
        session,
        campaign.workspace_id,
        account.id,
        account.from_address,
        candidate.email,
        render_template(subject, context),
        render_template(body, context),
        from_name=account.from_name,
        campaign_send_id=send_id,
        now=now,
    )
    return True


async def schedule_follow_ups(
    session: AsyncSession, campaign_id: UUID, now: Optional[datetime] = None
) -> int:
    """Queue every follow-up step that has come due. Returns how many were queued.

    A step is due for a candidate once their initial send went out at least
    ``delay_days`` ago without a reply or bounce. Safe to run repeatedly.
    """
    now = now or datetime.now(timezone.utc)
    campaign = await campaigns_repo.get_campaign(session, campaign_id)
    if campaign is None or campaign.status != "active":
        return 0
    account = await _sending_account(session, campaign)
    if account is None:
        logger.warning("Campaign %s has no active sender account; follow-ups held", campaign_id)
        return 0

    scheduled = 0
    for follow_up in await campaigns_repo.get_active_follow_ups(session, campaign_id):
        cutoff = now - timedelta(days=follow_up.delay_days)
        eligible = await campaigns_repo.eligible_initial_sends(session, campaign_id, cutoff)
        for _send, candidate in eligible:
            if not candidate.email:
                continue
            if await campaigns_repo.has_send(
                session, campaign_id, candidate.id, follow_up.step_number
            ):
                continue
            if await suppressions_repo.is_suppressed(
                session, campaign.workspace_id, candidate.email
            ):
                continue
            if await _queue_step(
                session,
                campaign,
                account,
                candidate,
                follow_up.step_number,
                follow_up.subject,
                follow_up.body,
                now,
            ):
                scheduled += 1

    await session.commit()
    if scheduled:
        logger.info("Scheduled %d follow-up(s) for campaign %s", scheduled, campaign_id)
    return scheduled


async def check_and_schedule_follow_ups(
    session: AsyncSession, now: Optional[datetime] = None
) -> FollowUpRunSummary:
    """Run ``schedule_follow_ups`` for every active campaign with follow-up steps."""
    summary = FollowUpRunSummary()
    for campaign in await campaigns_repo.get_active_campaigns_with_follow_ups(session):
        summary.campaigns_checked += 1
        summary.follow_ups_scheduled += await schedule_follow_ups(session, campaign.id, now)
    logger.info(
        "Follow-up check: %d campaign(s), %d follow-up(s) scheduled",
        summary.campaigns_checked,
        summary.follow_ups_scheduled,
    )
    return summary


async def launch_campaign(
    session: AsyncSession,
    campaign_id: UUID,
    candidate_ids: Iterable[UUID],
    now: Optional[datetime] = None,
) -> CampaignLaunchResult:
    """Queue the initial step for each candidate and activate the campaign."""
    now = now or datetime.now(timezone.utc)
    campaign = await campaigns_repo.get_campaign(session, campaign_id)
    if campaign is None:
        raise LookupError(f"Campaign {campaign_id} not found")
    if campaign.status == "completed":
        raise ValueError(f"Campaign {campaign_id} is {campaign.status}")
    account = await _sending_account(session, campaign)
    if account is None:
        raise ValueError(f"Campaign {campaign_id} has no active sender account")

    result = CampaignLaunchResult()
    for candidate_id in candidate_ids:
        candidate = await candidates_repo.get_by_id(session, candidate_id)
        if candidate is None or candidate.workspace_id != campaign.workspace_id:
            logger.warning("Skipping unknown candidate %s for campaign %s", candidate_id, campaign_id)
            continue
        if not candidate.email:
            result.skipped_no_email += 1
            continue
        if await suppressions_repo.is_suppressed(session, campaign.workspace_id, candidate.email):
            result.skipped_suppressed += 1
            continue
        queued = await _queue_step(
            session, campaign, account, candidate, 0, campaign.subject or "", campaign.body or "", now
        )
        if queued:
            result.queued += 1
        else:
            result.skipped_existing += 1

    if result.queued:
        await campaigns_repo.increment_counter(
            session, campaign.id, "total_recipients", result.queued
        )
    campaign.status = "active"
    await session.commit()
    logger.info(
        "Launched campaign %s: queued=%d no_email=%d suppressed=%d existing=%d",
        campaign_id,
        result.queued,
        result.skipped_no_email,
        result.skipped_suppressed,
        result.skipped_existing,
    )
    return result
