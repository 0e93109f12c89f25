"""Email delivery dispatcher.

Same claim / retry state machine as the enrichment queue. Every item passes
the suppression gate before any transport is touched; campaign items get open
and click tracking plus an unsubscribe footer and List-Unsubscribe headers.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import EmailAccount, EmailQueueItem
from db.repositories import accounts as accounts_repo
from db.repositories import campaigns as campaigns_repo
from db.repositories import email_queue as email_queue_repo
from db.repositories import suppressions as suppressions_repo
from queue_config import (
    DEFAULT_EMAIL_PRIORITY,
    DEFAULT_MAX_ATTEMPTS,
    EMAIL_BATCH_SIZE,
    STUCK_TASK_TIMEOUT,
)
from schemas.email import EmailQueueHealth
from schemas.enrichment import BatchResult
from services.retry import classify_failure, decide_retry, describe
from services.tracking import inject_tracking, inject_unsubscribe
from tools.contracts import EmailTransport, SendReceipt, SendRequest
from tools.errors import FailureKind, PermanentError, TransientError
from tools.email_transport import transport_for_account

logger = logging.getLogger(__name__)

SUPPRESSED_MESSAGE = "Recipient is suppressed"
STALE_PENDING_AFTER = timedelta(minutes=5)

TransportResolver = Callable[[EmailAccount], EmailTransport]


async def enqueue_email(
    session: AsyncSession,
    workspace_id: UUID,
    email_account_id: Optional[UUID],
    from_address: str,
    to_address: str,
    subject: str,
    html_body: str,
    *,
    from_name: Optional[str] = None,
    text_body: Optional[str] = None,
    reply_to: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    campaign_send_id: Optional[UUID] = None,
    priority: int = DEFAULT_EMAIL_PRIORITY,
    scheduled_for: Optional[datetime] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    now: Optional[datetime] = None,
) -> EmailQueueItem:
    """Queue one message for delivery."""
    item = await email_queue_repo.enqueue(
        session,
        workspace_id=workspace_id,
        email_account_id=email_account_id,
        campaign_send_id=campaign_send_id,
        from_address=from_address,
        from_name=from_name,
        to_address=to_address,
        reply_to=reply_to,
        subject=subject,
        html_body=html_body,
        text_body=text_body,
        headers=dict(headers or {}),
        priority=priority,
        max_attempts=max_attempts,
        scheduled_for=scheduled_for,
        next_attempt_at=now or datetime.now(timezone.utc),
    )
    logger.debug("Queued email %s to %s", item.id, item.to_address)
    return item


def _build_request(item: EmailQueueItem, base_url: Optional[str]) -> SendRequest:
    html = item.html_body
    headers = dict(item.headers or {})
    if item.campaign_send_id is not None:
        send_id = str(item.campaign_send_id)
        html = inject_tracking(html, send_id, base_url)
        html, unsubscribe_headers = inject_unsubscribe(html, send_id, str(item.workspace_id), base_url)
        headers.update(unsubscribe_headers)
    return SendRequest(
        from_address=item.from_address,
        from_name=item.from_name,
        to=item.to_address,
        subject=item.subject,
        html=html,
        text=item.text_body,
        reply_to=item.reply_to,
        headers=headers,
    )


async def _send(
    session: AsyncSession,
    item: EmailQueueItem,
    resolve_transport: TransportResolver,
    base_url: Optional[str],
) -> SendReceipt:
    if item.email_account_id is None:
        raise PermanentError("queue item has no sender account")
    account = await accounts_repo.get_account(session, item.email_account_id)
    if account is None:
        raise PermanentError(f"sender account {item.email_account_id} not found")
    if account.status != "active":
        raise TransientError(f"sender account is {account.status}")
    transport = resolve_transport(account)
    return await transport.send(_build_request(item, base_url))


async def _cancel_suppressed(session: AsyncSession, item: EmailQueueItem) -> None:
    await email_queue_repo.mark_cancelled(session, item, SUPPRESSED_MESSAGE)
    if item.campaign_send_id is not None:
        await campaigns_repo.update_send(
            session, item.campaign_send_id, status="cancelled", error_message="Suppressed"
        )
    await session.commit()
    logger.info("Cancelled email %s: %s is suppressed", item.id, item.to_address)


async def _record_success(
    session: AsyncSession, item: EmailQueueItem, receipt: SendReceipt, now: datetime
) -> None:
    await email_queue_repo.mark_sent(
        session, item, receipt.provider_message_id, receipt.accepted_at
    )
    if item.campaign_send_id is not None:
        send = await campaigns_repo.get_send(session, item.campaign_send_id)
        if send is not None:
            await campaigns_repo.update_send(
                session,
                send.id,
                status="sent",
                provider_message_id=receipt.provider_message_id,
                sent_at=receipt.accepted_at,
                error_message=None,
            )
            await campaigns_repo.increment_counter(session, send.campaign_id, "total_sent")
    if item.email_account_id is not None:
        await accounts_repo.touch_last_used(session, item.email_account_id, now)
    await session.commit()
    logger.info("Sent email %s (provider id %s)", item.id, receipt.provider_message_id)


async def _record_failure(
    session: AsyncSession, item: EmailQueueItem, exc: Exception, now: datetime
) -> FailureKind:
    kind = classify_failure(exc)
    decision = decide_retry(kind, item.attempts, item.max_attempts, now)
    error = describe(exc)
    if decision.retrying:
        await email_queue_repo.mark_retry(
            session,
            item,
            error,
            decision.next_attempt_at,
            refund_attempt=decision.refunds_attempt,
        )
    else:
        await email_queue_repo.mark_failed(session, item, error)
        if item.campaign_send_id is not None:
            await campaigns_repo.update_send(
                session, item.campaign_send_id, status="failed", error_message=error
            )
    await session.commit()
    log = logger.warning if kind != FailureKind.TRANSIENT else logger.info
    log(
        "Email %s %s after attempt %d: %s",
        item.id,
        "rescheduled" if decision.retrying else "failed",
        item.attempts,
        error,
    )
    return kind


async def process_email_batch(
    session: AsyncSession,
    workspace_id: UUID,
    batch_size: int = EMAIL_BATCH_SIZE,
    resolve_transport: TransportResolver = transport_for_account,
    now: Optional[datetime] = None,
    base_url: Optional[str] = None,
) -> BatchResult:
    """Deliver up to ``batch_size`` due queue items for one workspace.

    Once a sender account is rate limited, its remaining items in the batch
    are left pending. Database errors abort the batch.
    """
    now = now or datetime.now(timezone.utc)
    result = BatchResult()
    throttled_accounts: set[Optional[UUID]] = set()

    items = await email_queue_repo.select_due(session, workspace_id, now, batch_size)
    for item in items:
        if item.email_account_id in throttled_accounts:
            result.skipped += 1
            continue
        claimed = await email_queue_repo.claim(session, item, now)
        await session.commit()
        if not claimed:
            result.skipped += 1
            continue
        result.processed += 1

        if await suppressions_repo.is_suppressed(session, item.workspace_id, item.to_address):
            await _cancel_suppressed(session, item)
            result.cancelled += 1
            continue

        try:
            receipt = await _send(session, item, resolve_transport, base_url)
        except SQLAlchemyError:
            raise
        except Exception as exc:
            kind = await _record_failure(session, item, exc, now)
            if kind == FailureKind.RATE_LIMITED:
                throttled_accounts.add(item.email_account_id)
            elif item.status == "failed":
                result.failed += 1
            continue

        await _record_success(session, item, receipt, now)
        result.succeeded += 1

    result.remaining = await email_queue_repo.count_pending(session, workspace_id)
    logger.info(
        "Email batch for workspace %s: processed=%d sent=%d failed=%d cancelled=%d "
        "skipped=%d remaining=%d",
        workspace_id,
        result.processed,
        result.succeeded,
        result.failed,
        result.cancelled,
        result.skipped,
        result.remaining,
    )
    return result


async def get_email_queue_health(
    session: AsyncSession, workspace_id: UUID, now: Optional[datetime] = None
) -> EmailQueueHealth:
    now = now or datetime.now(timezone.utc)
    counts = await email_queue_repo.status_counts(session, workspace_id)
    return EmailQueueHealth(
        counts_by_status=counts,
        pending=counts.get("pending", 0),
        stale_pending=await email_queue_repo.pending_older_than(
            session, workspace_id, now - STALE_PENDING_AFTER
        ),
        oldest_pending_at=await email_queue_repo.oldest_pending_created_at(session, workspace_id),
        last_sent_at=await email_queue_repo.last_sent_at(session, workspace_id),
    )


async def recover_stuck_emails(
    session: AsyncSession,
    older_than: timedelta = STUCK_TASK_TIMEOUT,
    workspace_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> int:
    """Maintenance: release in_progress items a dead worker left behind."""
    now = now or datetime.now(timezone.utc)
    count = await email_queue_repo.recover_stuck(session, now - older_than, now, workspace_id)
    await session.commit()
    return count
