"""Integration tests for the email delivery dispatcher."""
from datetime import datetime, timedelta, timezone

import pytest

from db.repositories import campaigns as campaigns_repo
from db.repositories import email_queue as email_queue_repo
from db.repositories import suppressions as suppressions_repo
from services.email_queue import (
    SUPPRESSED_MESSAGE,
    enqueue_email,
    get_email_queue_health,
    process_email_batch,
    recover_stuck_emails,
)
from tools.errors import PermanentError, RateLimitedError
from helpers import FakeTransport, make_account, make_campaign, make_candidate

TRACKER = "https://t.example"


async def _queue(session, workspace_id, account, now, to="jane@x.com", **kwargs):
    item = await enqueue_email(
        session,
        workspace_id,
        account.id,
        account.from_address,
        to,
        kwargs.pop("subject", "Hello"),
        kwargs.pop("html_body", "<html><body><p>Hi</p></body></html>"),
        from_name=account.from_name,
        now=now,
        **kwargs,
    )
    await session.commit()
    return item


async def _campaign_send(session, workspace_id, account):
    campaign = await make_campaign(session, workspace_id, account)
    candidate = await make_candidate(session, workspace_id, first_name="Jane", email="jane@x.com")
    send_id = await campaigns_repo.create_send(session, campaign.id, candidate.id, 0, "queued")
    await session.commit()
    return campaign, send_id


@pytest.mark.asyncio
async def test_ad_hoc_email_is_sent_untouched(session, workspace_id, now):
    account = await make_account(session, workspace_id)
    item = await _queue(session, workspace_id, account, now, to="Jane@X.com")
    transport = FakeTransport()

    result = await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: transport, now=now
    )

    assert result.processed == 1
    assert result.succeeded == 1
    assert result.remaining == 0
    request = transport.sent[0]
    assert request.to == "jane@x.com"
    assert request.from_name == "Ada Recruiter"
    assert request.html == "<html><body><p>Hi</p></body></html>"
    assert request.headers == {}

    item = await email_queue_repo.get_item(session, item.id)
    assert item.status == "sent"
    assert item.attempts == 1
    assert item.provider_message_id == "msg-1"
    assert item.sent_at == now
    await session.refresh(account)
    assert account.last_used_at == now


@pytest.mark.asyncio
async def test_campaign_email_gets_tracking_and_unsubscribe(session, workspace_id, now):
    account = await make_account(session, workspace_id)
    campaign, send_id = await _campaign_send(session, workspace_id, account)
    await _queue(
        session,
        workspace_id,
        account,
        now,
        html_body='<html><body><p>See <a href="https://acme.test/jobs">jobs</a></p></body></html>',
        campaign_send_id=send_id,
    )
    transport = FakeTransport()

    await process_email_batch(
        session,
        workspace_id,
        resolve_transport=lambda account: transport,
        now=now,
        base_url=TRACKER,
    )

    request = transport.sent[0]
    assert f'{TRACKER}/api/track/open?sid={send_id}' in request.html
    assert (
        f'href="{TRACKER}/api/track/click?sid={send_id}&url=https%3A%2F%2Facme.test%2Fjobs"'
        in request.html
    )
    assert ">Unsubscribe</a>" in request.html
    assert request.headers["List-Unsubscribe"] == (
        f"<{TRACKER}/api/email/unsubscribe?sid={send_id}&cid={workspace_id}>"
    )
    assert request.headers["List-Unsubscribe-Post"] == "List-Unsubscribe=One-Click"

    send = await campaigns_repo.get_send(session, send_id)
    assert send.status == "sent"
    assert send.provider_message_id == "msg-1"
    assert send.sent_at == now
    assert (await campaigns_repo.get_campaign(session, campaign.id)).total_sent == 1


@pytest.mark.asyncio
async def test_suppressed_recipient_is_never_handed_to_transport(session, workspace_id, now):
    account = await make_account(session, workspace_id)
    campaign, send_id = await _campaign_send(session, workspace_id, account)
    await suppressions_repo.add_suppression(session, workspace_id, "JANE@x.com", "unsubscribe")
    item = await _queue(session, workspace_id, account, now, campaign_send_id=send_id)
    transport = FakeTransport()

    result = await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: transport, now=now
    )

    assert transport.sent == []
    assert result.cancelled == 1
    assert result.succeeded == 0
    item = await email_queue_repo.get_item(session, item.id)
    assert item.status == "cancelled"
    assert item.last_error == SUPPRESSED_MESSAGE
    send = await campaigns_repo.get_send(session, send_id)
    assert send.status == "cancelled"
    assert send.error_message == "Suppressed"
    assert (await campaigns_repo.get_campaign(session, campaign.id)).total_sent == 0


@pytest.mark.asyncio
async def test_suppression_is_per_workspace(session, workspace_id, now):
    import uuid

    account = await make_account(session, workspace_id)
    await suppressions_repo.add_suppression(session, uuid.uuid4(), "jane@x.com")
    await _queue(session, workspace_id, account, now)
    transport = FakeTransport()

    result = await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: transport, now=now
    )

    assert result.succeeded == 1
    assert len(transport.sent) == 1


@pytest.mark.asyncio
async def test_inactive_account_is_retried_later(session, workspace_id, now):
    account = await make_account(session, workspace_id, status="error")
    item = await _queue(session, workspace_id, account, now)
    transport = FakeTransport()

    result = await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: transport, now=now
    )

    assert transport.sent == []
    assert result.failed == 0
    item = await email_queue_repo.get_item(session, item.id)
    assert item.status == "pending"
    assert item.attempts == 1
    assert item.next_attempt_at == now + timedelta(minutes=2)
    assert item.last_error == "transient: sender account is error"


@pytest.mark.asyncio
async def test_missing_account_fails_permanently(session, workspace_id, now):
    item = await enqueue_email(
        session, workspace_id, None, "ops@acme.test", "jane@x.com", "Hi", "<p>Hi</p>", now=now
    )
    await session.commit()

    result = await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: FakeTransport(), now=now
    )

    assert result.failed == 1
    item = await email_queue_repo.get_item(session, item.id)
    assert item.status == "failed"
    assert item.last_error == "permanent: queue item has no sender account"


@pytest.mark.asyncio
async def test_rejected_message_fails_its_campaign_send(session, workspace_id, now):
    account = await make_account(session, workspace_id)
    _campaign, send_id = await _campaign_send(session, workspace_id, account)
    item = await _queue(session, workspace_id, account, now, campaign_send_id=send_id)
    transport = FakeTransport(error=PermanentError("resend API error: 422", "resend"))

    result = await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: transport, now=now
    )

    assert result.failed == 1
    item = await email_queue_repo.get_item(session, item.id)
    assert item.status == "failed"
    send = await campaigns_repo.get_send(session, send_id)
    assert send.status == "failed"
    assert send.error_message == "permanent: resend API error: 422"


@pytest.mark.asyncio
async def test_rate_limited_account_holds_its_other_items(session, workspace_id, now):
    account = await make_account(session, workspace_id)
    first = await _queue(session, workspace_id, account, now, to="ann@x.com", priority=1)
    second = await _queue(session, workspace_id, account, now, to="bo@x.com", priority=2)
    transport = FakeTransport(error=RateLimitedError("resend API error: 429", "resend"))

    result = await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: transport, now=now
    )

    assert len(transport.sent) == 1
    assert result.processed == 1
    assert result.skipped == 1
    first = await email_queue_repo.get_item(session, first.id)
    assert first.status == "pending"
    assert first.next_attempt_at == now + timedelta(minutes=30)
    assert first.attempts == 0
    second = await email_queue_repo.get_item(session, second.id)
    assert second.attempts == 0


@pytest.mark.asyncio
async def test_scheduled_items_wait_for_their_time(session, workspace_id, now):
    account = await make_account(session, workspace_id)
    await _queue(session, workspace_id, account, now, scheduled_for=now + timedelta(hours=1))
    transport = FakeTransport()

    result = await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: transport, now=now
    )
    assert result.processed == 0
    assert result.remaining == 1

    later = await process_email_batch(
        session,
        workspace_id,
        resolve_transport=lambda account: transport,
        now=now + timedelta(hours=1),
    )
    assert later.succeeded == 1


@pytest.mark.asyncio
async def test_queue_health(session, workspace_id, now):
    account = await make_account(session, workspace_id)
    await _queue(session, workspace_id, account, now)
    await _queue(session, workspace_id, account, now, scheduled_for=now + timedelta(days=1))
    await process_email_batch(
        session, workspace_id, resolve_transport=lambda account: FakeTransport(), now=now
    )

    health = await get_email_queue_health(
        session, workspace_id, now=datetime.now(timezone.utc) + timedelta(minutes=10)
    )

    assert health.counts_by_status == {"sent": 1, "pending": 1}
    assert health.pending == 1
    assert health.stale_pending == 1
    assert health.oldest_pending_at is not None
    assert health.last_sent_at == now


@pytest.mark.asyncio
async def test_recover_stuck_emails(session, workspace_id, now):
    account = await make_account(session, workspace_id)
    item = await _queue(session, workspace_id, account, now - timedelta(hours=1))
    assert await email_queue_repo.claim(session, item, now - timedelta(minutes=30))
    await session.commit()

    assert await recover_stuck_emails(session, timedelta(minutes=15), now=now) == 1
    item = await email_queue_repo.get_item(session, item.id)
    assert item.status == "pending"
    assert item.next_attempt_at == now
