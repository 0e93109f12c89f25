"""Candidate engine batch worker.

Entry point for cron-driven batch steps. Each subcommand opens one database
session, runs a single bounded batch and prints the result as JSON.

Usage:
  # Work through due enrichment tasks for a workspace
  python worker.py enrich --workspace-id <uuid> --batch-size 10

  # Deliver due queued email
  python worker.py send --workspace-id <uuid> --batch-size 20

  # Queue follow-up steps that have come due (all campaigns, or one)
  python worker.py follow-ups [--campaign-id <uuid>]

  # Plan enrichment for a candidate
  python worker.py queue --candidate-id <uuid>

  # Release tasks and emails stuck in_progress for over 15 minutes
  python worker.py recover --older-than-minutes 15

  # Queue and enrichment status for a workspace
  python worker.py status --workspace-id <uuid>
"""
import argparse
import asyncio
import json
import logging
import os
import sys
import uuid
from datetime import timedelta
from typing import Optional

from db.connection import dispose_engine, get_db
from queue_config import EMAIL_BATCH_SIZE, ENRICHMENT_BATCH_SIZE, STUCK_TASK_TIMEOUT, TRACKING_BASE_URL
from services.email_queue import get_email_queue_health, process_email_batch, recover_stuck_emails
from services.enrichment_planner import queue_enrichment_for_candidate
from services.enrichment_queue import (
    get_enrichment_status,
    process_enrichment_batch,
    recover_stuck_tasks,
)
from services.follow_ups import check_and_schedule_follow_ups, schedule_follow_ups
from tools.registry import build_enrichment_providers

logger = logging.getLogger(__name__)


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run_enrich(workspace_id: uuid.UUID, batch_size: int) -> dict:
    providers = build_enrichment_providers()
    async with get_db() as session:
        result = await process_enrichment_batch(
            session, workspace_id, batch_size=batch_size, providers=providers
        )
    return result.model_dump()


async def run_send(workspace_id: uuid.UUID, batch_size: int) -> dict:
    async with get_db() as session:
        result = await process_email_batch(
            session, workspace_id, batch_size=batch_size, base_url=TRACKING_BASE_URL
        )
    return result.model_dump()


async def run_follow_ups(campaign_id: Optional[uuid.UUID] = None) -> dict:
    async with get_db() as session:
        if campaign_id is not None:
            scheduled = await schedule_follow_ups(session, campaign_id)
            return {"campaign_id": str(campaign_id), "follow_ups_scheduled": scheduled}
        summary = await check_and_schedule_follow_ups(session)
    return summary.model_dump()


async def run_queue(candidate_id: uuid.UUID) -> dict:
    async with get_db() as session:
        queued = await queue_enrichment_for_candidate(session, candidate_id)
    return {"candidate_id": str(candidate_id), "tasks_queued": queued}


async def run_recover(older_than: timedelta) -> dict:
    async with get_db() as session:
        tasks = await recover_stuck_tasks(session, older_than)
        emails = await recover_stuck_emails(session, older_than)
    return {"enrichment_tasks_recovered": tasks, "emails_recovered": emails}


async def run_status(workspace_id: uuid.UUID) -> dict:
    async with get_db() as session:
        enrichment = await get_enrichment_status(session, workspace_id)
        email = await get_email_queue_health(session, workspace_id)
    return {"enrichment": enrichment.model_dump(), "email_queue": email.model_dump()}


async def _run(coro) -> dict:
    try:
        return await coro
    finally:
        await dispose_engine()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Candidate enrichment and outreach batch worker")
    sub = parser.add_subparsers(dest="command")

    enrich = sub.add_parser("enrich", help="Process due enrichment tasks")
    enrich.add_argument("--workspace-id", required=True, type=uuid.UUID)
    enrich.add_argument("--batch-size", type=int, default=ENRICHMENT_BATCH_SIZE)

    send = sub.add_parser("send", help="Deliver due queued email")
    send.add_argument("--workspace-id", required=True, type=uuid.UUID)
    send.add_argument("--batch-size", type=int, default=EMAIL_BATCH_SIZE)

    follow_ups = sub.add_parser("follow-ups", help="Schedule due follow-up steps")
    follow_ups.add_argument("--campaign-id", type=uuid.UUID, default=None,
                            help="Only this campaign (default: every active campaign)")

    queue = sub.add_parser("queue", help="Plan enrichment tasks for a candidate")
    queue.add_argument("--candidate-id", required=True, type=uuid.UUID)

    recover = sub.add_parser("recover", help="Release tasks and emails stuck in progress")
    recover.add_argument(
        "--older-than-minutes",
        type=int,
        default=int(STUCK_TASK_TIMEOUT.total_seconds() // 60),
    )

    status = sub.add_parser("status", help="Show enrichment and email queue status")
    status.add_argument("--workspace-id", required=True, type=uuid.UUID)

    return parser


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parser = _build_arg_parser()
    args = parser.parse_args()

    if args.command == "enrich":
        _print(asyncio.run(_run(run_enrich(args.workspace_id, args.batch_size))))

    elif args.command == "send":
        _print(asyncio.run(_run(run_send(args.workspace_id, args.batch_size))))

    elif args.command == "follow-ups":
        _print(asyncio.run(_run(run_follow_ups(args.campaign_id))))

    elif args.command == "queue":
        _print(asyncio.run(_run(run_queue(args.candidate_id))))

    elif args.command == "recover":
        _print(asyncio.run(_run(run_recover(timedelta(minutes=args.older_than_minutes)))))

    elif args.command == "status":
        _print(asyncio.run(_run(run_status(args.workspace_id))))

    else:
        parser.print_help()
        sys.exit(1)
