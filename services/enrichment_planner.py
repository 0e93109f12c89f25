"""Enrichment task planner and data completeness scoring.

``plan_enrichment`` is pure: it looks at a candidate and says which gaps are
worth filling. ``queue_enrichment_for_candidate`` persists that plan.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Candidate
from db.repositories import candidates as candidates_repo
from db.repositories import enrichment as enrichment_repo
from queue_config import DEFAULT_MAX_ATTEMPTS
from schemas.enrichment import TASK_PRIORITIES, PlannedTask

logger = logging.getLogger(__name__)

# Fields that count toward data_completeness, in checklist order
COMPLETENESS_FIELDS = (
    "email",
    "phone",
    "current_title",
    "current_company",
    "location",
    "linkedin_url",
    "skills",
    "profile_image_url",
    "headline",
    "about",
    "experience",
    "education",
)


def _filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, dict)):
        return len(value) > 0
    return True


def aggregate_status(counts: Mapping[str, int]) -> str:
    """Roll a candidate's task statuses up into its enrichment_status.

    complete  nothing left to run and nothing failed (or no tasks at all)
    partial   some data landed but tasks failed, or work is still running
    failed    nothing left to run and every finished task failed
    pending   work queued, nothing landed yet
    """
    active = counts.get("pending", 0) + counts.get("in_progress", 0)
    completed = counts.get("completed", 0)
    failed = counts.get("failed", 0)
    if active == 0:
        if failed == 0:
            return "complete"
        return "partial" if completed else "failed"
    return "partial" if completed else "pending"


def compute_data_completeness(record: Any) -> int:
    """Percentage (0-100) of the checklist fields that are non-empty.

    Works on ORM rows and on input snapshots alike; missing attributes count
    as empty.
    """
    filled = sum(1 for name in COMPLETENESS_FIELDS if _filled(getattr(record, name, None)))
    return round(filled * 100 / len(COMPLETENESS_FIELDS))


def plan_enrichment(candidate: Candidate) -> list[PlannedTask]:
    """Return at most one task per gap, ordered by priority."""
    types: list[str] = []
    if not _filled(candidate.email):
        types.append("find_email")
    elif not candidate.email_verified:
        types.append("verify_email")

    if not _filled(candidate.phone):
        types.append("find_phone")
    elif not candidate.phone_verified:
        types.append("verify_phone")

    if _filled(candidate.linkedin_url) and candidate.linkedin_scraped_at is None:
        types.append("linkedin_profile")

    if not _filled(candidate.company_info) and _filled(candidate.current_company):
        types.append("company_info")

    if not candidate.ai_score:
        types.append("ai_score")

    return [PlannedTask(task_type=t, priority=TASK_PRIORITIES[t]) for t in types]


async def queue_enrichment_for_candidate(
    session: AsyncSession,
    candidate_id: UUID,
    now: Optional[datetime] = None,
) -> int:
    """Create pending tasks for every gap on the candidate. Returns the count.

    Types that already have a pending or in_progress task are not queued twice.
    A candidate with no gaps is marked complete on the spot.
    """
    now = now or datetime.now(timezone.utc)
    candidate = await candidates_repo.get_by_id(session, candidate_id)
    if candidate is None:
        raise LookupError(f"Candidate {candidate_id} not found")

    plan = plan_enrichment(candidate)
    if not plan:
        candidate.enrichment_status = "complete"
        await session.flush()
        logger.info("Candidate %s has no enrichment gaps; marked complete", candidate_id)
        return 0

    active = await enrichment_repo.active_types_for_candidate(session, candidate_id)
    planned = [p for p in plan if p.task_type not in active]
    await enrichment_repo.create_tasks(
        session,
        candidate,
        planned,
        max_attempts=DEFAULT_MAX_ATTEMPTS,
        next_attempt_at=now,
    )
    counts = await enrichment_repo.status_counts_for_candidate(session, candidate_id)
    candidate.enrichment_status = aggregate_status(counts)
    await session.flush()
    logger.info(
        "Queued %d enrichment task(s) for candidate %s: %s",
        len(planned),
        candidate_id,
        ", ".join(p.task_type for p in planned) or "none new",
    )
    return len(planned)


async def queue_enrichment_batch(
    session: AsyncSession,
    candidate_ids: Iterable[UUID],
    now: Optional[datetime] = None,
) -> dict[str, int]:
    """Queue enrichment for several candidates. Returns {candidate_id: count}."""
    queued: dict[str, int] = {}
    for candidate_id in candidate_ids:
        queued[str(candidate_id)] = await queue_enrichment_for_candidate(
            session, candidate_id, now=now
        )
    return queued
