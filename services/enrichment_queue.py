"""Enrichment dispatcher: one bounded batch step over the task queue.

Each invocation auto-fails task types nobody can execute, selects due pending
tasks in (priority, next_attempt_at) order, claims them one at a time,
executes them against the configured providers and folds the outcome back
into the candidate. Claims and outcomes are committed as they happen, so a
crash leaves at most the in-flight task stuck in ``in_progress``.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import TASK_TYPES, Candidate, EnrichmentTask
from db.repositories import candidates as candidates_repo
from db.repositories import enrichment as enrichment_repo
from queue_config import ENRICHMENT_BATCH_SIZE, STUCK_TASK_TIMEOUT
from schemas.enrichment import BatchResult, EnrichmentStatusSummary
from services import usage
from services.enrichment_executors import (
    EnrichmentProviders,
    Executor,
    MissingInputError,
    build_executors,
)
from services.enrichment_planner import aggregate_status, compute_data_completeness
from services.enrichment_results import apply_enrichment
from services.retry import classify_failure, decide_retry, describe
from services.usage import PROVIDER_LIMITS, TASK_PROVIDERS, ProviderLimit, ProviderThrottle
from tools.errors import FailureKind, PermanentError, RateLimitedError

logger = logging.getLogger(__name__)


def unavailable_message(task_type: str) -> str:
    return f"{task_type} not implemented; skipped"


async def refresh_candidate_state(session: AsyncSession, candidate: Candidate) -> None:
    """Recompute data_completeness and enrichment_status from current data."""
    counts = await enrichment_repo.status_counts_for_candidate(session, candidate.id)
    candidate.data_completeness = compute_data_completeness(candidate)
    candidate.enrichment_status = aggregate_status(counts)
    await session.flush()


async def _auto_fail_unavailable(
    session: AsyncSession, workspace_id: UUID, executors: Mapping[str, Executor]
) -> int:
    unavailable = [t for t in TASK_TYPES if t not in executors]
    affected = await enrichment_repo.fail_pending_of_types(
        session, workspace_id, unavailable, unavailable_message
    )
    for candidate_id in affected:
        candidate = await candidates_repo.get_by_id(session, candidate_id)
        if candidate is not None:
            await refresh_candidate_state(session, candidate)
    if affected:
        logger.info(
            "Auto-failed pending %s task(s) for %d candidate(s)",
            "/".join(unavailable),
            len(affected),
        )
    await session.commit()
    return len(affected)


async def _execute(
    session: AsyncSession,
    task: EnrichmentTask,
    candidate: Optional[Candidate],
    executor: Executor,
    throttle: ProviderThrottle,
    limits: Mapping[str, ProviderLimit],
    now: datetime,
):
    if candidate is None:
        raise PermanentError(f"candidate {task.candidate_id} no longer exists")
    provider = TASK_PROVIDERS[task.task_type]
    if not await usage.can_call(session, task.workspace_id, provider, limits, now):
        raise RateLimitedError(f"{provider} monthly budget exhausted", provider)
    await throttle.wait(provider)
    try:
        return await executor(session, candidate)
    except MissingInputError:
        raise
    except Exception:
        # The provider was reached, so the call counts against the budget
        await usage.record_call(session, task.workspace_id, provider, limits=limits, now=now)
        raise


async def _process_task(
    session: AsyncSession,
    task: EnrichmentTask,
    executor: Executor,
    throttle: ProviderThrottle,
    limits: Mapping[str, ProviderLimit],
    now: datetime,
) -> Optional[FailureKind]:
    """Run one claimed task. Returns None on success, else the failure kind."""
    candidate = await candidates_repo.get_by_id(session, task.candidate_id)
    try:
        enrichment = await _execute(session, task, candidate, executor, throttle, limits, now)
    except SQLAlchemyError:
        raise
    except Exception as exc:
        kind = classify_failure(exc)
        decision = decide_retry(kind, task.attempts, task.max_attempts, now)
        error = describe(exc)
        if decision.retrying:
            await enrichment_repo.mark_retry(
                session,
                task,
                error,
                decision.next_attempt_at,
                refund_attempt=decision.refunds_attempt,
            )
        else:
            await enrichment_repo.mark_failed(session, task, error)
        log = logger.warning if kind != FailureKind.TRANSIENT else logger.info
        log(
            "Enrichment task %s (%s) %s after attempt %d: %s",
            task.id,
            task.task_type,
            "rescheduled" if decision.retrying else "failed",
            task.attempts,
            error,
        )
        if candidate is not None:
            await refresh_candidate_state(session, candidate)
        await session.commit()
        return kind

    await usage.record_call(
        session, task.workspace_id, TASK_PROVIDERS[task.task_type], limits=limits, now=now
    )
    apply_enrichment(enrichment, candidate, now)
    await enrichment_repo.mark_completed(
        session, task, enrichment.model_dump(mode="json"), now
    )
    await refresh_candidate_state(session, candidate)
    await session.commit()
    logger.info("Enrichment task %s (%s) completed", task.id, task.task_type)
    return None


async def process_enrichment_batch(
    session: AsyncSession,
    workspace_id: UUID,
    batch_size: int = ENRICHMENT_BATCH_SIZE,
    providers: Optional[EnrichmentProviders] = None,
    now: Optional[datetime] = None,
    throttle: Optional[ProviderThrottle] = None,
    limits: Mapping[str, ProviderLimit] = PROVIDER_LIMITS,
) -> BatchResult:
    """Process up to ``batch_size`` due enrichment tasks for one workspace.

    Never raises for a single task's failure. Database errors abort the batch.
    """
    now = now or datetime.now(timezone.utc)
    executors = build_executors(providers or EnrichmentProviders())
    throttle = throttle or ProviderThrottle(limits)
    result = BatchResult()

    await _auto_fail_unavailable(session, workspace_id, executors)

    tasks = await enrichment_repo.select_due(session, workspace_id, now, batch_size)
    rate_limited: set[str] = set()
    for task in tasks:
        executor = executors.get(task.task_type)
        if executor is None or task.task_type in rate_limited:
            result.skipped += 1
            continue
        claimed = await enrichment_repo.claim(session, task, now)
        await session.commit()
        if not claimed:
            logger.debug("Enrichment task %s already claimed elsewhere", task.id)
            result.skipped += 1
            continue

        result.processed += 1
        kind = await _process_task(session, task, executor, throttle, limits, now)
        if kind is None:
            result.succeeded += 1
        elif kind == FailureKind.RATE_LIMITED:
            rate_limited.add(task.task_type)
        elif task.status == "failed":
            result.failed += 1

    result.remaining = await enrichment_repo.count_pending(session, workspace_id)
    logger.info(
        "Enrichment batch for workspace %s: processed=%d succeeded=%d failed=%d "
        "skipped=%d remaining=%d",
        workspace_id,
        result.processed,
        result.succeeded,
        result.failed,
        result.skipped,
        result.remaining,
    )
    return result


async def get_enrichment_status(
    session: AsyncSession, workspace_id: UUID
) -> EnrichmentStatusSummary:
    return EnrichmentStatusSummary(
        total_candidates=await candidates_repo.count_in_workspace(session, workspace_id),
        candidates_by_status=await candidates_repo.status_counts(session, workspace_id),
        tasks_by_status=await enrichment_repo.status_counts(session, workspace_id),
        average_completeness=await candidates_repo.average_completeness(session, workspace_id),
    )


async def recover_stuck_tasks(
    session: AsyncSession,
    older_than: timedelta = STUCK_TASK_TIMEOUT,
    workspace_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> int:
    """Maintenance: release in_progress tasks a dead worker left behind."""
    now = now or datetime.now(timezone.utc)
    count = await enrichment_repo.recover_stuck(session, now - older_than, now, workspace_id)
    await session.commit()
    return count
