"""Deduplicating upsert: the single write path for incoming candidate data."""
import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Candidate
from db.repositories import candidates as candidates_repo
from schemas.candidate import (
    BatchDedupResult,
    CandidateIdentity,
    CandidateInput,
    DedupResult,
    DedupStats,
    MergeStrategy,
)
from services import matching
from services.enrichment_planner import compute_data_completeness
from services.merge import accumulate_sources, contributors_of, merge_candidate

logger = logging.getLogger(__name__)


class CandidateConflictError(Exception):
    """An insert was rejected by a unique key but no matching row could be found."""


def _normalized(data: CandidateInput) -> CandidateInput:
    return data.model_copy(
        update={
            "email": matching.normalize_email(data.email),
            "linkedin_url": data.linkedin_url.strip() if data.linkedin_url else None,
        }
    )


def _insert_values(workspace_id: UUID, data: CandidateInput) -> dict:
    values = data.model_dump(exclude={"data_completeness", "enrichment_source"})
    values["workspace_id"] = workspace_id
    values["linkedin_key"] = matching.normalize_linkedin_url(data.linkedin_url)
    values["enrichment_source"] = accumulate_sources(None, contributors_of(data))
    values["data_completeness"] = max(
        data.data_completeness or 0, compute_data_completeness(data)
    )
    values["enrichment_status"] = "pending"
    return values


async def _owned_by_other(
    session: AsyncSession, candidate: Candidate, field: str, value: Optional[str]
) -> bool:
    if value is None:
        return False
    match = await matching.find_existing_candidate(
        session,
        candidate.workspace_id,
        CandidateIdentity(**{"email" if field == "email" else "linkedin_url": value}),
    )
    return match is not None and match[0].id != candidate.id


async def _apply_changes(session: AsyncSession, candidate: Candidate, changes: dict) -> None:
    # Identity keys already held by another row are dropped rather than
    # tripping the unique constraint
    if "email" in changes and await _owned_by_other(session, candidate, "email", changes["email"]):
        logger.warning("Not moving email %s onto candidate %s: already in use", changes["email"], candidate.id)
        changes.pop("email")
    if "linkedin_url" in changes:
        if await _owned_by_other(session, candidate, "linkedin_url", changes["linkedin_url"]):
            logger.warning("Not moving LinkedIn URL onto candidate %s: already in use", candidate.id)
            changes.pop("linkedin_url")
        else:
            candidate.linkedin_key = matching.normalize_linkedin_url(changes["linkedin_url"])
    for name, value in changes.items():
        setattr(candidate, name, value)


async def upsert_candidate(
    session: AsyncSession,
    workspace_id: UUID,
    data: CandidateInput,
    strategy: MergeStrategy = MergeStrategy.MERGE_BEST,
) -> DedupResult:
    """Insert ``data`` as a new candidate or merge it into the one it matches.

    A match-then-insert race with another writer is closed by the
    ON CONFLICT insert: when it returns nothing the matcher runs again and the
    record falls through to the update path.
    """
    data = _normalized(data)
    identity = CandidateIdentity.of(data)

    match = await matching.find_existing_candidate(session, workspace_id, identity)
    if match is None:
        candidate_id = await candidates_repo.insert_if_absent(
            session, _insert_values(workspace_id, data)
        )
        if candidate_id is not None:
            logger.info("Inserted candidate %s in workspace %s", candidate_id, workspace_id)
            return DedupResult(action="insert", candidate_id=candidate_id, reason="new_record")

        match = await matching.find_existing_candidate(session, workspace_id, identity)
        if match is None:
            raise CandidateConflictError(
                f"Insert conflicted in workspace {workspace_id} but no matching candidate was found"
            )
        logger.info("Insert raced with another writer; merging into %s", match[0].id)

    candidate, key = match
    if strategy == MergeStrategy.KEEP_EXISTING:
        return DedupResult(action="skip", candidate_id=candidate.id, reason=f"duplicate_{key}")

    outcome = merge_candidate(CandidateInput.model_validate(candidate), data, strategy)
    await _apply_changes(session, candidate, dict(outcome.changes))
    candidate.data_completeness = max(
        candidate.data_completeness or 0, compute_data_completeness(candidate)
    )
    await session.flush()
    logger.info(
        "Merged %d field(s) into candidate %s (matched on %s)",
        len(outcome.changes),
        candidate.id,
        key,
    )
    return DedupResult(
        action="update", candidate_id=candidate.id, reason=f"merged_{strategy.value}"
    )


async def deduplicate_batch(
    session: AsyncSession,
    workspace_id: UUID,
    records: Iterable[CandidateInput],
    strategy: MergeStrategy = MergeStrategy.MERGE_BEST,
) -> BatchDedupResult:
    """Upsert records one after another; a bad record never sinks the batch."""
    results: list[DedupResult] = []
    stats = DedupStats()
    for index, record in enumerate(records):
        try:
            async with session.begin_nested():
                result = await upsert_candidate(session, workspace_id, record, strategy)
        except Exception as exc:
            logger.warning("Record %d of import failed: %s", index, exc)
            stats.errors += 1
            results.append(DedupResult(action="skip", reason="error", error=str(exc)))
            continue
        results.append(result)
        if result.action == "insert":
            stats.inserted += 1
        elif result.action == "update":
            stats.updated += 1
        else:
            stats.skipped += 1
    logger.info(
        "Import finished for workspace %s: %d inserted, %d updated, %d skipped, %d errors",
        workspace_id,
        stats.inserted,
        stats.updated,
        stats.skipped,
        stats.errors,
    )
    return BatchDedupResult(results=results, stats=stats)
