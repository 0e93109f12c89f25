"""Integration tests for the record matcher and the deduplicating upsert."""
import uuid

import pytest

from db.repositories import candidates as candidates_repo
from schemas.candidate import CandidateIdentity, CandidateInput, MergeStrategy
from services import dedup, matching
from services.dedup import CandidateConflictError, deduplicate_batch, upsert_candidate
from helpers import make_candidate


@pytest.mark.asyncio
async def test_new_record_is_inserted(session, workspace_id):
    result = await upsert_candidate(
        session,
        workspace_id,
        CandidateInput(first_name="Jane", email="Jane@X.com", source="csv"),
    )
    await session.commit()

    assert result.action == "insert"
    assert result.reason == "new_record"
    candidate = await candidates_repo.get_by_id(session, result.candidate_id)
    assert candidate.email == "jane@x.com"
    assert candidate.enrichment_source == "csv"
    assert candidate.enrichment_status == "pending"


@pytest.mark.asyncio
async def test_upsert_is_idempotent(session, workspace_id):
    """Upserting the same record twice leaves exactly one candidate."""
    data = CandidateInput(first_name="Jane", last_name="Doe", email="jane@x.com")
    first = await upsert_candidate(session, workspace_id, data)
    second = await upsert_candidate(session, workspace_id, data)
    await session.commit()

    assert first.action == "insert"
    assert second.action == "update"
    assert second.reason == "merged_merge_best"
    assert first.candidate_id == second.candidate_id
    assert await candidates_repo.count_in_workspace(session, workspace_id) == 1


@pytest.mark.asyncio
async def test_email_match_beats_linkedin_match(session, workspace_id):
    by_email = await make_candidate(session, workspace_id, email="jane@x.com")
    by_linkedin = await make_candidate(
        session,
        workspace_id,
        linkedin_url="https://linkedin.com/in/other",
        linkedin_key="linkedin.com/in/other",
    )

    result = await upsert_candidate(
        session,
        workspace_id,
        CandidateInput(email="JANE@x.com", linkedin_url="https://www.linkedin.com/in/other/"),
    )
    await session.commit()

    assert result.candidate_id == by_email.id
    # The LinkedIn key belongs to the other row, so it is not copied over
    refreshed = await candidates_repo.get_by_id(session, by_email.id)
    assert refreshed.linkedin_url is None
    assert (await candidates_repo.get_by_id(session, by_linkedin.id)).linkedin_key == "linkedin.com/in/other"
    assert await candidates_repo.count_in_workspace(session, workspace_id) == 2


@pytest.mark.asyncio
async def test_linkedin_variants_match_one_candidate(session, workspace_id):
    await upsert_candidate(
        session, workspace_id, CandidateInput(linkedin_url="https://www.linkedin.com/in/JaneDoe/")
    )
    result = await upsert_candidate(
        session, workspace_id, CandidateInput(linkedin_url="linkedin.com/in/janedoe?trk=x", phone="+1")
    )
    await session.commit()

    assert result.action == "update"
    assert await candidates_repo.count_in_workspace(session, workspace_id) == 1


@pytest.mark.asyncio
async def test_name_and_company_match_is_case_insensitive(session, workspace_id):
    existing = await make_candidate(
        session, workspace_id, first_name="Jane", last_name="Doe", current_company="Acme"
    )

    match = await matching.find_existing_candidate(
        session,
        workspace_id,
        CandidateIdentity(first_name=" jane", last_name="DOE", current_company="acme "),
    )

    assert match is not None
    assert match[0].id == existing.id
    assert match[1] == "name_company"


@pytest.mark.asyncio
async def test_name_without_company_does_not_match(session, workspace_id):
    await make_candidate(session, workspace_id, first_name="Jane", last_name="Doe", current_company="Acme")
    match = await matching.find_existing_candidate(
        session, workspace_id, CandidateIdentity(first_name="Jane", last_name="Doe")
    )
    assert match is None


@pytest.mark.asyncio
async def test_matching_is_scoped_to_the_workspace(session, workspace_id):
    await make_candidate(session, uuid.uuid4(), email="jane@x.com")
    result = await upsert_candidate(session, workspace_id, CandidateInput(email="jane@x.com"))
    assert result.action == "insert"


@pytest.mark.asyncio
async def test_keep_existing_skips(session, workspace_id):
    existing = await make_candidate(session, workspace_id, email="jane@x.com")

    result = await upsert_candidate(
        session,
        workspace_id,
        CandidateInput(email="jane@x.com", phone="+1"),
        MergeStrategy.KEEP_EXISTING,
    )

    assert result.action == "skip"
    assert result.reason == "duplicate_email"
    assert (await candidates_repo.get_by_id(session, existing.id)).phone is None


@pytest.mark.asyncio
async def test_merge_keeps_higher_score_and_completeness(session, workspace_id):
    existing = await make_candidate(
        session, workspace_id, email="jane@x.com", ai_score=40, data_completeness=10
    )

    await upsert_candidate(
        session, workspace_id, CandidateInput(email="jane@x.com", ai_score=90, data_completeness=5)
    )
    await session.commit()

    refreshed = await candidates_repo.get_by_id(session, existing.id)
    assert refreshed.ai_score == 90
    assert refreshed.data_completeness >= 10


@pytest.mark.asyncio
async def test_two_csv_rows_with_same_email(session, workspace_id):
    """Rows from two files collapse into one candidate crediting both files."""
    records = [
        CandidateInput(first_name="Jane", email="jane@x.com", phone="+15550100", source="csv:march.csv"),
        CandidateInput(first_name="Jane", email="jane@x.com", phone="+15550199", source="csv:april.csv"),
    ]

    batch = await deduplicate_batch(session, workspace_id, records, MergeStrategy.MERGE_BEST)
    await session.commit()

    assert batch.stats.inserted == 1
    assert batch.stats.updated == 1
    assert await candidates_repo.count_in_workspace(session, workspace_id) == 1
    candidate = await candidates_repo.get_by_email(session, workspace_id, "jane@x.com")
    assert candidate.phone in ("+15550100", "+15550199")
    assert candidate.enrichment_source.split(",") == ["csv:march.csv", "csv:april.csv"]


@pytest.mark.asyncio
async def test_batch_survives_a_failing_record(session, workspace_id, monkeypatch):
    real_upsert = dedup.upsert_candidate

    async def flaky_upsert(session, workspace_id, data, strategy):
        if data.first_name == "Broken":
            raise ValueError("bad row")
        return await real_upsert(session, workspace_id, data, strategy)

    monkeypatch.setattr(dedup, "upsert_candidate", flaky_upsert)

    batch = await deduplicate_batch(
        session,
        workspace_id,
        [
            CandidateInput(first_name="Ann", email="ann@x.com"),
            CandidateInput(first_name="Broken", email="broken@x.com"),
            CandidateInput(first_name="Bo", email="bo@x.com"),
        ],
    )
    await session.commit()

    assert batch.stats.inserted == 2
    assert batch.stats.errors == 1
    assert batch.results[1].error == "bad row"
    assert await candidates_repo.count_in_workspace(session, workspace_id) == 2


@pytest.mark.asyncio
async def test_insert_race_falls_through_to_merge(session, workspace_id, monkeypatch):
    """Another writer inserts between our match and our insert."""
    existing = await make_candidate(session, workspace_id, email="jane@x.com")
    real_find = matching.find_existing_candidate
    calls = {"n": 0}

    async def stale_then_real(session, workspace_id, identity):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await real_find(session, workspace_id, identity)

    monkeypatch.setattr(matching, "find_existing_candidate", stale_then_real)

    result = await upsert_candidate(
        session, workspace_id, CandidateInput(email="jane@x.com", phone="+1")
    )
    await session.commit()

    assert result.action == "update"
    assert result.candidate_id == existing.id
    assert await candidates_repo.count_in_workspace(session, workspace_id) == 1


@pytest.mark.asyncio
async def test_conflict_without_a_match_raises(session, workspace_id, monkeypatch):
    await make_candidate(session, workspace_id, email="jane@x.com")

    async def never_matches(session, workspace_id, identity):
        return None

    monkeypatch.setattr(matching, "find_existing_candidate", never_matches)

    with pytest.raises(CandidateConflictError):
        await upsert_candidate(session, workspace_id, CandidateInput(email="jane@x.com"))
