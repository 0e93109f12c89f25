"""Unit tests for the merge engine and identity normalisation."""
import uuid

import pytest

from schemas.candidate import CandidateInput, MergeStrategy
from services.matching import normalize_email, normalize_linkedin_url
from services.merge import (
    accumulate_sources,
    merge_candidate,
    merge_maps,
    union_skills,
)


class TestNormalisation:
    def test_email_is_trimmed_and_lowercased(self):
        assert normalize_email("  Jane.Doe@Acme.COM ") == "jane.doe@acme.com"

    def test_blank_email_is_none(self):
        assert normalize_email("   ") is None

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.linkedin.com/in/janedoe/",
            "http://linkedin.com/in/JaneDoe",
            "linkedin.com/in/janedoe?trk=public_profile",
            "HTTPS://WWW.LINKEDIN.COM/in/janedoe#about",
        ],
    )
    def test_linkedin_variants_share_one_key(self, url):
        assert normalize_linkedin_url(url) == "linkedin.com/in/janedoe"


class TestMergeBest:
    def test_existing_scalars_win_and_gaps_are_filled(self):
        existing = CandidateInput(first_name="Jane", current_title="Engineer")
        incoming = CandidateInput(first_name="Janet", current_title="Staff Engineer", phone="+1555")

        outcome = merge_candidate(existing, incoming, MergeStrategy.MERGE_BEST)

        assert outcome.merged.first_name == "Jane"
        assert outcome.merged.current_title == "Engineer"
        assert outcome.merged.phone == "+1555"
        assert outcome.changes["phone"] == "+1555"
        assert "first_name" not in outcome.changes

    def test_quality_fields_take_the_maximum(self):
        existing = CandidateInput(ai_score=70, data_completeness=40)
        incoming = CandidateInput(ai_score=55, data_completeness=60)

        merged = merge_candidate(existing, incoming).merged

        assert merged.ai_score == 70
        assert merged.data_completeness == 60

    def test_no_field_goes_from_filled_to_empty(self):
        existing = CandidateInput(
            email="a@b.test", phone="+1", skills=["Go"], company_info={"size": 10}
        )
        incoming = CandidateInput()

        merged = merge_candidate(existing, incoming).merged

        assert merged.email == "a@b.test"
        assert merged.phone == "+1"
        assert merged.skills == ["Go"]
        assert merged.company_info == {"size": 10}

    def test_job_id_only_set_when_missing(self):
        first_job, second_job = uuid.uuid4(), uuid.uuid4()
        merged = merge_candidate(
            CandidateInput(job_id=first_job), CandidateInput(job_id=second_job)
        ).merged
        assert merged.job_id == first_job

        filled = merge_candidate(CandidateInput(), CandidateInput(job_id=second_job)).merged
        assert filled.job_id == second_job


class TestPreferNew:
    def test_incoming_overwrites_but_email_is_only_filled(self):
        existing = CandidateInput(email="old@acme.test", current_title="Engineer")
        incoming = CandidateInput(email="new@acme.test", current_title="Manager")

        merged = merge_candidate(existing, incoming, MergeStrategy.PREFER_NEW).merged

        assert merged.current_title == "Manager"
        assert merged.email == "old@acme.test"

    def test_empty_incoming_values_do_not_erase(self):
        existing = CandidateInput(location="Berlin")
        merged = merge_candidate(
            existing, CandidateInput(location="  "), MergeStrategy.PREFER_NEW
        ).merged
        assert merged.location == "Berlin"


class TestKeepExisting:
    def test_reports_skip_without_changes(self):
        existing = CandidateInput(first_name="Jane")
        outcome = merge_candidate(
            existing, CandidateInput(phone="+1"), MergeStrategy.KEEP_EXISTING
        )
        assert outcome.skipped is True
        assert outcome.changes == {}
        assert outcome.merged.phone is None


class TestHelpers:
    def test_skills_union_is_case_insensitive_and_ordered(self):
        assert union_skills(["Python", "SQL"], ["sql", "Rust", " "]) == ["Python", "SQL", "Rust"]

    def test_map_merge_is_shallow_with_incoming_override(self):
        merged = merge_maps({"size": 10, "hq": "Berlin"}, {"size": 50, "industry": "SaaS"})
        assert merged == {"size": 50, "hq": "Berlin", "industry": "SaaS"}

    def test_sources_accumulate_without_duplicates(self):
        assert accumulate_sources("csv", ["linkedin", "csv"]) == "csv,linkedin"
        assert accumulate_sources(None, []) is None
