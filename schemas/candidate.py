"""Candidate ingestion schemas: incoming records, merge strategy, dedup results."""
from enum import Enum
from typing import Any, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MergeStrategy(str, Enum):
    KEEP_EXISTING = "keep_existing"
    PREFER_NEW = "prefer_new"
    MERGE_BEST = "merge_best"


class CandidateInput(BaseModel):
    """A candidate snapshot as supplied by a source, or read back from a row.

    Every field is optional: sources routinely supply only a handful.
    """

    model_config = ConfigDict(from_attributes=True)

    job_id: Optional[UUID] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    current_title: Optional[str] = None
    current_company: Optional[str] = None
    location: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience_years: Optional[int] = None
    ai_score: Optional[int] = Field(default=None, ge=0, le=100)
    ai_summary: Optional[str] = None
    data_completeness: Optional[int] = Field(default=None, ge=0, le=100)
    profile_image_url: Optional[str] = None
    headline: Optional[str] = None
    about: Optional[str] = None
    company_info: dict[str, Any] = Field(default_factory=dict)
    social_profiles: dict[str, Any] = Field(default_factory=dict)
    source: Optional[str] = None
    enrichment_source: Optional[str] = None


class CandidateIdentity(BaseModel):
    """The subset of fields the record matcher looks at."""

    email: Optional[str] = None
    linkedin_url: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    current_company: Optional[str] = None

    @classmethod
    def of(cls, data: CandidateInput) -> "CandidateIdentity":
        return cls(
            email=data.email,
            linkedin_url=data.linkedin_url,
            first_name=data.first_name,
            last_name=data.last_name,
            current_company=data.current_company,
        )


MatchKey = Literal["email", "linkedin", "name_company"]
DedupAction = Literal["insert", "update", "skip"]


class DedupResult(BaseModel):
    action: DedupAction
    candidate_id: Optional[UUID] = None
    reason: str
    error: Optional[str] = None


class DedupStats(BaseModel):
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0


class BatchDedupResult(BaseModel):
    results: List[DedupResult]
    stats: DedupStats
