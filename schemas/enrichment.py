"""Enrichment schemas: planned tasks, provider payloads and typed task results.

Each task type has its own result variant carrying its own payload.
``EnrichmentResult`` is the discriminated union over them, so a stored
``enrichment_tasks.result`` can be validated back into the right variant.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

TaskType = Literal[
    "find_email",
    "verify_email",
    "find_phone",
    "verify_phone",
    "linkedin_profile",
    "company_info",
    "ai_score",
]

# Lower runs earlier. Contact discovery precedes verification, and scoring
# runs last because its quality is bounded by how much data exists.
TASK_PRIORITIES: Dict[str, int] = {
    "find_email": 1,
    "verify_email": 2,
    "find_phone": 3,
    "verify_phone": 4,
    "linkedin_profile": 5,
    "company_info": 6,
    "ai_score": 7,
}


class PlannedTask(BaseModel):
    task_type: TaskType
    priority: int


# ---------------------------------------------------------------------------
# Collaborator payloads
# ---------------------------------------------------------------------------


class ProfileData(BaseModel):
    profile_image_url: Optional[str] = None
    headline: Optional[str] = None
    about: Optional[str] = None
    experience: List[Dict[str, Any]] = Field(default_factory=list)
    education: List[Dict[str, Any]] = Field(default_factory=list)
    certifications: List[Dict[str, Any]] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)


class ScoreResult(BaseModel):
    score: int = Field(ge=0, le=100)
    reasons: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Task results
# ---------------------------------------------------------------------------


class EmailFound(BaseModel):
    type: Literal["find_email"] = "find_email"
    email: str


class EmailVerified(BaseModel):
    type: Literal["verify_email"] = "verify_email"
    deliverability: str
    verified: bool


class PhoneFound(BaseModel):
    type: Literal["find_phone"] = "find_phone"
    phone: str


class PhoneVerified(BaseModel):
    type: Literal["verify_phone"] = "verify_phone"
    phone_type: str
    verified: bool


class ProfileScraped(BaseModel):
    type: Literal["linkedin_profile"] = "linkedin_profile"
    profile: ProfileData


class CompanyEnriched(BaseModel):
    type: Literal["company_info"] = "company_info"
    info: Dict[str, Any]


class ScoreAssigned(BaseModel):
    type: Literal["ai_score"] = "ai_score"
    score: int = Field(ge=0, le=100)
    reasons: List[str] = Field(default_factory=list)


EnrichmentResult = Annotated[
    Union[
        EmailFound,
        EmailVerified,
        PhoneFound,
        PhoneVerified,
        ProfileScraped,
        CompanyEnriched,
        ScoreAssigned,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Batch reporting
# ---------------------------------------------------------------------------


class BatchResult(BaseModel):
    """Outcome of one dispatcher batch step."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: int = 0
    remaining: int = 0


class EnrichmentStatusSummary(BaseModel):
    total_candidates: int
    candidates_by_status: Dict[str, int]
    tasks_by_status: Dict[str, int]
    average_completeness: float
