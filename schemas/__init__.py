from .candidate import (
    MergeStrategy,
    CandidateInput,
    CandidateIdentity,
    DedupResult,
    DedupStats,
    BatchDedupResult,
)
from .email import (
    EmailQueueHealth,
    FollowUpRunSummary,
    CampaignLaunchResult,
)
from .enrichment import (
    PlannedTask,
    ProfileData,
    ScoreResult,
    EnrichmentResult,
    BatchResult,
    EnrichmentStatusSummary,
)

__all__ = [
    "MergeStrategy", "CandidateInput", "CandidateIdentity",
    "DedupResult", "DedupStats", "BatchDedupResult",
    "EmailQueueHealth", "FollowUpRunSummary", "CampaignLaunchResult",
    "PlannedTask", "ProfileData", "ScoreResult", "EnrichmentResult",
    "BatchResult", "EnrichmentStatusSummary",
]
