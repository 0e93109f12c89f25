"""Folds a completed task's typed result back into its candidate."""
from datetime import datetime
from typing import Callable, Dict

from db.models import Candidate
from queue_config import MAX_SKILLS
from schemas.enrichment import (
    CompanyEnriched,
    EmailFound,
    EmailVerified,
    PhoneFound,
    PhoneVerified,
    ProfileScraped,
    ScoreAssigned,
)
from services.merge import accumulate_sources, merge_maps, union_skills


def _email_found(result: EmailFound, candidate: Candidate, now: datetime) -> None:
    candidate.email = result.email.lower().strip()


def _email_verified(result: EmailVerified, candidate: Candidate, now: datetime) -> None:
    candidate.email_verified = result.verified
    candidate.email_deliverability = result.deliverability
    candidate.verified_at = now


def _phone_found(result: PhoneFound, candidate: Candidate, now: datetime) -> None:
    candidate.phone = result.phone


def _phone_verified(result: PhoneVerified, candidate: Candidate, now: datetime) -> None:
    candidate.phone_verified = result.verified
    candidate.phone_type = result.phone_type
    candidate.verified_at = now


def _profile_scraped(result: ProfileScraped, candidate: Candidate, now: datetime) -> None:
    # Empty scraped fields never blank out what we already have
    profile = result.profile
    if profile.profile_image_url:
        candidate.profile_image_url = profile.profile_image_url
    if profile.headline:
        candidate.headline = profile.headline
    if profile.about:
        candidate.about = profile.about
    if profile.experience:
        candidate.experience = list(profile.experience)
    if profile.education:
        candidate.education = list(profile.education)
    if profile.certifications:
        candidate.certifications = list(profile.certifications)
    candidate.skills = union_skills(candidate.skills, profile.skills)[:MAX_SKILLS]
    candidate.enrichment_source = accumulate_sources(
        candidate.enrichment_source, ["linkedin_scraper"]
    )
    candidate.linkedin_scraped_at = now


def _company_enriched(result: CompanyEnriched, candidate: Candidate, now: datetime) -> None:
    candidate.company_info = merge_maps(candidate.company_info, result.info)


def _score_assigned(result: ScoreAssigned, candidate: Candidate, now: datetime) -> None:
    candidate.ai_score = result.score
    candidate.ai_summary = "; ".join(result.reasons) if result.reasons else None


_APPLIERS: Dict[str, Callable] = {
    "find_email": _email_found,
    "verify_email": _email_verified,
    "find_phone": _phone_found,
    "verify_phone": _phone_verified,
    "linkedin_profile": _profile_scraped,
    "company_info": _company_enriched,
    "ai_score": _score_assigned,
}


def apply_enrichment(result, candidate: Candidate, now: datetime) -> None:
    """Write ``result`` onto ``candidate`` and stamp ``enriched_at``."""
    _APPLIERS[result.type](result, candidate, now)
    candidate.enriched_at = now
