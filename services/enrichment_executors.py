"""Per-type enrichment executors.

Each executor takes the candidate, calls exactly one collaborator and returns
the typed result variant for its task type. Executors only exist for the
collaborators that are configured; the dispatcher auto-fails the rest.
"""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Candidate
from db.repositories import candidates as candidates_repo
from queue_config import DEFAULT_SCORING_CRITERIA
from schemas.enrichment import (
    CompanyEnriched,
    EmailFound,
    EmailVerified,
    PhoneFound,
    PhoneVerified,
    ProfileScraped,
    ScoreAssigned,
)
from tools.contracts import (
    CandidateScorer,
    CompanyEnricher,
    ContactFinder,
    EmailVerifier,
    PhoneFinder,
    PhoneVerifier,
    ProfileScraper,
)
from tools.errors import PermanentError

logger = logging.getLogger(__name__)

_DELIVERABLE = ("valid", "deliverable")
_UNVERIFIED_LINES = ("invalid", "unknown")


class MissingInputError(PermanentError):
    """The candidate lacks the fields this task needs; no provider was called."""


@dataclass
class EnrichmentProviders:
    """Whichever collaborators are configured for this run."""

    contact_finder: Optional[ContactFinder] = None
    email_verifier: Optional[EmailVerifier] = None
    phone_finder: Optional[PhoneFinder] = None
    phone_verifier: Optional[PhoneVerifier] = None
    profile_scraper: Optional[ProfileScraper] = None
    company_enricher: Optional[CompanyEnricher] = None
    scorer: Optional[CandidateScorer] = None
    scoring_criteria: str = DEFAULT_SCORING_CRITERIA


Executor = Callable[[AsyncSession, Candidate], Awaitable[object]]


def _require(candidate: Candidate, *fields: str) -> None:
    missing = [f for f in fields if not (getattr(candidate, f) or "").strip()]
    if missing:
        raise MissingInputError(f"missing required field(s): {', '.join(missing)}")


def candidate_summary(candidate: Candidate) -> str:
    """Plain-text profile handed to the scorer."""
    lines = [f"Name: {candidate.full_name or 'unknown'}"]
    if candidate.current_title:
        lines.append(f"Title: {candidate.current_title}")
    if candidate.current_company:
        lines.append(f"Company: {candidate.current_company}")
    if candidate.location:
        lines.append(f"Location: {candidate.location}")
    if candidate.experience_years is not None:
        lines.append(f"Years of experience: {candidate.experience_years}")
    if candidate.skills:
        lines.append(f"Skills: {', '.join(candidate.skills)}")
    if candidate.headline:
        lines.append(f"Headline: {candidate.headline}")
    if candidate.about:
        lines.append(f"About: {candidate.about}")
    return "\n".join(lines)


def build_executors(providers: EnrichmentProviders) -> Dict[str, Executor]:
    executors: Dict[str, Executor] = {}

    if providers.contact_finder is not None:
        finder = providers.contact_finder

        async def find_email(session: AsyncSession, candidate: Candidate) -> EmailFound:
            _require(candidate, "first_name", "current_company")
            email = await finder.find_email(
                candidate.first_name, candidate.last_name or "", candidate.current_company
            )
            if not email:
                raise PermanentError("no email found")
            owner = await candidates_repo.get_by_email(session, candidate.workspace_id, email)
            if owner is not None and owner.id != candidate.id:
                raise PermanentError(f"email {email.lower()} already belongs to candidate {owner.id}")
            return EmailFound(email=email)

        executors["find_email"] = find_email

    if providers.email_verifier is not None:
        verifier = providers.email_verifier

        async def verify_email(session: AsyncSession, candidate: Candidate) -> EmailVerified:
            _require(candidate, "email")
            verdict = (await verifier.verify_email(candidate.email)).lower()
            return EmailVerified(deliverability=verdict, verified=verdict in _DELIVERABLE)

        executors["verify_email"] = verify_email

    if providers.phone_finder is not None:
        phone_finder = providers.phone_finder

        async def find_phone(session: AsyncSession, candidate: Candidate) -> PhoneFound:
            _require(candidate, "first_name", "current_company")
            phone = await phone_finder.find_phone(
                candidate.first_name, candidate.last_name or "", candidate.current_company
            )
            if not phone:
                raise PermanentError("no phone found")
            return PhoneFound(phone=phone)

        executors["find_phone"] = find_phone

    if providers.phone_verifier is not None:
        phone_verifier = providers.phone_verifier

        async def verify_phone(session: AsyncSession, candidate: Candidate) -> PhoneVerified:
            _require(candidate, "phone")
            line_type = (await phone_verifier.verify_phone(candidate.phone)).lower()
            return PhoneVerified(phone_type=line_type, verified=line_type not in _UNVERIFIED_LINES)

        executors["verify_phone"] = verify_phone

    if providers.profile_scraper is not None:
        scraper = providers.profile_scraper

        async def linkedin_profile(session: AsyncSession, candidate: Candidate) -> ProfileScraped:
            _require(candidate, "linkedin_url")
            profile = await scraper.scrape_profile(candidate.linkedin_url)
            if profile is None:
                raise PermanentError("no profile data found")
            return ProfileScraped(profile=profile)

        executors["linkedin_profile"] = linkedin_profile

    if providers.company_enricher is not None:
        enricher = providers.company_enricher

        async def company_info(session: AsyncSession, candidate: Candidate) -> CompanyEnriched:
            _require(candidate, "current_company")
            info = await enricher.enrich_company(candidate.current_company)
            if not info:
                raise PermanentError("no company data found")
            return CompanyEnriched(info=info)

        executors["company_info"] = company_info

    if providers.scorer is not None:
        scorer = providers.scorer
        criteria = providers.scoring_criteria

        async def ai_score(session: AsyncSession, candidate: Candidate) -> ScoreAssigned:
            scored = await scorer.score(candidate_summary(candidate), criteria)
            return ScoreAssigned(score=scored.score, reasons=scored.reasons)

        executors["ai_score"] = ai_score

    return executors
