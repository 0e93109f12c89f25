"""Record matcher: find the existing candidate an incoming record refers to.

Tiers are tried strictly in order and the first hit wins:
  1. email (lower-cased, trimmed)
  2. normalised LinkedIn URL
  3. first name + last name + current company, case-insensitive
"""
import logging
import re
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Candidate
from schemas.candidate import CandidateIdentity, MatchKey

logger = logging.getLogger(__name__)

_PROTOCOL_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def normalize_linkedin_url(url: Optional[str]) -> Optional[str]:
    """Reduce a LinkedIn profile URL to a comparable key.

    ``https://www.LinkedIn.com/in/JaneDoe/?trk=x`` becomes ``linkedin.com/in/janedoe``.
    """
    if url is None:
        return None
    key = url.strip().lower()
    key = _PROTOCOL_RE.sub("", key)
    if key.startswith("www."):
        key = key[4:]
    key = key.split("#", 1)[0].split("?", 1)[0]
    key = key.rstrip("/")
    return key or None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


async def find_existing_candidate(
    session: AsyncSession,
    workspace_id: UUID,
    identity: CandidateIdentity,
) -> Optional[tuple[Candidate, MatchKey]]:
    """Return (candidate, match key) for the first tier that hits, else None."""
    email = normalize_email(identity.email)
    if email:
        result = await session.execute(
            select(Candidate)
            .where(Candidate.workspace_id == workspace_id)
            .where(Candidate.email == email)
        )
        found = result.scalars().first()
        if found is not None:
            return found, "email"

    linkedin_key = normalize_linkedin_url(identity.linkedin_url)
    if linkedin_key:
        result = await session.execute(
            select(Candidate)
            .where(Candidate.workspace_id == workspace_id)
            .where(Candidate.linkedin_key == linkedin_key)
        )
        found = result.scalars().first()
        if found is not None:
            return found, "linkedin"

    first = _clean(identity.first_name)
    last = _clean(identity.last_name)
    company = _clean(identity.current_company)
    if first and last and company:
        result = await session.execute(
            select(Candidate)
            .where(Candidate.workspace_id == workspace_id)
            .where(func.lower(func.trim(Candidate.first_name)) == first)
            .where(func.lower(func.trim(Candidate.last_name)) == last)
            .where(func.lower(func.trim(Candidate.current_company)) == company)
            .order_by(Candidate.created_at)
        )
        found = result.scalars().first()
        if found is not None:
            return found, "name_company"

    return None
