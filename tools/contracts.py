"""Typed contracts for the external collaborators the engine calls.

Implementations raise ``tools.errors.ProviderError`` subclasses so the
dispatchers can tell permanent, rate-limited and transient failures apart.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from schemas.enrichment import ProfileData, ScoreResult


class ContactFinder(Protocol):
    async def find_email(
        self, first_name: str, last_name: str, company_or_domain: str
    ) -> Optional[str]: ...


class PhoneFinder(Protocol):
    async def find_phone(self, first_name: str, last_name: str, company: str) -> Optional[str]: ...


class EmailVerifier(Protocol):
    async def verify_email(self, email: str) -> str:
        """Return a deliverability verdict: valid, invalid, accept_all or unknown."""
        ...


class PhoneVerifier(Protocol):
    async def verify_phone(self, phone: str) -> str:
        """Return the line type: mobile, landline, voip, invalid or unknown."""
        ...


class ProfileScraper(Protocol):
    async def scrape_profile(self, url: str) -> Optional[ProfileData]: ...


class CompanyEnricher(Protocol):
    async def enrich_company(self, company: str) -> Optional[Dict[str, Any]]: ...


class CandidateScorer(Protocol):
    async def score(self, candidate_summary: str, job_criteria: str) -> ScoreResult: ...


class SendRequest(BaseModel):
    from_address: str
    from_name: Optional[str] = None
    to: str
    subject: str
    html: str
    text: Optional[str] = None
    reply_to: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)


class SendReceipt(BaseModel):
    provider_message_id: str
    accepted_at: datetime


class EmailTransport(Protocol):
    async def send(self, request: SendRequest) -> SendReceipt: ...
