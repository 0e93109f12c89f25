"""Row factories and collaborator fakes shared by the test modules."""
from datetime import datetime, timezone
from typing import Optional

from db.models import Campaign, CampaignFollowUp, Candidate, EmailAccount
from schemas.enrichment import ProfileData, ScoreResult
from tools.contracts import SendReceipt, SendRequest

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


async def make_candidate(session, workspace_id, **fields) -> Candidate:
    candidate = Candidate(workspace_id=workspace_id, **fields)
    session.add(candidate)
    await session.commit()
    return candidate


async def make_account(session, workspace_id, **fields) -> EmailAccount:
    values = {
        "account_type": "esp",
        "from_address": "recruiting@acme.test",
        "from_name": "Ada Recruiter",
        "status": "active",
    }
    values.update(fields)
    account = EmailAccount(workspace_id=workspace_id, **values)
    session.add(account)
    await session.commit()
    return account


async def make_campaign(session, workspace_id, account, follow_ups=(), **fields) -> Campaign:
    values = {
        "name": "Backend hiring",
        "subject": "Hi {{firstName}}",
        "body": "<html><body><p>Hello {{firstName}} at {{currentCompany}}</p></body></html>",
        "status": "active",
    }
    values.update(fields)
    campaign = Campaign(
        workspace_id=workspace_id,
        email_account_id=account.id if account is not None else None,
        **values,
    )
    session.add(campaign)
    await session.flush()
    for step_number, delay_days in follow_ups:
        session.add(
            CampaignFollowUp(
                campaign_id=campaign.id,
                step_number=step_number,
                delay_days=delay_days,
                subject=f"Following up ({step_number}), {{{{firstName}}}}",
                body="<p>Just checking in, {{firstName}}. {{senderName}}</p>",
            )
        )
    await session.commit()
    return campaign


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeContactFinder:
    def __init__(self, email: Optional[str] = "found@acme.test", error: Exception = None):
        self.email = email
        self.error = error
        self.calls = []

    async def find_email(self, first_name, last_name, company_or_domain):
        self.calls.append((first_name, last_name, company_or_domain))
        if self.error is not None:
            raise self.error
        return self.email


class FakeEmailVerifier:
    def __init__(self, verdict: str = "valid"):
        self.verdict = verdict
        self.calls = []

    async def verify_email(self, email):
        self.calls.append(email)
        return self.verdict


class FakePhoneFinder:
    def __init__(self, phone: Optional[str] = "+15550100", error: Exception = None):
        self.phone = phone
        self.error = error
        self.calls = []

    async def find_phone(self, first_name, last_name, company):
        self.calls.append((first_name, last_name, company))
        if self.error is not None:
            raise self.error
        return self.phone


class FakeProfileScraper:
    def __init__(self, profile: Optional[ProfileData] = None):
        self.profile = profile or ProfileData(
            headline="Staff Engineer",
            about="Builds queues.",
            skills=["Python", "PostgreSQL"],
        )
        self.calls = []

    async def scrape_profile(self, url):
        self.calls.append(url)
        return self.profile


class FakeScorer:
    def __init__(self, score: int = 82, reasons=("strong Python", "relevant domain")):
        self.result = ScoreResult(score=score, reasons=list(reasons))
        self.calls = []

    async def score(self, candidate_summary, job_criteria):
        self.calls.append((candidate_summary, job_criteria))
        return self.result


class FakeTransport:
    def __init__(self, error: Exception = None):
        self.error = error
        self.sent: list[SendRequest] = []

    async def send(self, request: SendRequest) -> SendReceipt:
        self.sent.append(request)
        if self.error is not None:
            raise self.error
        return SendReceipt(provider_message_id=f"msg-{len(self.sent)}", accepted_at=NOW)


async def no_sleep(seconds: float) -> None:
    return None
