"""SQLAlchemy 2.0 ORM models for the candidate enrichment and outreach engine.

Covers 9 tables:
  - sourcing: candidates, enrichment_tasks, usage_records
  - outreach: email_accounts, campaigns, campaign_follow_ups, campaign_sends,
              email_queue, email_suppressions

Every row is scoped to a workspace. The workspace table itself lives outside
this service, so workspace_id is a loose UUID reference.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    UUID,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from db.types import UTCDateTime, utcnow


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


def _in_check(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


# ---------------------------------------------------------------------------
# Status / enum values used in CHECK constraints
# ---------------------------------------------------------------------------

ENRICHMENT_STATUSES = ("pending", "partial", "complete", "failed")

TASK_TYPES = (
    "find_email",
    "verify_email",
    "find_phone",
    "verify_phone",
    "linkedin_profile",
    "company_info",
    "ai_score",
)
TASK_STATUSES = ("pending", "in_progress", "completed", "failed")

EMAIL_QUEUE_STATUSES = ("pending", "in_progress", "sent", "failed", "cancelled")

CAMPAIGN_STATUSES = ("draft", "active", "paused", "completed")
FOLLOW_UP_STATUSES = ("active", "paused")
SEND_STATUSES = (
    "pending",
    "queued",
    "sent",
    "delivered",
    "opened",
    "clicked",
    "replied",
    "bounced",
    "failed",
    "cancelled",
)

ACCOUNT_TYPES = ("esp", "gmail_oauth", "microsoft_oauth", "smtp")
ACCOUNT_STATUSES = ("pending", "active", "error", "disconnected")

SUPPRESSION_REASONS = ("unsubscribe", "bounce", "complaint", "manual")


# ===========================================================================
# Sourcing
# ===========================================================================


class Candidate(Base):
    """candidates: one person known to a workspace, deduplicated on ingest."""

    __tablename__ = "candidates"
    __table_args__ = (
        CheckConstraint(
            _in_check("enrichment_status", ENRICHMENT_STATUSES),
            name="ck_candidate_enrichment_status",
        ),
        CheckConstraint(
            "data_completeness BETWEEN 0 AND 100",
            name="ck_candidate_data_completeness",
        ),
        UniqueConstraint("workspace_id", "email", name="uq_candidate_workspace_email"),
        UniqueConstraint(
            "workspace_id", "linkedin_key", name="uq_candidate_workspace_linkedin"
        ),
        Index("ix_candidate_workspace_name", "workspace_id", "last_name", "first_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Loose UUID reference: workspaces live in the account service
    workspace_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    job_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Normalised form of linkedin_url; the match key for tier 2
    linkedin_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    github_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    portfolio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    skills: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    experience_years: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ai_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ai_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    data_completeness: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_deliverability: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    phone_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    profile_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    headline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    about: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    experience: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    education: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    certifications: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    linkedin_scraped_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    company_info: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    social_profiles: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    enrichment_source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    enrichment_status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    enriched_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class EnrichmentTask(Base):
    """enrichment_tasks: one unit of work that fills one gap on one candidate."""

    __tablename__ = "enrichment_tasks"
    __table_args__ = (
        CheckConstraint(_in_check("type", TASK_TYPES), name="ck_enrichment_task_type"),
        CheckConstraint(_in_check("status", TASK_STATUSES), name="ck_enrichment_task_status"),
        Index("ix_enrichment_task_claim", "workspace_id", "status", "priority", "next_attempt_at"),
        Index("ix_enrichment_task_candidate", "candidate_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    task_type: Mapped[str] = mapped_column("type", Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    next_attempt_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )


class UsageRecord(Base):
    """usage_records: monthly per-provider call counters for a workspace."""

    __tablename__ = "usage_records"
    __table_args__ = (
        UniqueConstraint("workspace_id", "month", name="uq_usage_workspace_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    month: Mapped[str] = mapped_column(Text, nullable=False)  # YYYY-MM
    hunter_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lusha_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    proxycurl_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    coresignal_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    twilio_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    llm_calls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cost_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )


# ===========================================================================
# Outreach
# ===========================================================================


class EmailAccount(Base):
    """email_accounts: a connected sender identity."""

    __tablename__ = "email_accounts"
    __table_args__ = (
        CheckConstraint(_in_check("type", ACCOUNT_TYPES), name="ck_email_account_type"),
        CheckConstraint(_in_check("status", ACCOUNT_STATUSES), name="ck_email_account_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    account_type: Mapped[str] = mapped_column("type", Text, nullable=False, default="esp")
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    from_address: Mapped[str] = mapped_column(Text, nullable=False)
    from_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    last_used_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )


class Campaign(Base):
    """campaigns: an outreach campaign with its initial message and counters."""

    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint(_in_check("status", CAMPAIGN_STATUSES), name="ck_campaign_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    email_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("email_accounts.id"), nullable=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")
    total_recipients: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_opened: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_clicked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_replied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_bounced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )


class CampaignFollowUp(Base):
    """campaign_follow_ups: step N of a campaign's follow-up sequence."""

    __tablename__ = "campaign_follow_ups"
    __table_args__ = (
        CheckConstraint(_in_check("status", FOLLOW_UP_STATUSES), name="ck_follow_up_status"),
        CheckConstraint("step_number >= 1", name="ck_follow_up_step_number"),
        CheckConstraint("delay_days >= 0", name="ck_follow_up_delay_days"),
        UniqueConstraint("campaign_id", "step_number", name="uq_follow_up_campaign_step"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    delay_days: Mapped[int] = mapped_column(Integer, nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class CampaignSend(Base):
    """campaign_sends: one message (initial or follow-up) to one candidate."""

    __tablename__ = "campaign_sends"
    __table_args__ = (
        CheckConstraint(_in_check("status", SEND_STATUSES), name="ck_campaign_send_status"),
        CheckConstraint("follow_up_step >= 0", name="ck_campaign_send_step"),
        # At most one live send per (campaign, candidate, step)
        Index(
            "uq_campaign_send_step",
            "campaign_id",
            "candidate_id",
            "follow_up_step",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
    )
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("candidates.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    follow_up_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    provider_message_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    opened_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    clicked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    replied_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    bounced_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )


class EmailQueueItem(Base):
    """email_queue: a rendered message waiting for the delivery dispatcher."""

    __tablename__ = "email_queue"
    __table_args__ = (
        CheckConstraint(_in_check("status", EMAIL_QUEUE_STATUSES), name="ck_email_queue_status"),
        Index("ix_email_queue_claim", "workspace_id", "status", "priority", "next_attempt_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    email_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    # Loose UUID reference: ad-hoc sends have no campaign
    campaign_send_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    from_address: Mapped[str] = mapped_column(Text, nullable=False)
    from_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    to_address: Mapped[str] = mapped_column(Text, nullable=False)
    reply_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    html_body: Mapped[str] = mapped_column(Text, nullable=False)
    text_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    headers: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    next_attempt_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    scheduled_for: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    provider_message_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )


class EmailSuppression(Base):
    """email_suppressions: per-workspace do-not-contact registry."""

    __tablename__ = "email_suppressions"
    __table_args__ = (
        CheckConstraint(_in_check("reason", SUPPRESSION_REASONS), name="ck_suppression_reason"),
        UniqueConstraint("workspace_id", "email", name="uq_suppression_workspace_email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="manual")
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


__all__ = [
    "Base",
    # sourcing
    "Candidate",
    "EnrichmentTask",
    "UsageRecord",
    # outreach
    "EmailAccount",
    "Campaign",
    "CampaignFollowUp",
    "CampaignSend",
    "EmailQueueItem",
    "EmailSuppression",
]
