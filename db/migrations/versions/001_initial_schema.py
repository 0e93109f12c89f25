"""Initial schema: sourcing and outreach tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _in(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IN (" + ",".join(f"'{v}'" for v in values) + ")"


def upgrade() -> None:
    # ─── Sourcing ────────────────────────────────────────────────────────────

    op.create_table(
        "candidates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("linkedin_url", sa.Text, nullable=True),
        sa.Column("linkedin_key", sa.Text, nullable=True),
        sa.Column("github_url", sa.Text, nullable=True),
        sa.Column("portfolio_url", sa.Text, nullable=True),
        sa.Column("current_title", sa.Text, nullable=True),
        sa.Column("current_company", sa.Text, nullable=True),
        sa.Column("location", sa.Text, nullable=True),
        sa.Column("skills", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("experience_years", sa.Integer, nullable=True),
        sa.Column("ai_score", sa.Integer, nullable=True),
        sa.Column("ai_summary", sa.Text, nullable=True),
        sa.Column("data_completeness", sa.Integer, nullable=False, server_default="0"),
        sa.Column("email_verified", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("email_deliverability", sa.Text, nullable=True),
        sa.Column("phone_verified", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("phone_type", sa.Text, nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("profile_image_url", sa.Text, nullable=True),
        sa.Column("headline", sa.Text, nullable=True),
        sa.Column("about", sa.Text, nullable=True),
        sa.Column("experience", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("education", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("certifications", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("linkedin_scraped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("company_info", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("social_profiles", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("source", sa.Text, nullable=True),
        sa.Column("enrichment_source", sa.Text, nullable=True),
        sa.Column("enrichment_status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("enriched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            _in("enrichment_status", ("pending", "partial", "complete", "failed")),
            name="ck_candidate_enrichment_status",
        ),
        sa.CheckConstraint("data_completeness BETWEEN 0 AND 100", name="ck_candidate_data_completeness"),
        sa.UniqueConstraint("workspace_id", "email", name="uq_candidate_workspace_email"),
        sa.UniqueConstraint("workspace_id", "linkedin_key", name="uq_candidate_workspace_linkedin"),
    )
    op.create_index(
        "ix_candidate_workspace_name", "candidates", ["workspace_id", "last_name", "first_name"]
    )

    op.create_table(
        "enrichment_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("candidate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("priority", sa.Integer, nullable=False),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer, nullable=False, server_default="3"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("result", sa.JSON, nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            _in("type", (
                "find_email", "verify_email", "find_phone", "verify_phone",
                "linkedin_profile", "company_info", "ai_score",
            )),
            name="ck_enrichment_task_type",
        ),
        sa.CheckConstraint(
            _in("status", ("pending", "in_progress", "completed", "failed")),
            name="ck_enrichment_task_status",
        ),
        sa.ForeignKeyConstraint(
            ["candidate_id"], ["candidates.id"], name="fk_enrichment_task_candidate", ondelete="CASCADE"
        ),
    )
    op.create_index(
        "ix_enrichment_task_claim",
        "enrichment_tasks",
        ["workspace_id", "status", "priority", "next_attempt_at"],
    )
    op.create_index("ix_enrichment_task_candidate", "enrichment_tasks", ["candidate_id", "status"])

    op.create_table(
        "usage_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("month", sa.Text, nullable=False),
        sa.Column("hunter_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("lusha_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("proxycurl_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("coresignal_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("twilio_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("llm_calls", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_cost_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("workspace_id", "month", name="uq_usage_workspace_month"),
    )

    # ─── Outreach ────────────────────────────────────────────────────────────

    op.create_table(
        "email_accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.Text, nullable=False, server_default="esp"),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("from_address", sa.Text, nullable=False),
        sa.Column("from_name", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            _in("type", ("esp", "gmail_oauth", "microsoft_oauth", "smtp")),
            name="ck_email_account_type",
        ),
        sa.CheckConstraint(
            _in("status", ("pending", "active", "error", "disconnected")),
            name="ck_email_account_status",
        ),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email_account_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("subject", sa.Text, nullable=True),
        sa.Column("body", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="draft"),
        sa.Column("total_recipients", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_sent", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_opened", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_clicked", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_replied", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_bounced", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            _in("status", ("draft", "active", "paused", "completed")), name="ck_campaign_status"
        ),
        sa.ForeignKeyConstraint(
            ["email_account_id"], ["email_accounts.id"], name="fk_campaign_email_account"
        ),
    )

    op.create_table(
        "campaign_follow_ups",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("campaign_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("step_number", sa.Integer, nullable=False),
        sa.Column("delay_days", sa.Integer, nullable=False),
        sa.Column("subject", sa.Text, nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(_in("status", ("active", "paused")), name="ck_follow_up_status"),
        sa.CheckConstraint("step_number >= 1", name="ck_follow_up_step_number"),
        sa.CheckConstraint("delay_days >= 0", name="ck_follow_up_delay_days"),
        sa.UniqueConstraint("campaign_id", "step_number", name="uq_follow_up_campaign_step"),
        sa.ForeignKeyConstraint(
            ["campaign_id"], ["campaigns.id"], name="fk_follow_up_campaign", ondelete="CASCADE"
        ),
    )

    op.create_table(
        "campaign_sends",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("campaign_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("candidate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("follow_up_step", sa.Integer, nullable=False, server_default="0"),
        sa.Column("provider_message_id", sa.Text, nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clicked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("replied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bounced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            _in("status", (
                "pending", "queued", "sent", "delivered", "opened", "clicked",
                "replied", "bounced", "failed", "cancelled",
            )),
            name="ck_campaign_send_status",
        ),
        sa.CheckConstraint("follow_up_step >= 0", name="ck_campaign_send_step"),
        sa.ForeignKeyConstraint(
            ["campaign_id"], ["campaigns.id"], name="fk_campaign_send_campaign", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["candidate_id"], ["candidates.id"], name="fk_campaign_send_candidate", ondelete="CASCADE"
        ),
    )
    # At most one live send per (campaign, candidate, step); cancelled rows don't count
    op.create_index(
        "uq_campaign_send_step",
        "campaign_sends",
        ["campaign_id", "candidate_id", "follow_up_step"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "email_queue",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email_account_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("campaign_send_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("from_address", sa.Text, nullable=False),
        sa.Column("from_name", sa.Text, nullable=True),
        sa.Column("to_address", sa.Text, nullable=False),
        sa.Column("reply_to", sa.Text, nullable=True),
        sa.Column("subject", sa.Text, nullable=False),
        sa.Column("html_body", sa.Text, nullable=False),
        sa.Column("text_body", sa.Text, nullable=True),
        sa.Column("headers", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("priority", sa.Integer, nullable=False, server_default="5"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer, nullable=False, server_default="3"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provider_message_id", sa.Text, nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            _in("status", ("pending", "in_progress", "sent", "failed", "cancelled")),
            name="ck_email_queue_status",
        ),
    )
    op.create_index(
        "ix_email_queue_claim",
        "email_queue",
        ["workspace_id", "status", "priority", "next_attempt_at"],
    )

    op.create_table(
        "email_suppressions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.Text, nullable=False),
        sa.Column("reason", sa.Text, nullable=False, server_default="manual"),
        sa.Column("source", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            _in("reason", ("unsubscribe", "bounce", "complaint", "manual")),
            name="ck_suppression_reason",
        ),
        sa.UniqueConstraint("workspace_id", "email", name="uq_suppression_workspace_email"),
    )


def downgrade() -> None:
    op.drop_index("ix_email_queue_claim", table_name="email_queue")
    op.drop_index("uq_campaign_send_step", table_name="campaign_sends")
    op.drop_index("ix_enrichment_task_candidate", table_name="enrichment_tasks")
    op.drop_index("ix_enrichment_task_claim", table_name="enrichment_tasks")
    op.drop_index("ix_candidate_workspace_name", table_name="candidates")
    # Drop in reverse dependency order
    op.drop_table("email_suppressions")
    op.drop_table("email_queue")
    op.drop_table("campaign_sends")
    op.drop_table("campaign_follow_ups")
    op.drop_table("campaigns")
    op.drop_table("email_accounts")
    op.drop_table("usage_records")
    op.drop_table("enrichment_tasks")
    op.drop_table("candidates")
