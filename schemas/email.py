"""Outreach schemas: queue health and scheduler reports."""
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel


class EmailQueueHealth(BaseModel):
    counts_by_status: Dict[str, int]
    pending: int
    stale_pending: int  # pending for more than five minutes
    oldest_pending_at: Optional[datetime] = None
    last_sent_at: Optional[datetime] = None


class FollowUpRunSummary(BaseModel):
    campaigns_checked: int = 0
    follow_ups_scheduled: int = 0


class CampaignLaunchResult(BaseModel):
    queued: int = 0
    skipped_no_email: int = 0
    skipped_suppressed: int = 0
    skipped_existing: int = 0
