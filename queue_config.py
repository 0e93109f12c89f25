"""Queue tuning knobs, overridable from the environment.

Usage:
    from queue_config import RATE_LIMIT_COOLDOWN
"""
import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


DEFAULT_MAX_ATTEMPTS = _int_env("QUEUE_MAX_ATTEMPTS", 3)

# Rate-limited tasks wait this long regardless of attempt count
RATE_LIMIT_COOLDOWN = timedelta(minutes=_int_env("QUEUE_RATE_LIMIT_COOLDOWN_MINUTES", 30))

# in_progress rows older than this are considered abandoned by a dead worker
STUCK_TASK_TIMEOUT = timedelta(minutes=_int_env("QUEUE_STUCK_TIMEOUT_MINUTES", 15))

ENRICHMENT_BATCH_SIZE = _int_env("ENRICHMENT_BATCH_SIZE", 10)
EMAIL_BATCH_SIZE = _int_env("EMAIL_BATCH_SIZE", 20)
DEFAULT_EMAIL_PRIORITY = 5

# Public base URL used for open/click/unsubscribe links
TRACKING_BASE_URL = os.environ.get("TRACKING_BASE_URL", "http://localhost:3000").rstrip("/")

DEFAULT_SCORING_CRITERIA = os.environ.get(
    "DEFAULT_SCORING_CRITERIA",
    "General software engineering role. Score on seniority, relevant skills "
    "and profile completeness.",
)

MAX_SKILLS = 50
