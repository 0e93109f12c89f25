"""LLM candidate scoring through LiteLLM."""
import json
import logging
import re
from typing import Any, Optional

import litellm

from model_config import get_llm_model, init_llm
from schemas.enrichment import ScoreResult
from tools.errors import PermanentError, RateLimitedError, TransientError

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50

SCORING_PROMPT = """You are a recruitment AI. Score this candidate for the job on a scale of 0-100.

JOB REQUIREMENTS:
{criteria}

CANDIDATE:
{candidate}

Return ONLY a JSON object:
{{
  "score": <number 0-100>,
  "reasons": ["reason 1", "reason 2", "reason 3"]
}}

Be objective and specific in your reasoning."""

_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_score(text: Optional[str]) -> ScoreResult:
    """Parse the model's JSON reply. Unparseable or zero scores fall back to 50."""
    match = _JSON_RE.search(text or "")
    payload: dict[str, Any] = {}
    if match:
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.warning("Scorer returned invalid JSON; using default score")
    try:
        score = int(round(float(payload.get("score") or 0)))
    except (TypeError, ValueError):
        score = 0
    reasons = [str(r) for r in payload.get("reasons") or [] if r]
    if score <= 0:
        score = DEFAULT_SCORE
    return ScoreResult(score=min(score, 100), reasons=reasons)


class LiteLlmScorer:
    """Async CandidateScorer backed by the configured LiteLLM model."""

    def __init__(self, model: Optional[str] = None):
        self.model = model

    async def score(self, candidate_summary: str, job_criteria: str) -> ScoreResult:
        init_llm()
        prompt = SCORING_PROMPT.format(criteria=job_criteria, candidate=candidate_summary)
        try:
            response = await litellm.acompletion(
                model=self.model or get_llm_model(),
                messages=[{"role": "user", "content": prompt}],
                temperature=0,
            )
        except litellm.RateLimitError as exc:
            raise RateLimitedError(f"llm rate limited: {exc}", "llm") from exc
        except (litellm.AuthenticationError, litellm.BadRequestError) as exc:
            raise PermanentError(f"llm request rejected: {exc}", "llm") from exc
        except Exception as exc:
            raise TransientError(f"llm call failed: {exc}", "llm") from exc
        return parse_score(response.choices[0].message.content)
