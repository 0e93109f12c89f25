"""Model provider selection for candidate scoring.

Priority:
  1. ANTHROPIC_API_KEY set → use Anthropic API directly (faster, simpler)
  2. Otherwise → use Vertex AI (requires GOOGLE_CLOUD_PROJECT + service account)

Usage:
    from model_config import get_llm_model, init_llm
    init_llm()
    response = await litellm.acompletion(model=get_llm_model(), messages=...)
"""
import logging
import os

import litellm

logger = logging.getLogger(__name__)

# Model identifiers
ANTHROPIC_MODEL = "anthropic/claude-sonnet-4-6"
VERTEX_MODEL = "vertex_ai/claude-sonnet-4-5@20250929"

_initialized = False


def get_llm_model() -> str:
    """Return the LiteLLM model id for the active provider.

    Selects Anthropic API if ANTHROPIC_API_KEY is set, otherwise Vertex AI.
    """
    if os.environ.get("ANTHROPIC_API_KEY"):
        return ANTHROPIC_MODEL
    return VERTEX_MODEL


def active_provider() -> str:
    """Return 'anthropic' or 'vertex_ai' depending on which is active."""
    return "anthropic" if os.environ.get("ANTHROPIC_API_KEY") else "vertex_ai"


def init_llm() -> None:
    """Configure LiteLLM for the active provider. Safe to call repeatedly."""
    global _initialized
    if _initialized:
        return
    if active_provider() == "anthropic":
        logger.info("LLM provider: Anthropic API (ANTHROPIC_API_KEY is set)")
    else:
        project = os.environ["GOOGLE_CLOUD_PROJECT"]
        location = os.environ.get("GOOGLE_CLOUD_LOCATION", "us-east5")
        litellm.vertex_project = project
        litellm.vertex_location = location
        logger.info("LLM provider: Vertex AI (project=%s, location=%s)", project, location)

    if os.environ.get("LANGFUSE_PUBLIC_KEY"):
        litellm.success_callback = ["langfuse"]
        litellm.failure_callback = ["langfuse"]
    _initialized = True
