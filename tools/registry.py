"""Wire provider clients from the environment."""
import logging
import os

from queue_config import DEFAULT_SCORING_CRITERIA
from services.enrichment_executors import EnrichmentProviders
from tools.hunter_tools import HunterClient
from tools.lusha_tools import LushaClient
from tools.proxycurl_tools import ProxycurlClient
from tools.scoring_tools import LiteLlmScorer

logger = logging.getLogger(__name__)


def _llm_configured() -> bool:
    return bool(os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("GOOGLE_CLOUD_PROJECT"))


def build_enrichment_providers() -> EnrichmentProviders:
    """Return providers for every client whose API key is present.

    Phone verification and company enrichment have no client yet, so those
    task types are always auto-failed by the dispatcher.
    """
    providers = EnrichmentProviders(scoring_criteria=DEFAULT_SCORING_CRITERIA)
    if os.environ.get("HUNTER_API_KEY"):
        hunter = HunterClient()
        providers.contact_finder = hunter
        providers.email_verifier = hunter
    if os.environ.get("LUSHA_API_KEY"):
        providers.phone_finder = LushaClient()
    if os.environ.get("PROXYCURL_API_KEY"):
        providers.profile_scraper = ProxycurlClient()
    if _llm_configured():
        providers.scorer = LiteLlmScorer()

    configured = [
        name
        for name, value in vars(providers).items()
        if value is not None and name != "scoring_criteria"
    ]
    logger.info("Enrichment providers configured: %s", ", ".join(configured) or "none")
    return providers
