"""Unit tests for the Lusha, Proxycurl, scoring and Resend clients."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest


LUSHA_MODULE = "tools.lusha_tools"
PROXYCURL_MODULE = "tools.proxycurl_tools"
SCORING_MODULE = "tools.scoring_tools"
TRANSPORT_MODULE = "tools.email_transport"


def _response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


class TestLushaFindPhone:
    @patch(f"{LUSHA_MODULE}.requests.post")
    @patch(f"{LUSHA_MODULE}._api_key", return_value="test-key")
    def test_prefers_mobile(self, mock_key, mock_post):
        mock_post.return_value = _response({
            "phoneNumbers": [
                {"type": "work", "number": "+15550001"},
                {"type": "mobile", "number": "+15550002"},
            ]
        })

        from tools.lusha_tools import lusha_find_phone
        assert lusha_find_phone("Jane", "Doe", "Acme") == "+15550002"
        assert mock_post.call_args.kwargs["json"]["company"] == "Acme"
        assert mock_post.call_args.kwargs["headers"]["X-API-Key"] == "test-key"

    @patch(f"{LUSHA_MODULE}.requests.post")
    @patch(f"{LUSHA_MODULE}._api_key", return_value="test-key")
    def test_falls_back_to_any_number(self, mock_key, mock_post):
        mock_post.return_value = _response({"phoneNumbers": [{"type": "work", "number": "+15550001"}]})

        from tools.lusha_tools import lusha_find_phone
        assert lusha_find_phone("Jane", "Doe", "Acme") == "+15550001"

    @patch(f"{LUSHA_MODULE}.requests.post")
    @patch(f"{LUSHA_MODULE}._api_key", return_value="test-key")
    def test_no_numbers_is_permanent(self, mock_key, mock_post):
        mock_post.return_value = _response({"phoneNumbers": []})

        from tools.errors import PermanentError
        from tools.lusha_tools import lusha_find_phone
        with pytest.raises(PermanentError):
            lusha_find_phone("Jane", "Doe", "Acme")

    @patch(f"{LUSHA_MODULE}.requests.post")
    @patch(f"{LUSHA_MODULE}._api_key", return_value="test-key")
    def test_server_error_is_transient(self, mock_key, mock_post):
        mock_post.return_value = _response({}, status_code=502)

        from tools.errors import TransientError
        from tools.lusha_tools import lusha_find_phone
        with pytest.raises(TransientError):
            lusha_find_phone("Jane", "Doe", "Acme")


class TestProxycurl:
    def test_maps_profile_payload(self):
        from tools.proxycurl_tools import profile_from_proxycurl

        profile = profile_from_proxycurl({
            "profile_pic_url": "https://img.test/jane.png",
            "occupation": "Engineer at Acme",
            "summary": "Builds things.",
            "experiences": [{"title": "Engineer", "company": "Acme", "logo_url": "x", "ends_at": None}],
            "education": [{"school": "MIT", "degree_name": "BSc"}],
            "skills": ["Python", "", "Go"],
        })

        assert profile.headline == "Engineer at Acme"
        assert profile.about == "Builds things."
        assert profile.experience == [{"title": "Engineer", "company": "Acme"}]
        assert profile.education == [{"school": "MIT", "degree_name": "BSc"}]
        assert profile.certifications == []
        assert profile.skills == ["Python", "Go"]

    @patch(f"{PROXYCURL_MODULE}.requests.get")
    @patch(f"{PROXYCURL_MODULE}._api_key", return_value="test-key")
    def test_missing_profile_is_permanent(self, mock_key, mock_get):
        mock_get.return_value = _response({}, status_code=404)

        from tools.errors import PermanentError
        from tools.proxycurl_tools import proxycurl_get_profile
        with pytest.raises(PermanentError):
            proxycurl_get_profile("https://linkedin.com/in/nobody")

    @pytest.mark.asyncio
    @patch(f"{PROXYCURL_MODULE}.requests.get")
    @patch(f"{PROXYCURL_MODULE}._api_key", return_value="test-key")
    async def test_empty_payload_scrapes_nothing(self, mock_key, mock_get):
        mock_get.return_value = _response({})

        from tools.proxycurl_tools import ProxycurlClient
        assert await ProxycurlClient().scrape_profile("https://linkedin.com/in/jane") is None


class TestParseScore:
    def test_parses_json_wrapped_in_prose(self):
        from tools.scoring_tools import parse_score

        result = parse_score('Here you go:\n{"score": 87, "reasons": ["Python", "Postgres"]}\nThanks')
        assert result.score == 87
        assert result.reasons == ["Python", "Postgres"]

    @pytest.mark.parametrize("text", [None, "no json here", '{"score": "high"}', '{"score": 0}', "{bad"])
    def test_unusable_replies_fall_back_to_default(self, text):
        from tools.scoring_tools import DEFAULT_SCORE, parse_score
        assert parse_score(text).score == DEFAULT_SCORE

    def test_score_is_capped(self):
        from tools.scoring_tools import parse_score
        assert parse_score('{"score": 140}').score == 100


class TestLiteLlmScorer:
    @pytest.mark.asyncio
    @patch(f"{SCORING_MODULE}.init_llm")
    @patch(f"{SCORING_MODULE}.litellm.acompletion", new_callable=AsyncMock)
    async def test_scores_with_configured_model(self, mock_completion, mock_init):
        message = SimpleNamespace(content='{"score": 72, "reasons": ["solid backend"]}')
        mock_completion.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])

        from tools.scoring_tools import LiteLlmScorer
        result = await LiteLlmScorer(model="anthropic/test-model").score("Name: Jane", "Python")

        assert result.score == 72
        assert mock_completion.call_args.kwargs["model"] == "anthropic/test-model"
        prompt = mock_completion.call_args.kwargs["messages"][0]["content"]
        assert "Name: Jane" in prompt
        assert "Python" in prompt

    @pytest.mark.asyncio
    @patch(f"{SCORING_MODULE}.init_llm")
    @patch(f"{SCORING_MODULE}.litellm.acompletion", new_callable=AsyncMock)
    async def test_unexpected_failure_is_transient(self, mock_completion, mock_init):
        mock_completion.side_effect = RuntimeError("socket closed")

        from tools.errors import TransientError
        from tools.scoring_tools import LiteLlmScorer
        with pytest.raises(TransientError):
            await LiteLlmScorer(model="anthropic/test-model").score("Name: Jane", "Python")


class TestResendTransport:
    @patch(f"{TRANSPORT_MODULE}.requests.post")
    @patch(f"{TRANSPORT_MODULE}._api_key", return_value="test-key")
    def test_builds_payload(self, mock_key, mock_post):
        mock_post.return_value = _response({"id": "re_123"})

        from tools.contracts import SendRequest
        from tools.email_transport import resend_send_email
        result = resend_send_email(SendRequest(
            from_address="ada@acme.test",
            from_name="Ada",
            to="jane@x.com",
            subject="Hi",
            html="<p>Hi</p>",
            headers={"List-Unsubscribe": "<https://t.example/u>"},
        ))

        assert result["id"] == "re_123"
        payload = mock_post.call_args.kwargs["json"]
        assert payload["from"] == "Ada <ada@acme.test>"
        assert payload["to"] == ["jane@x.com"]
        assert payload["headers"] == {"List-Unsubscribe": "<https://t.example/u>"}
        assert "text" not in payload
        assert "reply_to" not in payload

    @patch(f"{TRANSPORT_MODULE}.requests.post")
    @patch(f"{TRANSPORT_MODULE}._api_key", return_value="test-key")
    def test_rejected_message_is_permanent(self, mock_key, mock_post):
        mock_post.return_value = _response({"message": "invalid"}, status_code=422)

        from tools.contracts import SendRequest
        from tools.email_transport import resend_send_email
        from tools.errors import PermanentError
        with pytest.raises(PermanentError):
            resend_send_email(SendRequest(from_address="a@b.test", to="c@d.test", subject="s", html="h"))

    def test_transport_resolution(self):
        from db.models import EmailAccount
        from tools.email_transport import ResendTransport, transport_for_account
        from tools.errors import PermanentError

        assert isinstance(transport_for_account(EmailAccount(account_type="esp")), ResendTransport)
        with pytest.raises(PermanentError):
            transport_for_account(EmailAccount(account_type="gmail_oauth"))


class TestProviderRegistry:
    def test_only_configured_clients_are_wired(self, monkeypatch):
        for name in ("HUNTER_API_KEY", "LUSHA_API_KEY", "PROXYCURL_API_KEY",
                     "ANTHROPIC_API_KEY", "GOOGLE_CLOUD_PROJECT"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("HUNTER_API_KEY", "k")

        from tools.hunter_tools import HunterClient
        from tools.registry import build_enrichment_providers
        providers = build_enrichment_providers()

        assert isinstance(providers.contact_finder, HunterClient)
        assert providers.email_verifier is providers.contact_finder
        assert providers.phone_finder is None
        assert providers.profile_scraper is None
        assert providers.scorer is None


class TestModelConfig:
    def test_anthropic_key_selects_anthropic(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "k")

        from model_config import ANTHROPIC_MODEL, active_provider, get_llm_model
        assert get_llm_model() == ANTHROPIC_MODEL
        assert active_provider() == "anthropic"

    def test_falls_back_to_vertex(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        from model_config import VERTEX_MODEL, active_provider, get_llm_model
        assert get_llm_model() == VERTEX_MODEL
        assert active_provider() == "vertex_ai"
