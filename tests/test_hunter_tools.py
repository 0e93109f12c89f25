"""Unit tests for hunter_tools: email finding and verification."""
from unittest.mock import MagicMock, patch

import pytest
import requests


HUNTER_MODULE = "tools.hunter_tools"


def _response(status_code=200, data=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = {"data": data or {}}
    return resp


class TestHunterFindEmail:
    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    def test_finds_email_by_domain(self, mock_key, mock_get):
        mock_get.return_value = _response(data={"email": "jane@acme.com", "score": 91})

        from tools.hunter_tools import hunter_find_email
        result = hunter_find_email("acme.com", "Jane", "Doe")

        assert result == {"email": "jane@acme.com", "score": 91, "verified": True}
        params = mock_get.call_args.kwargs["params"]
        assert params["domain"] == "acme.com"
        assert "company" not in params
        assert params["api_key"] == "test-key"

    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    def test_company_name_is_sent_as_company(self, mock_key, mock_get):
        mock_get.return_value = _response(data={"email": "jane@acme.com", "score": 40})

        from tools.hunter_tools import hunter_find_email
        result = hunter_find_email("Acme Corp", "Jane", "Doe")

        assert result["verified"] is False
        params = mock_get.call_args.kwargs["params"]
        assert params["company"] == "Acme Corp"
        assert "domain" not in params

    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    def test_empty_result_is_permanent(self, mock_key, mock_get):
        mock_get.return_value = _response(data={"email": None})

        from tools.errors import PermanentError
        from tools.hunter_tools import hunter_find_email
        with pytest.raises(PermanentError):
            hunter_find_email("acme.com", "Jane", "Doe")

    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    def test_429_is_rate_limited(self, mock_key, mock_get):
        mock_get.return_value = _response(status_code=429)

        from tools.errors import RateLimitedError
        from tools.hunter_tools import hunter_find_email
        with pytest.raises(RateLimitedError) as excinfo:
            hunter_find_email("acme.com", "Jane", "Doe")
        assert excinfo.value.provider == "hunter"

    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    def test_404_is_permanent(self, mock_key, mock_get):
        mock_get.return_value = _response(status_code=404)

        from tools.errors import PermanentError
        from tools.hunter_tools import hunter_find_email
        with pytest.raises(PermanentError):
            hunter_find_email("acme.com", "Jane", "Doe")

    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    def test_network_error_is_transient(self, mock_key, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection reset")

        from tools.errors import TransientError
        from tools.hunter_tools import hunter_find_email
        with pytest.raises(TransientError):
            hunter_find_email("acme.com", "Jane", "Doe")


class TestHunterVerifyEmail:
    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    def test_returns_status(self, mock_key, mock_get):
        mock_get.return_value = _response(data={"status": "accept_all", "score": 60})

        from tools.hunter_tools import hunter_verify_email
        result = hunter_verify_email("jane@acme.com")

        assert result["status"] == "accept_all"
        assert result["verified"] is False
        assert mock_get.call_args.args[0].endswith("/email-verifier")

    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    def test_missing_status_is_unknown(self, mock_key, mock_get):
        mock_get.return_value = _response(data={})

        from tools.hunter_tools import hunter_verify_email
        assert hunter_verify_email("jane@acme.com")["status"] == "unknown"


class TestHunterClient:
    @pytest.mark.asyncio
    @patch(f"{HUNTER_MODULE}.requests.get")
    @patch(f"{HUNTER_MODULE}._api_key", return_value="test-key")
    async def test_client_wraps_sync_calls(self, mock_key, mock_get):
        mock_get.return_value = _response(data={"email": "jane@acme.com", "score": 80, "status": "valid"})

        from tools.hunter_tools import HunterClient
        client = HunterClient()

        assert await client.find_email("Jane", "Doe", "acme.com") == "jane@acme.com"
        assert await client.verify_email("jane@acme.com") == "valid"
