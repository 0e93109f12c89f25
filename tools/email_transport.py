"""Email transport: Resend HTTP API per sender account.

OAuth mailbox transports (Gmail, Microsoft) are connected elsewhere; only ESP
accounts resolve to a transport here.
"""
import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict

import requests

from db.models import EmailAccount
from tools.contracts import EmailTransport, SendReceipt, SendRequest
from tools.errors import PermanentError, TransientError, check_response

logger = logging.getLogger(__name__)

RESEND_BASE = "https://api.resend.com"


def _api_key() -> str:
    return os.environ["RESEND_API_KEY"]


def _format_from(request: SendRequest) -> str:
    if request.from_name:
        return f"{request.from_name} <{request.from_address}>"
    return request.from_address


def resend_send_email(request: SendRequest) -> Dict[str, Any]:
    """POST one message to Resend. Returns {'id': ...}."""
    payload: Dict[str, Any] = {
        "from": _format_from(request),
        "to": [request.to],
        "subject": request.subject,
        "html": request.html,
    }
    if request.text:
        payload["text"] = request.text
    if request.reply_to:
        payload["reply_to"] = request.reply_to
    if request.headers:
        payload["headers"] = request.headers
    if request.tags:
        payload["tags"] = [{"name": "category", "value": t} for t in request.tags]
    try:
        resp = requests.post(
            f"{RESEND_BASE}/emails",
            headers={"Authorization": f"Bearer {_api_key()}"},
            json=payload,
            timeout=15,
        )
    except requests.RequestException as exc:
        raise TransientError(f"resend request failed: {exc}", "resend") from exc
    check_response(resp, "resend")
    data = resp.json() or {}
    if not data.get("id"):
        raise TransientError("resend accepted the request without a message id", "resend")
    return data


class ResendTransport:
    """Async EmailTransport backed by Resend."""

    async def send(self, request: SendRequest) -> SendReceipt:
        data = await asyncio.to_thread(resend_send_email, request)
        return SendReceipt(provider_message_id=data["id"], accepted_at=datetime.now(timezone.utc))


def transport_for_account(account: EmailAccount) -> EmailTransport:
    """Resolve the transport for a sender account."""
    if account.account_type == "esp":
        return ResendTransport()
    raise PermanentError(f"no transport available for {account.account_type} accounts", "email")
