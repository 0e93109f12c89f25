"""Hunter.io email finding and verification.

Calls Hunter.io REST API directly (no official Python SDK). The module-level
functions are synchronous; ``HunterClient`` adapts them to the async
ContactFinder / EmailVerifier contracts.
"""
import asyncio
import os
from typing import Any, Dict, Optional

import requests

from tools.errors import PermanentError, TransientError, check_response


HUNTER_BASE = "https://api.hunter.io/v2"
VERIFIED_SCORE = 70


def _api_key() -> str:
    return os.environ["HUNTER_API_KEY"]


def _get(path: str, params: Dict[str, Any]) -> Dict[str, Any]:
    try:
        resp = requests.get(
            f"{HUNTER_BASE}/{path}",
            params={**params, "api_key": _api_key()},
            timeout=10,
        )
    except requests.RequestException as exc:
        raise TransientError(f"hunter request failed: {exc}", "hunter") from exc
    check_response(resp, "hunter")
    return resp.json().get("data") or {}


def hunter_find_email(
    company_or_domain: str,
    first_name: str,
    last_name: str,
) -> Dict[str, Any]:
    """Find a specific person's email via Hunter.io.

    Args:
        company_or_domain: Company domain (example.com) or company name.
        first_name: Contact's first name.
        last_name: Contact's last name.

    Returns:
        Dict with 'email', 'score', 'verified'.

    Raises:
        PermanentError: Hunter has no email for this person.
    """
    target = company_or_domain.strip()
    params: Dict[str, Any] = {"first_name": first_name, "last_name": last_name}
    if "." in target and " " not in target:
        params["domain"] = target
    else:
        params["company"] = target
    data = _get("email-finder", params)
    email = data.get("email") or ""
    if not email:
        raise PermanentError("no email found via hunter", "hunter")
    score = data.get("score") or 0
    return {"email": email, "score": score, "verified": score >= VERIFIED_SCORE}


def hunter_verify_email(email: str) -> Dict[str, Any]:
    """Verify whether an email address is deliverable via Hunter.io.

    Args:
        email: Email address to verify.

    Returns:
        Dict with 'email', 'status' (valid/invalid/accept_all/unknown), 'score'.
    """
    data = _get("email-verifier", {"email": email})
    status = data.get("status") or "unknown"
    return {
        "email": email,
        "status": status,
        "score": data.get("score", 0),
        "verified": status == "valid",
    }


class HunterClient:
    """Async ContactFinder and EmailVerifier backed by Hunter.io."""

    async def find_email(
        self, first_name: str, last_name: str, company_or_domain: str
    ) -> Optional[str]:
        result = await asyncio.to_thread(
            hunter_find_email, company_or_domain, first_name, last_name
        )
        return result["email"] or None

    async def verify_email(self, email: str) -> str:
        result = await asyncio.to_thread(hunter_verify_email, email)
        return result["status"]
