"""Lusha person enrichment, used for phone discovery."""
import asyncio
import os
from typing import Any, Dict, Optional

import requests

from tools.errors import PermanentError, TransientError, check_response


LUSHA_BASE = "https://api.lusha.com"


def _api_key() -> str:
    return os.environ["LUSHA_API_KEY"]


def lusha_enrich_person(first_name: str, last_name: str, company: str) -> Dict[str, Any]:
    """Look a person up on Lusha. Returns the raw person payload."""
    try:
        resp = requests.post(
            f"{LUSHA_BASE}/v2/person",
            headers={"X-API-Key": _api_key()},
            json={"firstName": first_name, "lastName": last_name, "company": company},
            timeout=10,
        )
    except requests.RequestException as exc:
        raise TransientError(f"lusha request failed: {exc}", "lusha") from exc
    check_response(resp, "lusha")
    return resp.json() or {}


def lusha_find_phone(first_name: str, last_name: str, company: str) -> str:
    """Return the best phone number Lusha knows for a person, mobile first.

    Raises:
        PermanentError: Lusha returned the person without any phone number.
    """
    person = lusha_enrich_person(first_name, last_name, company)
    numbers = person.get("phoneNumbers") or []
    mobile = next((p for p in numbers if p.get("type") == "mobile" and p.get("number")), None)
    chosen = mobile or next((p for p in numbers if p.get("number")), None)
    if chosen is None:
        raise PermanentError("no phone found via lusha", "lusha")
    return chosen["number"]


class LushaClient:
    """Async PhoneFinder backed by Lusha."""

    async def find_phone(self, first_name: str, last_name: str, company: str) -> Optional[str]:
        return await asyncio.to_thread(lusha_find_phone, first_name, last_name, company)
