"""Proxycurl LinkedIn profile scraping."""
import asyncio
import os
from typing import Any, Dict, List, Optional

import requests

from schemas.enrichment import ProfileData
from tools.errors import TransientError, check_response


PROXYCURL_BASE = "https://nubela.co/proxycurl/api/v2"


def _api_key() -> str:
    return os.environ["PROXYCURL_API_KEY"]


def proxycurl_get_profile(linkedin_url: str) -> Dict[str, Any]:
    """Fetch a LinkedIn profile. A 404 surfaces as PermanentError."""
    try:
        resp = requests.get(
            f"{PROXYCURL_BASE}/linkedin",
            headers={"Authorization": f"Bearer {_api_key()}"},
            params={
                "url": linkedin_url,
                "use_cache": "if-present",
                "fallback_to_cache": "on-error",
                "skills": "include",
            },
            timeout=30,
        )
    except requests.RequestException as exc:
        raise TransientError(f"proxycurl request failed: {exc}", "proxycurl") from exc
    check_response(resp, "proxycurl")
    return resp.json() or {}


def _pick(entries: Optional[List[Dict[str, Any]]], keys: tuple) -> List[Dict[str, Any]]:
    return [{k: e.get(k) for k in keys if e.get(k) is not None} for e in entries or []]


def profile_from_proxycurl(data: Dict[str, Any]) -> ProfileData:
    """Map a Proxycurl person payload onto ProfileData."""
    return ProfileData(
        profile_image_url=data.get("profile_pic_url"),
        headline=data.get("headline") or data.get("occupation"),
        about=data.get("summary"),
        experience=_pick(
            data.get("experiences"),
            ("title", "company", "description", "location", "starts_at", "ends_at"),
        ),
        education=_pick(
            data.get("education"),
            ("school", "degree_name", "field_of_study", "starts_at", "ends_at"),
        ),
        certifications=_pick(data.get("certifications"), ("name", "authority", "starts_at")),
        skills=[s for s in data.get("skills") or [] if s],
    )


class ProxycurlClient:
    """Async ProfileScraper backed by Proxycurl."""

    async def scrape_profile(self, url: str) -> Optional[ProfileData]:
        data = await asyncio.to_thread(proxycurl_get_profile, url)
        if not data:
            return None
        return profile_from_proxycurl(data)
