"""Open/click tracking and unsubscribe injection for campaign emails."""
import re
from typing import Dict, Optional, Tuple
from urllib.parse import quote

from queue_config import TRACKING_BASE_URL

_LINK_RE = re.compile(r'<a\s+([^>]*?)href="(https?://[^"]+)"([^>]*?)>', re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)


def _enc(value: str) -> str:
    # Same reserved set as JavaScript's encodeURIComponent
    return quote(str(value), safe="!~*'()")


def _insert_before_body_close(html: str, fragment: str) -> str:
    match = _BODY_CLOSE_RE.search(html)
    if match is None:
        return html + fragment
    return html[: match.start()] + fragment + html[match.start():]


def unsubscribe_url(campaign_send_id: str, workspace_id: str, base_url: Optional[str] = None) -> str:
    base = (base_url or TRACKING_BASE_URL).rstrip("/")
    return (
        f"{base}/api/email/unsubscribe?sid={_enc(campaign_send_id)}&cid={_enc(workspace_id)}"
    )


def inject_tracking(html: str, campaign_send_id: str, base_url: Optional[str] = None) -> str:
    """Wrap outbound links for click tracking and append an open pixel.

    Unsubscribe links and links that already point at the tracker are left alone.
    """
    base = (base_url or TRACKING_BASE_URL).rstrip("/")
    sid = _enc(campaign_send_id)

    def _wrap(match: re.Match) -> str:
        before, url, after = match.group(1), match.group(2), match.group(3)
        if "/unsubscribe" in url or "/api/track/" in url:
            return match.group(0)
        return f'<a {before}href="{base}/api/track/click?sid={sid}&url={_enc(url)}"{after}>'

    tracked = _LINK_RE.sub(_wrap, html)
    pixel = (
        f'<img src="{base}/api/track/open?sid={sid}" width="1" height="1" '
        f'style="display:none" alt="" />'
    )
    return _insert_before_body_close(tracked, pixel)


def inject_unsubscribe(
    html: str, campaign_send_id: str, workspace_id: str, base_url: Optional[str] = None
) -> Tuple[str, Dict[str, str]]:
    """Append an unsubscribe footer and return (html, RFC 8058 headers)."""
    url = unsubscribe_url(campaign_send_id, workspace_id, base_url)
    link = (
        '<p style="font-size:11px;color:#999;text-align:center;margin-top:32px;">'
        f'<a href="{url}" style="color:#999;">Unsubscribe</a></p>'
    )
    headers = {
        "List-Unsubscribe": f"<{url}>",
        "List-Unsubscribe-Post": "List-Unsubscribe=One-Click",
    }
    return _insert_before_body_close(html, link), headers
