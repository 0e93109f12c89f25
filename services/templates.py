"""Merge-tag rendering for campaign subjects and bodies."""
import re
from typing import Any, Mapping

from db.models import Candidate

_TAG_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Replace ``{{tag}}`` with ``context[tag]``. Unknown or empty tags render as ''."""

    def _sub(match: re.Match) -> str:
        value = context.get(match.group(1))
        return "" if value is None else str(value)

    return _TAG_RE.sub(_sub, template or "")


def candidate_context(candidate: Candidate, sender_name: str = "") -> dict[str, str]:
    first = candidate.first_name or ""
    last = candidate.last_name or ""
    return {
        "firstName": first,
        "lastName": last,
        "fullName": f"{first} {last}".strip(),
        "email": candidate.email or "",
        "currentCompany": candidate.current_company or "",
        "currentTitle": candidate.current_title or "",
        "location": candidate.location or "",
        "senderName": sender_name,
    }
