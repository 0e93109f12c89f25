"""Merge engine: combine an existing candidate snapshot with an incoming one.

Pure functions only; nothing here touches the database.

Strategies:
  keep_existing  incoming data is ignored and the record is reported skipped
  prefer_new     non-empty incoming scalars overwrite, except the email
                 identity key which is only filled when missing
  merge_best     first non-empty of (existing, incoming) per scalar, max of the
                 numeric quality fields, union of skills, shallow map merge
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from schemas.candidate import CandidateInput, MergeStrategy

SCALAR_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "linkedin_url",
    "github_url",
    "portfolio_url",
    "current_title",
    "current_company",
    "location",
    "experience_years",
    "ai_summary",
    "profile_image_url",
    "headline",
    "about",
    "source",
)
MAX_FIELDS = ("ai_score", "data_completeness")
MAP_FIELDS = ("company_info", "social_profiles")

# Identity keys are never overwritten once set, only filled
_IDENTITY_FIELDS = ("email",)


@dataclass
class MergeOutcome:
    merged: CandidateInput
    changes: dict[str, Any] = field(default_factory=dict)
    skipped: bool = False


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def pick_best(existing: Any, incoming: Any) -> Any:
    """First non-empty of (existing, incoming); existing wins ties."""
    return incoming if is_empty(existing) else existing


def pick_higher(existing: Optional[int], incoming: Optional[int]) -> Optional[int]:
    if existing is None:
        return incoming
    if incoming is None:
        return existing
    return max(existing, incoming)


def union_skills(existing: Iterable[str], incoming: Iterable[str]) -> list[str]:
    """Order-preserving union; duplicates compared case-insensitively."""
    seen: set[str] = set()
    merged: list[str] = []
    for skill in list(existing or []) + list(incoming or []):
        if not skill or not skill.strip():
            continue
        key = skill.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        merged.append(skill.strip())
    return merged


def merge_maps(
    existing: Optional[Mapping[str, Any]], incoming: Optional[Mapping[str, Any]]
) -> dict[str, Any]:
    """Shallow merge. Existing key order is kept; incoming values override."""
    merged = dict(existing or {})
    for key, value in (incoming or {}).items():
        merged[key] = value
    return merged


def split_sources(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [s.strip() for s in value.split(",") if s.strip()]


def accumulate_sources(existing: Optional[str], contributors: Iterable[Optional[str]]) -> Optional[str]:
    """Append contributor names to a comma list, skipping ones already present."""
    names = split_sources(existing)
    for contributor in contributors:
        for name in split_sources(contributor):
            if name not in names:
                names.append(name)
    return ",".join(names) if names else None


def contributors_of(data: CandidateInput) -> list[str]:
    """The provenance names a snapshot brings with it."""
    names = split_sources(data.enrichment_source)
    if data.source and data.source not in names:
        names.append(data.source)
    return names


def merge_candidate(
    existing: CandidateInput,
    incoming: CandidateInput,
    strategy: MergeStrategy = MergeStrategy.MERGE_BEST,
) -> MergeOutcome:
    """Merge ``incoming`` into ``existing`` and report the fields that changed."""
    if strategy == MergeStrategy.KEEP_EXISTING:
        return MergeOutcome(merged=existing, skipped=True)

    values = existing.model_dump()

    for name in SCALAR_FIELDS:
        current = values[name]
        new = getattr(incoming, name)
        if strategy == MergeStrategy.PREFER_NEW and name not in _IDENTITY_FIELDS:
            values[name] = current if is_empty(new) else new
        else:
            values[name] = pick_best(current, new)

    for name in MAX_FIELDS:
        values[name] = pick_higher(values[name], getattr(incoming, name))

    values["skills"] = union_skills(existing.skills, incoming.skills)
    for name in MAP_FIELDS:
        values[name] = merge_maps(getattr(existing, name), getattr(incoming, name))

    values["enrichment_source"] = accumulate_sources(
        existing.enrichment_source, contributors_of(incoming)
    )

    if existing.job_id is None and incoming.job_id is not None:
        values["job_id"] = incoming.job_id

    merged = CandidateInput(**values)
    before = existing.model_dump()
    changes = {k: v for k, v in merged.model_dump().items() if before[k] != v}
    return MergeOutcome(merged=merged, changes=changes)
