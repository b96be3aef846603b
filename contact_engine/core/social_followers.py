"""Normalization and merge of social follower/subscriber counts.

All tolerance for messy model output (platform casing, "12.3K" style metric
strings, string counts) lives here. Everything downstream only ever sees
canonical `SocialFollower` entries.
"""

import math
from typing import Any

from contact_engine.core.schemas_contacts import SOCIAL_PLATFORMS, SocialFollower


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def canonical_platform(raw: Any) -> str:
    """Map a raw platform value to its canonical identifier.

    Unknown platforms become "other"; "twitter" is stored as "x" so the two
    never coexist.
    """
    value = _as_str(raw).lower()
    if value not in SOCIAL_PLATFORMS:
        return "other"
    return "x" if value == "twitter" else value


def normalize_metric(raw: Any) -> str | None:
    value = _as_str(raw).lower()
    if not value:
        return None
    if "sub" in value:
        return "subscribers"
    return "followers"


def coerce_count(raw: Any) -> int | None:
    """Coerce a count to a non-negative rounded integer, or None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        number = float(raw)
    else:
        text = _as_str(raw).replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number) or number < 0:
        return None
    return int(round(number))


def normalize_follower(raw: Any) -> SocialFollower | None:
    """Normalize one follower entry, returning None when it carries no count."""
    if isinstance(raw, SocialFollower):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        return None

    count = coerce_count(raw.get("count"))
    if count is None:
        return None

    return SocialFollower(
        platform=canonical_platform(raw.get("platform")),
        count=count,
        metric=normalize_metric(raw.get("metric")),
        label=_as_str(raw.get("label")) or None,
        url=_as_str(raw.get("url")) or None,
        handle=_as_str(raw.get("handle")) or None,
    )


def normalize_followers(raw: Any) -> list[SocialFollower]:
    if not isinstance(raw, (list, tuple)):
        return []
    normalized = (normalize_follower(item) for item in raw)
    return [item for item in normalized if item is not None]


def _choose_better(current: SocialFollower, candidate: SocialFollower) -> SocialFollower:
    # Higher count wins; on a tie prefer the entry with a url/handle
    if candidate.count > current.count:
        return candidate
    if current.count > candidate.count:
        return current

    current_linked = bool(current.url or current.handle)
    candidate_linked = bool(candidate.url or candidate.handle)
    if candidate_linked and not current_linked:
        return candidate
    if current_linked and not candidate_linked:
        return current

    if candidate.label and not current.label:
        return current.model_copy(update={"label": candidate.label})
    return current


def merge_social_followers(existing: Any, incoming: Any) -> list[SocialFollower] | None:
    """
    Merge two follower lists into one entry per canonical platform.

    Args:
        existing: Follower entries already on the contact (raw or canonical)
        incoming: Newly extracted follower entries (raw model output tolerated)

    Returns:
        Entries sorted by count descending, or None when neither side carries
        any usable entry (callers must then leave stored followers untouched)
    """
    current = normalize_followers(existing)
    fresh = normalize_followers(incoming)
    if not current and not fresh:
        return None

    by_platform: dict[str, SocialFollower] = {}
    for item in [*current, *fresh]:
        kept = by_platform.get(item.platform)
        by_platform[item.platform] = _choose_better(kept, item) if kept else item

    return sorted(by_platform.values(), key=lambda f: f.count, reverse=True)


def followers_to_payload(followers: list[SocialFollower]) -> list[dict[str, Any]]:
    """Serialize followers for a document-store write."""
    return [f.model_dump(exclude_none=True) for f in followers]
