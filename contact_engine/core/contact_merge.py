"""Field-level merge of newly extracted data into an existing contact.

The engine is pure: it reads a contact snapshot and an extraction and returns
either a conflict report or the patch to write. It never touches the store.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from contact_engine.core.schemas_contacts import ConflictRecord, Contact, clean_tags
from contact_engine.core.schemas_extraction import ExtractedContact
from contact_engine.core.social_followers import (
    followers_to_payload,
    merge_social_followers,
)

NOTES_SEPARATOR = "[Added info]"


def normalize_email(value: Any) -> str:
    return str(value or "").strip().lower()


def normalize_phone(value: Any) -> str:
    return re.sub(r"[^\d+]", "", str(value or ""))


def normalize_name(value: Any) -> str:
    return re.sub(r"\s+", " ", str(value or "").strip().lower())


def normalize_url_text(value: Any) -> str:
    return str(value or "").strip().lower()


# Normalizer used to compare each scalar field
FIELD_NORMALIZERS: dict[str, Callable[[Any], str]] = {
    "full_name": normalize_name,
    "first_name": normalize_name,
    "last_name": normalize_name,
    "job_title": normalize_name,
    "company_name": normalize_name,
    "email": normalize_email,
    "phone": normalize_phone,
    "linkedin_url": normalize_url_text,
    "website": normalize_url_text,
    "location": normalize_name,
}


@dataclass
class MergeResult:
    """Outcome of merging an extraction into a contact."""

    conflicts: list[ConflictRecord] = field(default_factory=list)
    patch: dict[str, Any] = field(default_factory=dict)
    applied_fields: list[str] = field(default_factory=list)
    blocked: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.patch)


def _combined_name(full_name: str | None, first: str | None, last: str | None) -> str:
    if full_name and full_name.strip():
        return normalize_name(full_name)
    return normalize_name(f"{first or ''} {last or ''}")


def detect_conflicts(existing: Contact, incoming: ExtractedContact) -> list[ConflictRecord]:
    """
    Compare identity fields that decide whether both records are the same person.

    Only email, phone, name and LinkedIn URL are inspected. A conflict needs
    both sides non-empty with different normalized values.
    """
    conflicts: list[ConflictRecord] = []

    def check(label: str, ex_raw: Any, in_raw: Any, normalize: Callable[[Any], str]) -> None:
        ex_value, in_value = normalize(ex_raw), normalize(in_raw)
        if ex_value and in_value and ex_value != in_value:
            conflicts.append(
                ConflictRecord(field=label, existing=str(ex_raw), incoming=str(in_raw))
            )

    check("email", existing.email, incoming.email, normalize_email)
    check("phone", existing.phone, incoming.phone, normalize_phone)

    # Names are reported in normalized form
    ex_name = _combined_name(existing.full_name, existing.first_name, existing.last_name)
    in_name = _combined_name(incoming.full_name, incoming.first_name, incoming.last_name)
    check("name", ex_name, in_name, normalize_name)

    check("linkedInUrl", existing.linkedin_url, incoming.linkedin_url, normalize_url_text)

    return conflicts


def _append_notes(existing_notes: str | None, incoming_notes: str) -> str | None:
    """Return the combined notes, or None when nothing new would be added."""
    current = (existing_notes or "").strip()
    if not current:
        return incoming_notes
    if normalize_name(incoming_notes) in normalize_name(current):
        return None
    return f"{current}\n\n{NOTES_SEPARATOR}\n{incoming_notes}"


def merge_contact_fields(
    existing: Contact,
    incoming: ExtractedContact,
    *,
    force: bool = False,
) -> MergeResult:
    """
    Merge an extraction into an existing contact.

    Args:
        existing: Current contact snapshot
        incoming: Freshly extracted contact block
        force: Overwrite differing non-empty fields and ignore conflicts

    Returns:
        MergeResult. When conflicts exist and force is False the result is
        blocked and carries no patch.
    """
    conflicts = detect_conflicts(existing, incoming)
    if conflicts and not force:
        return MergeResult(conflicts=conflicts, blocked=True)

    result = MergeResult(conflicts=conflicts)

    for field_name, normalize in FIELD_NORMALIZERS.items():
        value = getattr(incoming, field_name)
        value = value.strip() if isinstance(value, str) else value
        if not value:
            continue
        current = normalize(getattr(existing, field_name))
        if not current or (current != normalize(value) and force):
            result.patch[field_name] = value
            result.applied_fields.append(field_name)

    # Notes are appended under a separator, never replaced
    incoming_notes = (incoming.notes or "").strip()
    if incoming_notes:
        notes = _append_notes(existing.notes, incoming_notes)
        if notes is not None:
            result.patch["notes"] = notes
            result.applied_fields.append("notes")

    incoming_tags = clean_tags(incoming.tags or [])
    if incoming_tags:
        merged_tags = clean_tags([*existing.tags, *incoming_tags])
        if merged_tags != existing.tags:
            result.patch["tags"] = merged_tags
            result.applied_fields.append("tags")

    incoming_followers = (
        [f.model_dump() for f in incoming.social_followers] if incoming.social_followers else []
    )
    merged_followers = merge_social_followers(existing.social_followers, incoming_followers)
    if merged_followers is not None:
        merged_payload = followers_to_payload(merged_followers)
        stored = merge_social_followers(existing.social_followers, []) or []
        if merged_payload != followers_to_payload(stored):
            result.patch["social_followers"] = merged_payload
            result.applied_fields.append("social_followers")

    return result
