"""LLM chain for extracting a contact from pasted text and screenshots."""

import json
from typing import Any

from contact_engine.core.llm import ImageInput, ModelClient, complete_json_with_repair
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import Contact
from contact_engine.core.schemas_extraction import ContactExtraction

logger = get_logger(__name__)


EXTRACTION_OUTPUT_SHAPE = {
    "contact": {
        "fullName": "string|null",
        "firstName": "string|null",
        "lastName": "string|null",
        "jobTitle": "string|null",
        "companyName": "string|null",
        "email": "string|null",
        "phone": "string|null",
        "linkedInUrl": "string|null",
        "website": "string|null",
        "location": "string|null",
        "notes": "string|null",
        "tags": ["string"],
        "socialFollowers": [
            {
                "platform": "instagram",
                "count": 12345,
                "handle": "@handle",
                "url": "https://instagram.com/handle",
                "metric": "followers",
            }
        ],
    },
    "confidenceByField": {"email": 0.82, "companyName": 0.9},
    "evidence": {"companyName": "Seen in screenshot #2 headline"},
}

# ruff: noqa: E501
SYSTEM_PROMPT = (
    """You extract structured lead/contact fields from the provided text and images.
Return ONLY valid JSON (no markdown, no code fences).
If a field is unknown, set it to null or omit it.
Prefer short evidence strings (e.g. 'Seen in screenshot #2 header').
Emails/phones should be normalized if possible.

Follower counts:
- If you see follower/subscriber counts for social platforms (e.g. '12.3K followers on Instagram'), extract them into contact.socialFollowers.
- Use numeric counts (e.g. 12300), not '12.3K'.
- Use platform enum values: x, twitter, instagram, linkedin, youtube, tiktok, facebook, threads, github, reddit, pinterest, twitch, other.
- Include url or handle when available. metric should be 'followers' (default) or 'subscribers' (YouTube).

IMPORTANT: Name parsing:
- If you find a full name (e.g., 'John Smith' or 'Smith, John'), parse it into firstName and lastName.
- Set fullName to the complete name as found, and populate firstName and lastName separately.
- For names like 'John Smith', firstName='John', lastName='Smith'.
- For names like 'Smith, John' or 'John Michael Smith', parse appropriately.
- If only one name part is found, use it for firstName and leave lastName null (or vice versa if it's clearly a last name).

Output must match this shape:
"""
    + json.dumps(EXTRACTION_OUTPUT_SHAPE, indent=2)
)


def build_capture_prompt(text: str) -> str:
    """User message for extracting a brand-new contact from a capture."""
    return "\n\n".join(
        [
            "Extract a lead/contact from the pasted text and the images.",
            "If you infer something from images, state evidence like 'screenshot #N'.",
            "Pasted text:",
            text.strip() or "(none)",
        ]
    )


def build_ingest_prompt(existing: Contact, text: str) -> str:
    """User message for extracting new info about an existing contact."""
    existing_json = json.dumps(
        {
            "fullName": existing.full_name,
            "firstName": existing.first_name,
            "lastName": existing.last_name,
            "email": existing.email,
            "phone": existing.phone,
            "companyName": existing.company_name,
            "jobTitle": existing.job_title,
            "linkedInUrl": existing.linkedin_url,
            "website": existing.website,
            "location": existing.location,
            "notes": existing.notes,
            "tags": existing.tags,
        },
        indent=2,
    )
    pasted = f"New pasted text:\n{text.strip()}" if text.strip() else "New pasted text: (none)"
    return "\n\n".join(
        [
            "You are adding new information to an existing CRM contact record.",
            "Only extract details that clearly refer to the SAME person/company as the existing contact.",
            "If the incoming info appears to be for a different person (different email/phone/name), still extract what you see, but do NOT invent reconciliations.",
            "",
            "Existing contact JSON:",
            existing_json,
            "",
            pasted,
            "",
            "Task: Extract any contact fields from the NEW info (text/images). Return JSON ONLY.",
        ]
    )


async def extract_contact_from_capture(
    model_client: ModelClient,
    *,
    text: str,
    images: list[ImageInput],
    model: str | None = None,
    capture_id: str | None = None,
) -> tuple[ContactExtraction, Any]:
    """
    Run the initial extraction pass for a capture.

    Returns:
        Tuple of (validated extraction, raw decoded JSON for the audit trail)

    Raises:
        ModelOutputError: If output cannot be validated after one repair
    """
    logger.info(
        f"Extracting contact from capture ({len(images)} images)",
        extra={"capture_id": capture_id, "stage": "extract"},
    )
    return await complete_json_with_repair(
        model_client,
        schema=ContactExtraction,
        system=SYSTEM_PROMPT,
        user=build_capture_prompt(text),
        images=images,
        model=model,
        context={"capture_id": capture_id},
    )


async def extract_contact_update(
    model_client: ModelClient,
    *,
    existing: Contact,
    text: str,
    images: list[ImageInput],
    model: str | None = None,
) -> ContactExtraction:
    """
    Extract new information about an existing contact.

    Raises:
        ModelOutputError: If output cannot be validated after one repair
    """
    logger.info(
        f"Extracting new info for contact ({len(images)} images)",
        extra={"contact_id": existing.id, "stage": "ingest"},
    )
    extraction, _ = await complete_json_with_repair(
        model_client,
        schema=ContactExtraction,
        system=SYSTEM_PROMPT,
        user=build_ingest_prompt(existing, text),
        images=images,
        model=model,
        context={"contact_id": existing.id},
    )
    return extraction
