"""LLM chain turning deep-research text into a structured contact patch."""

import json

from contact_engine.core.llm import ModelClient, complete_json_with_repair
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import Contact, SearchResult
from contact_engine.core.schemas_extraction import ContactEnrichment

logger = get_logger(__name__)


ENRICHMENT_OUTPUT_SHAPE = {
    "contactPatch": {
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
    },
    "summary": "string|null",
    "researchFields": {
        "Twitter": "https://twitter.com/handle",
        "GitHub": "https://github.com/user",
        "Education": "School, Degree, Year",
    },
    "socialFollowers": [
        {
            "platform": "instagram",
            "count": 12345,
            "url": "https://instagram.com/handle",
            "metric": "followers",
        },
        {
            "platform": "youtube",
            "count": 56000,
            "url": "https://youtube.com/@handle",
            "metric": "subscribers",
        },
    ],
    "extraLinks": [{"label": "Crunchbase", "url": "https://www.crunchbase.com/..."}],
}

# ruff: noqa: E501
SYSTEM_PROMPT = (
    """You are given: (1) an initial extracted contact, and (2) deep research text with citations.
Your job: produce a clean JSON object that updates the contact fields and extracts useful extra fields.

Rules:
- Return ONLY valid JSON (no markdown, no code fences).
- Prefer reliable info corroborated by citations.
- If a field is unknown, set it to null or omit it.
- Parse names: if you see a full name, populate firstName and lastName too when possible.
- summary MUST be a concise, human-readable summary suitable for the contact's Notes field.
- Put the most important disambiguation and key facts into summary (e.g. 'not the founder of X; likely confused with Y').

- researchFields should be a flat object of short key/value strings. Use keys like:
  Twitter, X, GitHub, Instagram, YouTube, TikTok, Facebook, Crunchbase, AngelList, PersonalWebsite, Blog, Publications, Education, PreviousCompanies, KeyProjects, Keywords
- If a field is a URL, store the URL string.

- socialFollowers: if the research provides follower/subscriber counts, extract them here as structured entries.
  Use numeric counts (e.g. 12300) and platform enum values: x, twitter, instagram, linkedin, youtube, tiktok, facebook, threads, github, reddit, pinterest, twitch, other.
  Set metric to 'subscribers' for YouTube when appropriate; otherwise 'followers'. Include url/handle when available.

- extraLinks: include URLs you found that are relevant (social profiles, personal site, Crunchbase, articles).
  Use short labels. Do NOT include citation bracket numbers in URLs.

Output shape:
"""
    + json.dumps(ENRICHMENT_OUTPUT_SHAPE, indent=2)
)

# Large research artifacts are not echoed back to the model
_CONTACT_CONTEXT_EXCLUDE = {
    "deep_research_raw",
    "deep_research_prompt",
    "deep_research_sources",
    "research_images",
    "purchases",
}


def build_enrichment_prompt(
    contact: Contact,
    research_text: str,
    search_results: list[SearchResult],
) -> str:
    contact_json = json.dumps(
        contact.model_dump(mode="json", exclude=_CONTACT_CONTEXT_EXCLUDE),
        indent=2,
    )
    titles = (
        "\n".join(f"- {r.title or '(untitled)'}" for r in search_results)
        if search_results
        else "(none)"
    )
    return "\n\n".join(
        [
            "Current contact JSON:",
            contact_json,
            "",
            "Deep research text (with citations):",
            research_text,
            "",
            "Search results metadata (titles only):",
            titles,
        ]
    )


async def enrich_contact(
    model_client: ModelClient,
    *,
    contact: Contact,
    research_text: str,
    search_results: list[SearchResult],
    model: str | None = None,
) -> ContactEnrichment:
    """
    Run the enrichment pass over a finished research report.

    Args:
        model_client: Chat collaborator
        contact: Contact snapshot taken before research
        research_text: Full research report
        search_results: Citations returned with the report
        model: Optional model override

    Returns:
        Validated ContactEnrichment

    Raises:
        ModelOutputError: If output cannot be validated after one repair
    """
    logger.info(
        f"Enriching contact from research ({len(research_text)} chars, "
        f"{len(search_results)} sources)",
        extra={"contact_id": contact.id, "stage": "enriching"},
    )
    enrichment, _ = await complete_json_with_repair(
        model_client,
        schema=ContactEnrichment,
        system=SYSTEM_PROMPT,
        user=build_enrichment_prompt(contact, research_text, search_results),
        model=model,
        context={"contact_id": contact.id},
    )
    return enrichment
