"""LLM chain that reconciles a contact's extra links after deep research."""

import json

from pydantic import BaseModel

from contact_engine.core.link_utils import dedupe_key, extract_urls_from_text, normalize_url
from contact_engine.core.llm import ModelClient, complete_json_with_repair
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import Contact, ExtraLink, SearchResult
from contact_engine.core.schemas_extraction import (
    CURATED_LINKS_JSON_SCHEMA,
    CuratedLinks,
    RawLink,
)

logger = get_logger(__name__)


SYSTEM_PROMPT = (
    "You return structured JSON only. You curate links. "
    "Do not include markdown. Do not include commentary."
)

REPAIR_EXAMPLE = {"links": [{"label": "Website", "url": "https://example.com"}]}

DEFAULT_MAX_LINKS = 12
DEFAULT_MAX_CANDIDATES = 80
CURATION_MAX_TOKENS = 1200


class LinkCandidate(BaseModel):
    """A URL offered to the ranking call, with where it came from."""

    url: str
    title: str | None = None
    source: str


def clamp_max_links(max_links: int | None) -> int:
    """Clamp the requested link count into 3..20 (default 12)."""
    return max(3, min(max_links or DEFAULT_MAX_LINKS, 20))


def dedupe_candidates(candidates: list[LinkCandidate]) -> list[LinkCandidate]:
    """Normalize candidate URLs and keep the first entry per canonical key."""
    seen: set[str] = set()
    out: list[LinkCandidate] = []
    for candidate in candidates:
        url = normalize_url(candidate.url)
        if not url:
            continue
        key = dedupe_key(url)
        if key in seen:
            continue
        seen.add(key)
        out.append(candidate.model_copy(update={"url": url}))
    return out


def collect_candidates(
    *,
    sources: list[SearchResult],
    research_text: str,
    enrichment_links: list[RawLink],
    existing_links: list[ExtraLink],
) -> list[LinkCandidate]:
    """Gather candidates in priority order: citations, text URLs, enrichment, existing."""
    candidates: list[LinkCandidate] = []
    for s in sources:
        if s.url:
            candidates.append(LinkCandidate(url=s.url, title=s.title, source="research"))
    for url in extract_urls_from_text(research_text):
        candidates.append(LinkCandidate(url=url, source="researchText"))
    for link in enrichment_links:
        if link.url:
            candidates.append(LinkCandidate(url=link.url, title=link.label, source="enrichment"))
    for link in existing_links:
        candidates.append(LinkCandidate(url=link.url, title=link.label, source="existing"))
    return candidates


def to_extra_links(links: list[RawLink], max_links: int) -> list[ExtraLink]:
    """Drop unlabelled or invalid entries, de-duplicate and truncate."""
    seen: set[str] = set()
    out: list[ExtraLink] = []
    for link in links:
        label = (link.label or "").strip()
        url = normalize_url(link.url)
        if not label or not url:
            continue
        key = dedupe_key(url)
        if key in seen:
            continue
        seen.add(key)
        out.append(ExtraLink(label=label, url=url))
    return out[:max_links]


def build_curation_prompt(contact: Contact, candidates: list[LinkCandidate], max_links: int) -> str:
    context = json.dumps(
        {
            "name": contact.display_name() or None,
            "companyName": contact.company_name,
            "email": contact.email,
            "website": contact.website,
            "linkedInUrl": contact.linkedin_url,
        },
        indent=2,
    )
    candidate_json = json.dumps([c.model_dump() for c in candidates], indent=2)
    return "\n".join(
        [
            "You are curating a CRM contact's 'Additional links'.",
            "Goal: choose the most relevant, correct links for this specific person/company and dedupe them.",  # noqa: E501
            "",
            "Contact context:",
            context,
            "",
            "Candidate links (url + optional title + source):",
            candidate_json,
            "",
            "Rules:",
            "- Return ONLY JSON in the exact schema.",
            f"- Pick up to {max_links} links.",
            "- Prefer official + high-signal links: official website, LinkedIn, Crunchbase, company/about pages, reputable press, profiles.",  # noqa: E501
            "- Avoid duplicates, tracking params, and irrelevant pages.",
            "- Use short, human labels (e.g. 'LinkedIn', 'Website', 'Crunchbase', 'Press').",
        ]
    )


async def curate_extra_links(
    model_client: ModelClient,
    *,
    contact: Contact,
    research_text: str,
    sources: list[SearchResult],
    enrichment_links: list[RawLink],
    existing_links: list[ExtraLink],
    max_links: int | None = DEFAULT_MAX_LINKS,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
    model: str | None = None,
) -> list[ExtraLink]:
    """
    Pick the most relevant links for a contact from every known source.

    A failed ranking call or an unparseable answer yields an empty list.
    The caller stores the result as the contact's extra links.

    Returns:
        Curated links, at most the clamped maximum
    """
    limit = clamp_max_links(max_links)
    candidates = dedupe_candidates(
        collect_candidates(
            sources=sources,
            research_text=research_text,
            enrichment_links=enrichment_links,
            existing_links=existing_links,
        )
    )[:max_candidates]

    if not candidates:
        return []

    try:
        curated, _ = await complete_json_with_repair(
            model_client,
            schema=CuratedLinks,
            system=SYSTEM_PROMPT,
            user=build_curation_prompt(contact, candidates, limit),
            model=model,
            response_schema=CURATED_LINKS_JSON_SCHEMA,
            repair_example=REPAIR_EXAMPLE,
            max_tokens=CURATION_MAX_TOKENS,
            context={"contact_id": contact.id},
        )
    except Exception as e:
        logger.warning(
            f"Link curation failed, returning no links: {e}",
            extra={"contact_id": contact.id},
        )
        return []

    links = to_extra_links(curated.links, limit)
    logger.info(
        f"Curated {len(links)} links from {len(candidates)} candidates",
        extra={"contact_id": contact.id},
    )
    return links
