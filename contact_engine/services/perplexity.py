"""Deep-research client over Perplexity's OpenAI-compatible API."""

from collections.abc import AsyncIterator
from typing import Any, Protocol

from openai import AsyncOpenAI

from contact_engine.core.config import Settings
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import Contact
from contact_engine.core.schemas_research import ResearchResult

logger = get_logger(__name__)


RESEARCH_INSTRUCTIONS = """Conduct deep research on the following person. Find comprehensive information including:
- Professional background and career history
- Current role and responsibilities
- Company information and industry
- Social media profiles (LinkedIn, Twitter, etc.)
- Recent news, publications, or mentions
- Professional achievements and notable work
- Educational background if available
- Any other relevant professional or public information"""


def build_research_brief(contact: Contact) -> str:
    """
    Assemble the research brief from the contact's known identity.

    Only non-empty fields are included. Name is the full name, or first + last.
    """
    parts: list[str] = []

    name = contact.display_name()
    if name:
        parts.append(f"Name: {name}")

    labelled = [
        ("Company", contact.company_name),
        ("Job Title", contact.job_title),
        ("Email", contact.email),
        ("LinkedIn", contact.linkedin_url),
        ("Website", contact.website),
        ("Location", contact.location),
    ]
    for label, value in labelled:
        if value and value.strip():
            parts.append(f"{label}: {value.strip()}")

    return "\n".join(
        [
            RESEARCH_INSTRUCTIONS,
            "",
            "Person to research:",
            "\n".join(parts),
            "",
            "Provide a comprehensive research report with sources and citations.",
        ]
    )


class ResearchClient(Protocol):
    """Research-service collaborator. stream_research is optional."""

    async def research(self, brief: str) -> ResearchResult: ...


class PerplexityResearchClient:
    """ResearchClient with both the batch and the concise streaming backend."""

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None):
        self.settings = settings
        self._client = client or AsyncOpenAI(
            api_key=settings.PERPLEXITY_API_KEY,
            base_url=settings.PERPLEXITY_BASE_URL,
            timeout=settings.RESEARCH_TIMEOUT_SECONDS,
        )

    def _image_options(self) -> dict[str, Any]:
        return {
            "return_images": self.settings.PERPLEXITY_RETURN_IMAGES,
            "image_domain_filter": self.settings.PERPLEXITY_IMAGE_DOMAIN_FILTER[:10],
            "image_format_filter": [
                f.lower() for f in self.settings.PERPLEXITY_IMAGE_FORMAT_FILTER[:10]
            ],
        }

    async def research(self, brief: str) -> ResearchResult:
        """
        Run one deep-research request and wait for the composed answer.

        Raises:
            RuntimeError: If the service returns empty content
        """
        completion = await self._client.chat.completions.create(
            model=self.settings.PERPLEXITY_MODEL,
            messages=[{"role": "user", "content": brief}],
            extra_body=self._image_options(),
        )
        payload = completion.model_dump()
        choices = payload.get("choices") or []
        content = ((choices[0].get("message") or {}).get("content") if choices else None) or ""
        if not content:
            raise RuntimeError("Deep research returned empty content")

        return ResearchResult(
            content=content,
            search_results=payload.get("search_results") or [],
            images=payload.get("images") or [],
        )

    async def stream_research(self, brief: str) -> AsyncIterator[dict[str, Any]]:
        """Yield raw stream chunks (chat.reasoning, chat.completion.chunk, ...) as dicts."""
        stream = await self._client.chat.completions.create(
            model=self.settings.PERPLEXITY_MODEL,
            messages=[{"role": "user", "content": brief}],
            stream=True,
            extra_body={**self._image_options(), "stream_mode": "concise"},
        )
        async for chunk in stream:
            yield chunk.model_dump()
