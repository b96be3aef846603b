"""Tests for the research brief and the Perplexity client with a mocked SDK."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from contact_engine.core.schemas_contacts import Contact
from contact_engine.services.perplexity import PerplexityResearchClient, build_research_brief


def make_completion(payload: dict) -> MagicMock:
    completion = MagicMock()
    completion.model_dump.return_value = payload
    return completion


def make_sdk(create: AsyncMock) -> MagicMock:
    sdk = MagicMock()
    sdk.chat.completions.create = create
    return sdk


class TestBuildResearchBrief:
    def test_only_known_fields_listed(self) -> None:
        contact = Contact(
            owner_id="u",
            first_name="Jane",
            last_name="Doe",
            company_name="Acme",
            email="  ",
            location="Berlin",
        )

        brief = build_research_brief(contact)

        assert "Name: Jane Doe" in brief
        assert "Company: Acme" in brief
        assert "Location: Berlin" in brief
        assert "Email:" not in brief
        assert "Job Title:" not in brief
        assert brief.endswith("Provide a comprehensive research report with sources and citations.")

    def test_full_name_preferred(self) -> None:
        contact = Contact(owner_id="u", full_name="Dr. Jane Doe", first_name="Jane")
        assert "Name: Dr. Jane Doe" in build_research_brief(contact)


@pytest.mark.asyncio
class TestPerplexityResearchClient:
    async def test_research_returns_composed_result(self, settings) -> None:
        create = AsyncMock(
            return_value=make_completion(
                {
                    "choices": [{"message": {"content": "Report text"}}],
                    "search_results": [{"title": "Acme", "url": "https://acme.com"}],
                    "images": [{"image_url": "https://img.example.com/a.jpg"}],
                }
            )
        )
        client = PerplexityResearchClient(settings, client=make_sdk(create))

        result = await client.research("brief")

        assert result.content == "Report text"
        assert result.search_results[0].url == "https://acme.com"
        assert result.images[0].source == "https://img.example.com/a.jpg"

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == settings.PERPLEXITY_MODEL
        assert kwargs["messages"] == [{"role": "user", "content": "brief"}]
        assert kwargs["extra_body"]["return_images"] is True
        assert len(kwargs["extra_body"]["image_domain_filter"]) <= 10

    async def test_empty_content_raises(self, settings) -> None:
        create = AsyncMock(return_value=make_completion({"choices": [{"message": {}}]}))
        client = PerplexityResearchClient(settings, client=make_sdk(create))

        with pytest.raises(RuntimeError, match="empty content"):
            await client.research("brief")

    async def test_stream_yields_chunk_dicts(self, settings) -> None:
        chunks = [
            make_completion({"object": "chat.reasoning"}),
            make_completion({"object": "chat.completion.chunk"}),
        ]

        async def stream():
            for chunk in chunks:
                yield chunk

        create = AsyncMock(return_value=stream())
        client = PerplexityResearchClient(settings, client=make_sdk(create))

        received = [chunk async for chunk in client.stream_research("brief")]

        assert [c["object"] for c in received] == ["chat.reasoning", "chat.completion.chunk"]
        kwargs = create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["extra_body"]["stream_mode"] == "concise"
