"""Deep-Research Orchestrator.

Phases:
- Research: brief from the contact's identity, streamed or batch research,
  research images persisted, raw artifacts saved
- Enrichment: structured patch from the research text
- Post-processing: notes/summary, tags, followers, curated links, final write

Progress is reported as typed events; the contact is never left "running".
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

import httpx

from contact_engine.chains.curate_links import curate_extra_links
from contact_engine.chains.enrich_contact import enrich_contact
from contact_engine.core.config import Settings
from contact_engine.core.llm import ModelClient
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import (
    IDENTITY_FIELDS,
    Contact,
    ExtraLink,
    SearchResult,
    clean_tags,
)
from contact_engine.core.schemas_extraction import ContactEnrichment
from contact_engine.core.schemas_research import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ReasoningEvent,
    ResearchEvent,
    ResearchImageRef,
    ResearchResult,
    SourcesEvent,
    StatusEvent,
)
from contact_engine.core.social_followers import followers_to_payload, merge_social_followers
from contact_engine.db.contacts import ContactStore
from contact_engine.db.storage import BlobStore
from contact_engine.services.perplexity import ResearchClient, build_research_brief
from contact_engine.services.research_images import persist_research_images

logger = get_logger(__name__)

INTERRUPTED_MESSAGE = "Deep research was interrupted before completion"


class DeepResearchError(RuntimeError):
    """Deep research ended with an error event."""


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ResearchStreamAccumulator:
    """
    Folds raw research stream chunks into events and one composed result.

    Chunk objects:
    - chat.reasoning: reasoning steps (thoughts)
    - chat.reasoning.done: images and search results; answer generation starts
    - chat.completion.chunk: a content delta
    - chat.completion.done: final message (replaces the accumulated text),
      images and search results
    """

    def __init__(self) -> None:
        self.content = ""
        self.search_results: list[SearchResult] = []
        self.images: list[ResearchImageRef] = []
        self.generating = False

    def _start_generating(self) -> list[ResearchEvent]:
        if self.generating:
            return []
        self.generating = True
        return [StatusEvent(stage="generating")]

    def _take_artifacts(self, chunk: dict[str, Any]) -> list[ResearchEvent]:
        events: list[ResearchEvent] = []
        images = chunk.get("images")
        if isinstance(images, list):
            self.images = [ResearchImageRef.model_validate(i) for i in images if isinstance(i, dict)]
        results = chunk.get("search_results")
        if isinstance(results, list):
            self.search_results = [
                SearchResult.model_validate(r) for r in results if isinstance(r, dict)
            ]
            events.append(SourcesEvent(sources=self.search_results))
        return events

    def feed(self, chunk: dict[str, Any]) -> list[ResearchEvent]:
        """Consume one chunk and return the events it produces, in order."""
        kind = chunk.get("object")
        choices = chunk.get("choices") or []
        first = choices[0] if choices and isinstance(choices[0], dict) else {}
        delta = first.get("delta") or {}
        events: list[ResearchEvent] = []

        if kind == "chat.reasoning":
            for step in delta.get("reasoning_steps") or []:
                thought = step.get("thought") if isinstance(step, dict) else None
                if isinstance(thought, str) and thought.strip():
                    events.append(ReasoningEvent(text=thought))

        elif kind == "chat.reasoning.done":
            events.extend(self._start_generating())
            events.extend(self._take_artifacts(chunk))

        elif kind == "chat.completion.chunk":
            text = delta.get("content")
            if isinstance(text, str) and text:
                events.extend(self._start_generating())
                self.content += text
                events.append(ContentEvent(text=text))

        elif kind == "chat.completion.done":
            message = first.get("message") or {}
            final = message.get("content")
            if isinstance(final, str) and final.strip():
                self.content = final
            events.extend(self._take_artifacts(chunk))

        return events

    def result(self) -> ResearchResult:
        return ResearchResult(
            content=self.content,
            search_results=self.search_results,
            images=self.images,
        )


def build_enrichment_patch(
    contact: Contact,
    enrichment: ContactEnrichment,
    curated_links: list[ExtraLink],
) -> dict[str, Any]:
    """
    Turn an enrichment into the final contact write.

    Identity fields are applied only when non-empty. An explicit non-empty
    notes value wins over the summary; otherwise the summary becomes notes.
    Tags are unioned with the stored tags and followers go through the
    platform merge. Curated links replace the stored extra links.
    """
    patch: dict[str, Any] = {}
    contact_patch = enrichment.contact_patch

    for field_name in IDENTITY_FIELDS:
        value = getattr(contact_patch, field_name)
        if isinstance(value, str) and value.strip():
            patch[field_name] = value.strip()

    summary = (enrichment.summary or "").strip() or None
    explicit_notes = (contact_patch.notes or "").strip()
    if explicit_notes:
        patch["notes"] = explicit_notes
    elif summary:
        patch["notes"] = summary

    if contact_patch.tags:
        patch["tags"] = clean_tags([*contact.tags, *contact_patch.tags])

    merged = merge_social_followers(
        contact.social_followers,
        [f.model_dump() for f in enrichment.social_followers],
    )
    if merged is not None:
        patch["social_followers"] = followers_to_payload(merged)

    patch["deep_research_summary"] = summary
    patch["research_fields"] = enrichment.research_fields
    patch["extra_links"] = [link.model_dump() for link in curated_links]
    return patch


class DeepResearchOrchestrator:
    """Runs research, enrichment and link curation for one contact."""

    def __init__(
        self,
        *,
        model_client: ModelClient,
        research_client: ResearchClient,
        contacts: ContactStore,
        blobs: BlobStore,
        settings: Settings,
        http: httpx.AsyncClient | None = None,
        use_streaming: bool | None = None,
    ):
        self.model_client = model_client
        self.research_client = research_client
        self.contacts = contacts
        self.blobs = blobs
        self.settings = settings
        self.http = http
        self.use_streaming = (
            settings.RESEARCH_STREAMING_ENABLED if use_streaming is None else use_streaming
        )

    @property
    def streams(self) -> bool:
        """True when the streaming backend will be used."""
        return self.use_streaming and callable(
            getattr(self.research_client, "stream_research", None)
        )

    def _update(self, contact_id: str, patch: dict[str, Any]) -> None:
        self.contacts.update(contact_id, {**patch, "updated_at": _utc_now_iso()})

    def _mark_error(self, contact_id: str, message: str) -> None:
        try:
            self._update(
                contact_id,
                {"deep_research_status": "error", "deep_research_error": message},
            )
        except Exception:
            logger.exception(
                "Failed to record deep research error",
                extra={"contact_id": contact_id},
            )

    async def _research(
        self, brief: str, accumulator: ResearchStreamAccumulator
    ) -> AsyncIterator[ResearchEvent]:
        if self.streams:
            async for chunk in self.research_client.stream_research(brief):
                for event in accumulator.feed(chunk):
                    yield event
            return

        yield StatusEvent(stage="generating")
        accumulator.generating = True
        result = await self.research_client.research(brief)
        accumulator.content = result.content
        accumulator.search_results = result.search_results
        accumulator.images = result.images
        if result.search_results:
            yield SourcesEvent(sources=result.search_results)
        if result.content:
            yield ContentEvent(text=result.content)

    async def stream(self, contact: Contact) -> AsyncIterator[ResearchEvent]:
        """
        Run deep research for a contact, yielding progress events.

        Events come in the order status, reasoning/content/sources, then
        exactly one of done or error. If the consumer stops iterating early
        the contact is still moved to a terminal error status.
        """
        if not contact.id:
            raise ValueError("Contact must be persisted before deep research")

        contact_id = contact.id
        log_extra = {"contact_id": contact_id, "owner_id": contact.owner_id}
        finished = False

        try:
            yield StatusEvent(stage="starting")
            self._update(
                contact_id,
                {"deep_research_status": "running", "deep_research_error": None},
            )
            logger.info("Deep research started", extra={**log_extra, "stage": "starting"})

            yield StatusEvent(stage="searching")
            brief = build_research_brief(contact)
            accumulator = ResearchStreamAccumulator()
            async for event in self._research(brief, accumulator):
                yield event

            research = accumulator.result()
            if not research.content.strip():
                raise RuntimeError("Deep research returned empty content")

            yield StatusEvent(stage="saving")
            images = await persist_research_images(
                self.blobs,
                owner_id=contact.owner_id,
                contact_id=contact_id,
                images=research.images,
                max_images=self.settings.MAX_RESEARCH_IMAGES,
                timeout=self.settings.IMAGE_FETCH_TIMEOUT_SECONDS,
                http=self.http,
            )
            self._update(
                contact_id,
                {
                    "deep_research_raw": research.content,
                    "deep_research_sources": [
                        r.model_dump(exclude_none=True) for r in research.search_results
                    ],
                    "research_images": [i.model_dump() for i in images],
                    "deep_research_prompt": brief,
                },
            )

            yield StatusEvent(stage="enriching")
            enrichment = await enrich_contact(
                self.model_client,
                contact=contact,
                research_text=research.content,
                search_results=research.search_results,
                model=self.settings.ENRICHMENT_MODEL,
            )
            curated = await curate_extra_links(
                self.model_client,
                contact=contact,
                research_text=research.content,
                sources=research.search_results,
                enrichment_links=enrichment.extra_links,
                existing_links=contact.extra_links,
                max_links=self.settings.MAX_EXTRA_LINKS,
                max_candidates=self.settings.MAX_LINK_CANDIDATES,
                model=self.settings.CURATION_MODEL,
            )

            patch = build_enrichment_patch(contact, enrichment, curated)
            patch["deep_research_status"] = "done"
            patch["deep_research_error"] = None
            self._update(contact_id, patch)
            finished = True

            logger.info(
                f"Deep research done ({len(curated)} links)",
                extra={**log_extra, "stage": "done"},
            )
            yield DoneEvent()

        except Exception as e:
            message = str(e).strip() or "Deep research failed"
            logger.error(f"Deep research failed: {message}", extra=log_extra)
            self._mark_error(contact_id, message)
            finished = True
            yield ErrorEvent(message=message)

        finally:
            if not finished:
                logger.warning("Deep research stream closed early", extra=log_extra)
                self._mark_error(contact_id, INTERRUPTED_MESSAGE)

    async def run(self, contact: Contact) -> None:
        """
        Drain the event stream (non-streaming callers).

        Raises:
            DeepResearchError: If the run ended with an error event
        """
        error: ErrorEvent | None = None
        async for event in self.stream(contact):
            if isinstance(event, ErrorEvent):
                error = event
        if error is not None:
            raise DeepResearchError(error.message)
