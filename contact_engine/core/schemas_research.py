"""Research results and the NDJSON progress protocol for deep research."""

import json
from collections.abc import AsyncIterator, Iterable
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from contact_engine.core.schemas_contacts import SearchResult

ResearchStage = Literal["starting", "searching", "generating", "saving", "enriching"]


class ResearchImageRef(BaseModel):
    """Image reference returned by the research service."""

    model_config = ConfigDict(extra="ignore")

    image_url: str | None = None
    url: str | None = None
    title: str | None = None

    @property
    def source(self) -> str | None:
        return self.image_url or self.url


class ResearchResult(BaseModel):
    """One composed research answer (batch backend, or an assembled stream)."""

    content: str = ""
    search_results: list[SearchResult] = Field(default_factory=list)
    images: list[ResearchImageRef] = Field(default_factory=list)


# === PROGRESS EVENTS ===


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    stage: ResearchStage


class ReasoningEvent(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str


class ContentEvent(BaseModel):
    type: Literal["content"] = "content"
    text: str


class SourcesEvent(BaseModel):
    type: Literal["sources"] = "sources"
    sources: list[SearchResult] = Field(default_factory=list)


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    ok: Literal[True] = True


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


ResearchEvent = Annotated[
    StatusEvent | ReasoningEvent | ContentEvent | SourcesEvent | DoneEvent | ErrorEvent,
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[ResearchEvent] = TypeAdapter(ResearchEvent)


def encode_event(event: BaseModel) -> str:
    """Serialize one event as an NDJSON line."""
    return event.model_dump_json(exclude_none=True) + "\n"


def decode_event(line: str | bytes) -> ResearchEvent | None:
    """Parse one NDJSON line, returning None for blank or unknown records."""
    if isinstance(line, bytes):
        line = line.decode("utf-8")
    line = line.strip()
    if not line:
        return None
    try:
        return _event_adapter.validate_python(json.loads(line))
    except (json.JSONDecodeError, ValidationError):
        return None


def iter_research_events(lines: Iterable[str | bytes]) -> Iterable[ResearchEvent]:
    """Yield known events from an NDJSON line stream, skipping anything else."""
    for line in lines:
        event = decode_event(line)
        if event is not None:
            yield event


async def aiter_research_events(lines: AsyncIterator[str]) -> AsyncIterator[ResearchEvent]:
    """Async variant of iter_research_events (e.g. httpx Response.aiter_lines)."""
    async for line in lines:
        event = decode_event(line)
        if event is not None:
            yield event


def collect_research_text(events: Iterable[Any]) -> str:
    """Concatenate content events in emission order."""
    return "".join(e.text for e in events if isinstance(e, ContentEvent))
