"""LangGraph pipeline turning a queued capture into a draft contact."""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, StateGraph

from contact_engine.chains.extract_contact import extract_contact_from_capture
from contact_engine.core.capture_lifecycle import (
    CaptureNotFoundError,
    can_transition,
    transition_capture,
    utc_now_iso,
)
from contact_engine.core.input_validation import UploadedImage, validate_capture_input
from contact_engine.core.llm import ImageInput
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_captures import Capture
from contact_engine.core.schemas_contacts import IDENTITY_FIELDS, clean_tags
from contact_engine.core.schemas_extraction import ContactExtraction
from contact_engine.core.services import EngineServices
from contact_engine.core.social_followers import followers_to_payload, merge_social_followers
from contact_engine.db.storage import capture_image_path

logger = get_logger(__name__)

MAX_STEPS = 8

_MIME_BY_EXTENSION = {"png": "image/png", "webp": "image/webp"}


class WorkspaceNotFoundError(LookupError):
    """No workspace with the given id."""


class WorkspaceAccessError(PermissionError):
    """Caller is not a member of the target workspace."""


@dataclass
class CaptureState:
    """State for the capture graph."""

    # Input fields
    capture_id: str

    # Processing state
    step_count: int = 0
    capture: Capture | None = None
    extraction: ContactExtraction | None = None
    raw_extraction: Any = None

    # Output
    contact_id: str | None = None
    research_error: str | None = None


def _check_max_steps(state: CaptureState) -> CaptureState:
    """Check and increment step count, raise if exceeded."""
    state.step_count += 1
    if state.step_count > MAX_STEPS:
        raise RuntimeError(f"Graph exceeded max steps ({MAX_STEPS})")
    return state


def _services(config: RunnableConfig) -> EngineServices:
    return config["configurable"]["services"]


def guess_mime_type(path: str) -> str:
    ext = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return _MIME_BY_EXTENSION.get(ext, "image/jpeg")


def build_draft_contact(capture: Capture, extraction: ContactExtraction) -> dict[str, Any]:
    """Contact row created from an initial extraction."""
    extracted = extraction.contact
    now = utc_now_iso()

    data: dict[str, Any] = {
        "owner_id": capture.owner_id,
        "workspace_id": capture.workspace_id,
        "member_ids": list(capture.member_ids),
        "is_draft": True,
        "source_capture_id": capture.id,
        "created_at": now,
        "updated_at": now,
    }
    for field_name in IDENTITY_FIELDS:
        value = getattr(extracted, field_name)
        data[field_name] = (value or "").strip() or None

    data["notes"] = (extracted.notes or "").strip() or None
    data["tags"] = clean_tags(extracted.tags or [])

    followers = merge_social_followers(
        [], [f.model_dump() for f in extracted.social_followers or []]
    )
    data["social_followers"] = followers_to_payload(followers or [])

    data["ai"] = {
        "confidence_by_field": extraction.confidence_by_field,
        "evidence": extraction.evidence,
    }
    data["deep_research_status"] = "queued" if capture.deep_research_requested else "disabled"
    return data


async def start_processing(state: CaptureState, config: RunnableConfig) -> dict[str, Any]:
    """Move the capture from queued to processing."""
    state = _check_max_steps(state)
    services = _services(config)

    capture = transition_capture(services.captures, state.capture_id, "processing")
    return {"capture": capture, "step_count": state.step_count}


async def extract(state: CaptureState, config: RunnableConfig) -> dict[str, Any]:
    """Reload the screenshots and run the extraction pass."""
    state = _check_max_steps(state)
    services = _services(config)

    if not state.capture:
        raise ValueError("Capture not loaded")

    paths = state.capture.image_paths[: services.settings.MAX_CAPTURE_IMAGES]
    blobs = await asyncio.gather(
        *(asyncio.to_thread(services.blobs.load, path) for path in paths)
    )
    images = [
        ImageInput(mime_type=guess_mime_type(path), data=data)
        for path, data in zip(paths, blobs, strict=True)
    ]

    extraction, raw = await extract_contact_from_capture(
        services.model_client,
        text=state.capture.text,
        images=images,
        model=services.settings.EXTRACTION_MODEL,
        capture_id=state.capture_id,
    )
    return {"extraction": extraction, "raw_extraction": raw, "step_count": state.step_count}


async def create_contact(state: CaptureState, config: RunnableConfig) -> dict[str, Any]:
    """Create the draft contact from the extraction."""
    state = _check_max_steps(state)
    services = _services(config)

    if not state.capture or not state.extraction:
        raise ValueError("Capture or extraction not available")

    contact = services.contacts.create(build_draft_contact(state.capture, state.extraction))
    logger.info(
        f"Draft contact {contact.id} created",
        extra={"capture_id": state.capture_id, "contact_id": contact.id},
    )
    return {"contact_id": contact.id, "step_count": state.step_count}


def route_after_contact(state: CaptureState) -> str:
    """Research only when the capture asked for it."""
    if state.capture and state.capture.deep_research_requested:
        return "research"
    return "finalize"


async def research(state: CaptureState, config: RunnableConfig) -> dict[str, Any]:
    """Run deep research; its failure is recorded on the contact only."""
    state = _check_max_steps(state)
    services = _services(config)

    if not state.contact_id:
        raise ValueError("Contact not created")

    transition_capture(
        services.captures,
        state.capture_id,
        "researching",
        result_contact_id=state.contact_id,
        raw_extraction=state.raw_extraction,
    )

    research_error: str | None = None
    try:
        contact = services.contacts.get(state.contact_id)
        if contact is None:
            raise ValueError(f"Contact {state.contact_id} disappeared before research")
        await services.orchestrator().run(contact)
    except Exception as e:
        research_error = str(e) or "Deep research failed"
        logger.warning(
            f"Deep research failed, capture continues: {research_error}",
            extra={"capture_id": state.capture_id, "contact_id": state.contact_id},
        )

    return {"research_error": research_error, "step_count": state.step_count}


async def finalize(state: CaptureState, config: RunnableConfig) -> dict[str, Any]:
    """Mark the capture ready with its resulting contact."""
    state = _check_max_steps(state)
    services = _services(config)

    transition_capture(
        services.captures,
        state.capture_id,
        "ready",
        result_contact_id=state.contact_id,
        raw_extraction=state.raw_extraction,
    )
    return {"step_count": state.step_count}


def _build_graph() -> StateGraph:
    """Build the capture graph."""
    graph = StateGraph(CaptureState)

    graph.add_node("start_processing", start_processing)
    graph.add_node("extract", extract)
    graph.add_node("create_contact", create_contact)
    graph.add_node("research", research)
    graph.add_node("finalize", finalize)

    graph.set_entry_point("start_processing")
    graph.add_edge("start_processing", "extract")
    graph.add_edge("extract", "create_contact")
    graph.add_conditional_edges("create_contact", route_after_contact, ["research", "finalize"])
    graph.add_edge("research", "finalize")
    graph.add_edge("finalize", END)

    return graph


# Compile the graph once at module load
_compiled_graph = _build_graph().compile()


def _fail_capture(services: EngineServices, capture_id: str, message: str) -> None:
    capture = services.captures.get(capture_id)
    if capture is None or not can_transition(capture.status, "error"):
        logger.warning(
            f"Capture failed but cannot be moved to error from {capture and capture.status}",
            extra={"capture_id": capture_id},
        )
        return
    transition_capture(services.captures, capture_id, "error", error=message)


async def run_capture(services: EngineServices, capture_id: str) -> Capture | None:
    """
    Drive a queued capture to a terminal status.

    Any failure while processing moves the capture to error with the message.
    A deep-research failure does not: the capture still becomes ready.

    Args:
        services: Engine collaborators
        capture_id: Capture to process

    Returns:
        The capture as stored after the run
    """
    logger.info("Starting capture graph", extra={"capture_id": capture_id})

    try:
        await _compiled_graph.ainvoke(
            CaptureState(capture_id=capture_id),
            config={"configurable": {"services": services}},
        )
    except CaptureNotFoundError:
        logger.error("Capture not found", extra={"capture_id": capture_id})
        return None
    except Exception as e:
        message = str(e) or "Processing failed"
        logger.error(f"Capture processing failed: {message}", extra={"capture_id": capture_id})
        _fail_capture(services, capture_id, message)

    capture = services.captures.get(capture_id)
    logger.info(
        f"Capture graph finished with status {capture.status if capture else None}",
        extra={"capture_id": capture_id},
    )
    return capture


def submit_capture(
    services: EngineServices,
    *,
    owner_id: str,
    workspace_id: str | None,
    text: str | None,
    images: list[UploadedImage],
    deep_research: bool = False,
) -> Capture:
    """
    Validate and store a new capture in queued status.

    Screenshots are written to users/{owner}/captures/{capture}/img_{n}.{ext}.
    A capture filed into a workspace carries that workspace's member ids.

    Raises:
        InputValidationError: If the input fails validation (nothing stored)
        WorkspaceNotFoundError: If workspace_id names no workspace
        WorkspaceAccessError: If the owner is not a member of the workspace
    """
    settings = services.settings
    clean_text = validate_capture_input(
        text,
        images,
        max_images=settings.MAX_CAPTURE_IMAGES,
        max_image_bytes=settings.MAX_IMAGE_BYTES,
    )

    member_ids: list[str] = []
    if workspace_id:
        workspace_members = services.workspaces.get_member_ids(workspace_id)
        if workspace_members is None:
            raise WorkspaceNotFoundError(f"Workspace {workspace_id} not found")
        if owner_id not in workspace_members:
            raise WorkspaceAccessError(f"Not a member of workspace {workspace_id}")
        member_ids = workspace_members

    capture_id = str(uuid.uuid4())
    image_paths: list[str] = []
    for index, image in enumerate(images, start=1):
        path = capture_image_path(owner_id, capture_id, index, image.extension)
        services.blobs.save(path, image.data, image.content_type)
        image_paths.append(path)

    now = utc_now_iso()
    capture = services.captures.create(
        {
            "id": capture_id,
            "owner_id": owner_id,
            "workspace_id": workspace_id,
            "member_ids": member_ids,
            "text": clean_text,
            "image_paths": image_paths,
            "status": "queued",
            "error": None,
            "deep_research_requested": deep_research,
            "created_at": now,
            "updated_at": now,
        }
    )
    logger.info(
        f"Capture queued with {len(image_paths)} images",
        extra={"capture_id": capture_id, "owner_id": owner_id},
    )
    return capture


def requeue_capture(services: EngineServices, capture_id: str) -> Capture:
    """
    Move a failed capture back to queued.

    Raises:
        CaptureNotFoundError: If the capture does not exist
        InvalidCaptureTransition: If the capture is not in error
    """
    return transition_capture(services.captures, capture_id, "queued")


async def retry_capture(services: EngineServices, capture_id: str) -> Capture | None:
    """Re-queue a failed capture and run it again."""
    requeue_capture(services, capture_id)
    return await run_capture(services, capture_id)
