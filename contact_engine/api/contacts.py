"""API endpoints for contact ingest and deep research."""

from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from contact_engine.agents.deep_research import DeepResearchError
from contact_engine.api.deps import get_current_owner_id, get_services, read_uploaded_images
from contact_engine.core.contact_ingest import (
    ContactAccessError,
    ContactNotFoundError,
    ingest_contact_info,
)
from contact_engine.core.input_validation import InputValidationError
from contact_engine.core.llm import ModelOutputError
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import Contact
from contact_engine.core.schemas_research import ResearchEvent, encode_event
from contact_engine.core.services import EngineServices

logger = get_logger(__name__)

router = APIRouter()


def _get_accessible_contact(services: EngineServices, contact_id: str, owner_id: str) -> Contact:
    contact = services.contacts.get(contact_id)
    if contact is None:
        raise HTTPException(status_code=404, detail="Contact not found")
    if not contact.can_be_edited_by(owner_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    return contact


@router.post("/contacts/{contact_id}/ingest")
async def ingest_contact(
    contact_id: str,
    text: str = Form(default=""),
    force: bool = Form(default=False),
    enable_deep_research: bool = Form(default=False),
    image1: UploadFile | None = File(default=None),
    image2: UploadFile | None = File(default=None),
    image3: UploadFile | None = File(default=None),
    image4: UploadFile | None = File(default=None),
    image5: UploadFile | None = File(default=None),
    image6: UploadFile | None = File(default=None),
    owner_id: str = Depends(get_current_owner_id),
    services: EngineServices = Depends(get_services),
):
    """
    Add pasted text and screenshots to an existing contact.

    Returns:
        200 with the applied fields, or 409 with the detected conflicts
        when the new info looks like a different person and force is off

    Raises:
        HTTPException 400: If the input fails validation
        HTTPException 403: If the caller may not edit the contact
        HTTPException 404: If the contact does not exist
        HTTPException 502: If the model output cannot be validated
    """
    images = await read_uploaded_images([image1, image2, image3, image4, image5, image6])
    settings = services.settings

    try:
        result = await ingest_contact_info(
            contacts=services.contacts,
            model_client=services.model_client,
            contact_id=contact_id,
            owner_id=owner_id,
            text=text,
            images=images,
            force=force,
            deep_research=enable_deep_research,
            model=settings.EXTRACTION_MODEL,
            max_images=settings.MAX_CAPTURE_IMAGES,
            max_image_bytes=settings.MAX_IMAGE_BYTES,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ContactNotFoundError as e:
        raise HTTPException(status_code=404, detail="Contact not found") from e
    except ContactAccessError as e:
        raise HTTPException(status_code=403, detail="Forbidden") from e
    except ModelOutputError as e:
        logger.warning(f"Ingest extraction failed: {e}", extra={"contact_id": contact_id})
        raise HTTPException(status_code=502, detail=str(e)) from e
    except Exception as e:
        logger.exception("Contact ingest failed", extra={"contact_id": contact_id})
        raise HTTPException(status_code=500, detail="Ingest failed") from e

    if result.blocked:
        return JSONResponse(
            status_code=409,
            content={
                "error": "Conflicts detected",
                "conflicts": [c.model_dump() for c in result.conflicts],
            },
        )

    return result.model_dump(exclude={"conflicts"})


async def _ndjson(events: AsyncIterator[ResearchEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield encode_event(event)


@router.post("/contacts/{contact_id}/deep-research/stream")
async def stream_deep_research(
    contact_id: str,
    owner_id: str = Depends(get_current_owner_id),
    services: EngineServices = Depends(get_services),
) -> StreamingResponse:
    """
    Run deep research for a contact, streaming NDJSON progress events.

    Event types: status, reasoning, content, sources, done, error.
    """
    contact = _get_accessible_contact(services, contact_id, owner_id)

    logger.info("Starting streamed deep research", extra={"contact_id": contact_id})

    return StreamingResponse(
        _ndjson(services.orchestrator().stream(contact)),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache, no-transform"},
    )


@router.post("/contacts/{contact_id}/deep-research")
async def run_deep_research(
    contact_id: str,
    owner_id: str = Depends(get_current_owner_id),
    services: EngineServices = Depends(get_services),
) -> dict:
    """
    Run deep research for a contact and wait for it to finish.

    Raises:
        HTTPException 500: If research or enrichment failed
    """
    contact = _get_accessible_contact(services, contact_id, owner_id)

    try:
        await services.orchestrator().run(contact)
    except DeepResearchError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    return {"ok": True}
