"""API endpoints for quick captures."""

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile

from contact_engine.api.deps import get_current_owner_id, get_services, read_uploaded_images
from contact_engine.core.capture_lifecycle import CaptureNotFoundError, InvalidCaptureTransition
from contact_engine.core.input_validation import InputValidationError
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_captures import Capture, CaptureSubmitResponse
from contact_engine.core.services import EngineServices
from contact_engine.graphs.capture_graph import (
    WorkspaceAccessError,
    WorkspaceNotFoundError,
    requeue_capture,
    run_capture,
    submit_capture,
)

logger = get_logger(__name__)

router = APIRouter()


def _get_owned_capture(services: EngineServices, capture_id: str, owner_id: str) -> Capture:
    capture = services.captures.get(capture_id)
    if capture is None or capture.owner_id != owner_id:
        raise HTTPException(status_code=404, detail="Capture not found")
    return capture


@router.post("/captures", status_code=202)
async def create_capture(
    background_tasks: BackgroundTasks,
    workspace_id: str | None = Form(default=None),
    text: str = Form(default=""),
    enable_deep_research: bool = Form(default=False),
    image1: UploadFile | None = File(default=None),
    image2: UploadFile | None = File(default=None),
    image3: UploadFile | None = File(default=None),
    image4: UploadFile | None = File(default=None),
    image5: UploadFile | None = File(default=None),
    image6: UploadFile | None = File(default=None),
    owner_id: str = Depends(get_current_owner_id),
    services: EngineServices = Depends(get_services),
) -> CaptureSubmitResponse:
    """
    Submit pasted text and screenshots for extraction.

    The capture is stored in queued status and processed in the background.

    Raises:
        HTTPException 400: If the input is empty, has too many images,
            an unsupported type or an oversized image
        HTTPException 403: If the caller is not a member of the workspace
        HTTPException 404: If the workspace does not exist
        HTTPException 500: If the capture cannot be stored
    """
    images = await read_uploaded_images([image1, image2, image3, image4, image5, image6])

    try:
        capture = submit_capture(
            services,
            owner_id=owner_id,
            workspace_id=workspace_id,
            text=text,
            images=images,
            deep_research=enable_deep_research,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except WorkspaceNotFoundError as e:
        raise HTTPException(status_code=404, detail="Workspace not found") from e
    except WorkspaceAccessError as e:
        raise HTTPException(status_code=403, detail="Not a member of this workspace") from e
    except Exception as e:
        logger.exception("Failed to submit capture")
        raise HTTPException(status_code=500, detail="Failed to submit capture") from e

    background_tasks.add_task(run_capture, services, capture.id)

    return CaptureSubmitResponse(
        capture_id=capture.id,
        image_paths=capture.image_paths,
        status=capture.status,
    )


@router.get("/captures/{capture_id}")
async def get_capture(
    capture_id: str,
    owner_id: str = Depends(get_current_owner_id),
    services: EngineServices = Depends(get_services),
) -> Capture:
    """Get a capture's status and result."""
    return _get_owned_capture(services, capture_id, owner_id)


@router.post("/captures/{capture_id}/retry", status_code=202)
async def retry_capture(
    capture_id: str,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_current_owner_id),
    services: EngineServices = Depends(get_services),
) -> CaptureSubmitResponse:
    """
    Re-run a failed capture.

    Raises:
        HTTPException 404: If the capture does not exist
        HTTPException 409: If the capture is not in error
    """
    _get_owned_capture(services, capture_id, owner_id)

    try:
        capture = requeue_capture(services, capture_id)
    except CaptureNotFoundError as e:
        raise HTTPException(status_code=404, detail="Capture not found") from e
    except InvalidCaptureTransition as e:
        raise HTTPException(
            status_code=409,
            detail=f"Capture is {e.current}; only failed captures can be retried",
        ) from e

    background_tasks.add_task(run_capture, services, capture_id)

    return CaptureSubmitResponse(
        capture_id=capture_id,
        image_paths=capture.image_paths,
        status=capture.status,
    )
