"""Capture state machine and retention sweep.

Status flow:

    queued -> processing -> researching -> ready
                        \\-> ready
    processing | researching -> error
    error -> queued (retry)
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from contact_engine.core.logging import get_logger, log_with_context
from contact_engine.core.schemas_captures import Capture, CaptureStatus
from contact_engine.db.captures import CaptureStore
from contact_engine.db.storage import BlobStore

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "queued": frozenset({"processing"}),
    "processing": frozenset({"researching", "ready", "error"}),
    "researching": frozenset({"ready", "error"}),
    "ready": frozenset(),
    "error": frozenset({"queued"}),
}


class InvalidCaptureTransition(RuntimeError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, capture_id: str | None, current: str, target: str):
        self.capture_id = capture_id
        self.current = current
        self.target = target
        super().__init__(f"Capture {capture_id} cannot move from {current} to {target}")


class CaptureNotFoundError(LookupError):
    """No capture with the given id."""


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition_capture(
    store: CaptureStore,
    capture_id: str,
    target: CaptureStatus,
    **fields: Any,
) -> Capture:
    """
    Move a capture to a new status, writing any extra fields in the same update.

    Args:
        store: Capture record store
        capture_id: Capture id
        target: Status to enter
        **fields: Extra columns (error, result_contact_id, raw_extraction, ...)

    Returns:
        The updated capture

    Raises:
        CaptureNotFoundError: If the capture does not exist
        InvalidCaptureTransition: If the move is not allowed
    """
    capture = store.get(capture_id)
    if capture is None:
        raise CaptureNotFoundError(f"Capture {capture_id} not found")

    if not can_transition(capture.status, target):
        raise InvalidCaptureTransition(capture_id, capture.status, target)

    patch = {"status": target, "updated_at": utc_now_iso(), **fields}
    # error is cleared on every non-error transition
    if target != "error":
        patch.setdefault("error", None)

    updated = store.update(capture_id, patch)
    logger.info(
        f"Capture {capture.status} -> {target}",
        extra={"capture_id": capture_id, "stage": target},
    )
    return updated


def cleanup_old_capture_images(
    captures: CaptureStore,
    blobs: BlobStore,
    *,
    older_than_days: int = 30,
    limit: int = 200,
) -> dict[str, int]:
    """
    Delete stored capture screenshots older than the retention window.

    Per-image delete failures are logged and ignored. Every selected capture
    has its image_paths cleared and images_deleted_at stamped, including
    captures that never held images, so they drop out of the next sweep.

    Returns:
        Dict with counts of captures and images processed
    """
    cutoff = (datetime.now(UTC) - timedelta(days=older_than_days)).isoformat()
    candidates = captures.list_uncleaned_before(cutoff, limit)

    results = {"captures_cleaned": 0, "images_deleted": 0, "image_delete_failures": 0}

    for capture in candidates:
        if not capture.id:
            continue
        for path in capture.image_paths:
            try:
                blobs.delete(path)
                results["images_deleted"] += 1
            except Exception as e:
                results["image_delete_failures"] += 1
                logger.warning(
                    f"Failed to delete capture image {path}: {e}",
                    extra={"capture_id": capture.id},
                )

        now = utc_now_iso()
        captures.update(
            capture.id,
            {"image_paths": [], "images_deleted_at": now, "updated_at": now},
        )
        results["captures_cleaned"] += 1

    log_with_context(logger, logging.INFO, "Capture image cleanup complete", **results)
    return results
