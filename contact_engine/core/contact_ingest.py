"""Add new pasted information to an existing contact."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from contact_engine.chains.extract_contact import extract_contact_update
from contact_engine.core.contact_merge import merge_contact_fields
from contact_engine.core.input_validation import UploadedImage, validate_capture_input
from contact_engine.core.llm import ModelClient
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import ConflictRecord
from contact_engine.db.contacts import ContactStore

logger = get_logger(__name__)


class ContactNotFoundError(LookupError):
    """No contact with the given id."""


class ContactAccessError(PermissionError):
    """Caller is neither the owner nor a member of the contact."""


class IngestResult(BaseModel):
    """Outcome of an ingest call; conflicts set means nothing was written."""

    success: bool
    applied_fields: list[str] = Field(default_factory=list)
    deep_research_queued: bool = False
    message: str | None = None
    conflicts: list[ConflictRecord] = Field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return not self.success and bool(self.conflicts)


async def ingest_contact_info(
    *,
    contacts: ContactStore,
    model_client: ModelClient,
    contact_id: str,
    owner_id: str,
    text: str | None,
    images: list[UploadedImage],
    force: bool = False,
    deep_research: bool = False,
    model: str | None = None,
    max_images: int = 6,
    max_image_bytes: int = 10 * 1024 * 1024,
) -> IngestResult:
    """
    Extract new info about a contact and merge it in.

    Args:
        contacts: Contact store
        model_client: Chat collaborator for the extraction pass
        contact_id: Contact to update
        owner_id: Caller id (must be owner or member)
        text: New pasted text
        images: New screenshots
        force: Overwrite differing fields and ignore conflicts
        deep_research: Queue deep research after the merge

    Returns:
        IngestResult; when conflicts block the merge, success is False

    Raises:
        InputValidationError: If the input fails validation
        ContactNotFoundError: If the contact does not exist
        ContactAccessError: If the caller may not edit the contact
        ModelOutputError: If extraction output cannot be validated
    """
    clean_text = validate_capture_input(
        text, images, max_images=max_images, max_image_bytes=max_image_bytes
    )

    existing = contacts.get(contact_id)
    if existing is None:
        raise ContactNotFoundError(f"Contact {contact_id} not found")
    if not existing.can_be_edited_by(owner_id):
        raise ContactAccessError(f"User {owner_id} cannot edit contact {contact_id}")

    extraction = await extract_contact_update(
        model_client,
        existing=existing,
        text=clean_text,
        images=[image.to_model_input() for image in images],
        model=model,
    )

    result = merge_contact_fields(existing, extraction.contact, force=force)
    if result.blocked:
        logger.info(
            f"Ingest blocked by {len(result.conflicts)} conflicts",
            extra={"contact_id": contact_id, "stage": "ingest"},
        )
        return IngestResult(success=False, conflicts=result.conflicts)

    write: dict[str, Any] = dict(result.patch)
    if deep_research:
        write["deep_research_status"] = "queued"
        write["deep_research_error"] = None

    if write:
        write["updated_at"] = datetime.now(UTC).isoformat()
        contacts.update(contact_id, write)

    logger.info(
        f"Ingest applied {len(result.applied_fields)} fields",
        extra={"contact_id": contact_id, "stage": "ingest"},
    )
    return IngestResult(
        success=True,
        applied_fields=result.applied_fields,
        deep_research_queued=deep_research,
        message="Info applied." if result.has_changes else "No new fields to apply.",
    )
