"""Capture record operations."""

from typing import Any, Protocol

from supabase import Client

from contact_engine.core.config import get_settings
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_captures import Capture
from contact_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)


class CaptureStore(Protocol):
    """Document-store collaborator for captures."""

    def get(self, capture_id: str) -> Capture | None: ...

    def create(self, data: dict[str, Any]) -> Capture: ...

    def update(self, capture_id: str, patch: dict[str, Any]) -> Capture: ...

    def list_uncleaned_before(self, cutoff_iso: str, limit: int) -> list[Capture]: ...


class SupabaseCaptureStore:
    """CaptureStore backed by a Supabase table."""

    def __init__(self, client: Client | None = None, table: str | None = None):
        self._client = client
        self.table = table or get_settings().CAPTURES_TABLE

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def get(self, capture_id: str) -> Capture | None:
        response = (
            self.client.table(self.table).select("*").eq("id", capture_id).limit(1).execute()
        )
        if not response.data:
            return None
        return Capture.model_validate(response.data[0])

    def create(self, data: dict[str, Any]) -> Capture:
        try:
            response = self.client.table(self.table).insert(data).execute()
            if not response.data:
                raise ValueError("No data returned from capture insert")
            capture = Capture.model_validate(response.data[0])
            logger.info(f"Created capture {capture.id}", extra={"capture_id": capture.id})
            return capture
        except Exception as e:
            logger.error(f"Failed to create capture: {e}")
            raise

    def update(self, capture_id: str, patch: dict[str, Any]) -> Capture:
        try:
            response = (
                self.client.table(self.table).update(patch).eq("id", capture_id).execute()
            )
            if not response.data:
                raise ValueError(f"Capture {capture_id} not found")
            return Capture.model_validate(response.data[0])
        except Exception as e:
            logger.error(
                f"Failed to update capture: {e}",
                extra={"capture_id": capture_id},
            )
            raise

    def list_uncleaned_before(self, cutoff_iso: str, limit: int) -> list[Capture]:
        """
        List captures created before the cutoff that have not been swept yet.

        Args:
            cutoff_iso: ISO timestamp; older captures are returned
            limit: Maximum number of captures

        Returns:
            Captures with no images_deleted_at stamp, oldest first
        """
        response = (
            self.client.table(self.table)
            .select("*")
            .lt("created_at", cutoff_iso)
            .is_("images_deleted_at", "null")
            .order("created_at")
            .limit(limit)
            .execute()
        )
        return [Capture.model_validate(row) for row in response.data or []]
