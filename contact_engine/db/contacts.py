"""Contact record operations."""

from typing import Any, Protocol

from supabase import Client

from contact_engine.core.config import get_settings
from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import Contact
from contact_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)


class ContactStore(Protocol):
    """Document-store collaborator for contacts (merge writes)."""

    def get(self, contact_id: str) -> Contact | None: ...

    def create(self, data: dict[str, Any]) -> Contact: ...

    def update(self, contact_id: str, patch: dict[str, Any]) -> Contact: ...


class SupabaseContactStore:
    """ContactStore backed by a Supabase table."""

    def __init__(self, client: Client | None = None, table: str | None = None):
        self._client = client
        self.table = table or get_settings().CONTACTS_TABLE

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def get(self, contact_id: str) -> Contact | None:
        """
        Fetch a contact by id.

        Returns:
            Contact, or None if no row matches
        """
        response = (
            self.client.table(self.table).select("*").eq("id", contact_id).limit(1).execute()
        )
        if not response.data:
            return None
        return Contact.model_validate(response.data[0])

    def create(self, data: dict[str, Any]) -> Contact:
        """
        Insert a contact row.

        Raises:
            ValueError: If the insert returns no row
        """
        try:
            response = self.client.table(self.table).insert(data).execute()
            if not response.data:
                raise ValueError("No data returned from contact insert")
            contact = Contact.model_validate(response.data[0])
            logger.info(f"Created contact {contact.id}", extra={"contact_id": contact.id})
            return contact
        except Exception as e:
            logger.error(f"Failed to create contact: {e}")
            raise

    def update(self, contact_id: str, patch: dict[str, Any]) -> Contact:
        """
        Merge-write a patch onto a contact row.

        Raises:
            ValueError: If the contact no longer exists
        """
        try:
            response = (
                self.client.table(self.table).update(patch).eq("id", contact_id).execute()
            )
            if not response.data:
                raise ValueError(f"Contact {contact_id} not found")
            return Contact.model_validate(response.data[0])
        except Exception as e:
            logger.error(
                f"Failed to update contact: {e}",
                extra={"contact_id": contact_id},
            )
            raise
