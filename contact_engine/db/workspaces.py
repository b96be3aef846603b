"""Workspace membership lookups."""

from typing import Protocol

from supabase import Client

from contact_engine.core.config import get_settings
from contact_engine.core.logging import get_logger
from contact_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)


class WorkspaceStore(Protocol):
    """Read-only collaborator for shared workspaces."""

    def get_member_ids(self, workspace_id: str) -> list[str] | None: ...


class SupabaseWorkspaceStore:
    """WorkspaceStore backed by a Supabase table with a member_ids array column."""

    def __init__(self, client: Client | None = None, table: str | None = None):
        self._client = client
        self.table = table or get_settings().WORKSPACES_TABLE

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def get_member_ids(self, workspace_id: str) -> list[str] | None:
        """
        Fetch the member ids of a workspace.

        Returns:
            Member ids (possibly empty), or None if the workspace does not exist
        """
        response = (
            self.client.table(self.table)
            .select("id, member_ids")
            .eq("id", workspace_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        members = response.data[0].get("member_ids") or []
        return [str(m) for m in members]
