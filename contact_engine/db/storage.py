"""Blob storage for capture screenshots and research images."""

from typing import Protocol

from supabase import Client

from contact_engine.core.config import get_settings
from contact_engine.core.logging import get_logger
from contact_engine.db.supabase_client import get_supabase

logger = get_logger(__name__)


def capture_image_path(owner_id: str, capture_id: str, index: int, ext: str) -> str:
    """Storage path of the n-th capture screenshot (1-based)."""
    return f"users/{owner_id}/captures/{capture_id}/img_{index}.{ext}"


def research_image_path(owner_id: str, contact_id: str, index: int, ext: str) -> str:
    """Storage path of the n-th persisted research image (1-based)."""
    return f"users/{owner_id}/contacts/{contact_id}/research/img_{index}.{ext}"


class BlobStore(Protocol):
    """Object-store collaborator."""

    def save(self, path: str, data: bytes, content_type: str) -> bool: ...

    def load(self, path: str) -> bytes: ...

    def delete(self, path: str) -> None: ...


class SupabaseBlobStore:
    """BlobStore backed by a Supabase Storage bucket."""

    def __init__(self, client: Client | None = None, bucket: str | None = None):
        self._client = client
        self.bucket = bucket or get_settings().STORAGE_BUCKET

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def save(self, path: str, data: bytes, content_type: str) -> bool:
        self.client.storage.from_(self.bucket).upload(
            path=path,
            file=data,
            file_options={
                "content-type": content_type or "application/octet-stream",
                "upsert": "true",
            },
        )
        return True

    def load(self, path: str) -> bytes:
        data = self.client.storage.from_(self.bucket).download(path)
        if not data:
            raise FileNotFoundError(f"Empty download for {path}")
        return data

    def delete(self, path: str) -> None:
        self.client.storage.from_(self.bucket).remove([path])
