"""Tests for Supabase-backed stores with a mocked client."""

from unittest.mock import MagicMock, patch

import pytest

from contact_engine.core.capture_lifecycle import cleanup_old_capture_images
from contact_engine.db.captures import SupabaseCaptureStore
from contact_engine.db.contacts import SupabaseContactStore
from contact_engine.db.storage import SupabaseBlobStore, capture_image_path
from contact_engine.db.workspaces import SupabaseWorkspaceStore


def make_response(data):
    response = MagicMock()
    response.data = data
    return response


def test_get_contact():
    """Fetches one row by id and validates it."""
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = make_response([{"id": "c-1", "owner_id": "u", "tags": None}])

    contact = SupabaseContactStore(client=client, table="contacts").get("c-1")

    assert contact.id == "c-1"
    assert contact.tags == []
    client.table.assert_called_with("contacts")
    client.table.return_value.select.return_value.eq.assert_called_with("id", "c-1")


def test_get_contact_not_found():
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = make_response([])

    assert SupabaseContactStore(client=client, table="contacts").get("missing") is None


def test_update_contact_missing_row_raises():
    client = MagicMock()
    client.table.return_value.update.return_value.eq.return_value.execute.return_value = (
        make_response([])
    )

    with pytest.raises(ValueError, match="not found"):
        SupabaseContactStore(client=client, table="contacts").update("c-1", {"notes": "x"})


def test_create_capture():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.return_value = make_response(
        [{"id": "cap-1", "owner_id": "u", "status": "queued", "image_paths": None}]
    )

    capture = SupabaseCaptureStore(client=client, table="captures").create({"owner_id": "u"})

    assert capture.id == "cap-1"
    assert capture.image_paths == []
    client.table.return_value.insert.assert_called_with({"owner_id": "u"})


def test_list_uncleaned_before_keeps_text_only_captures():
    client = MagicMock()
    chain = (
        client.table.return_value.select.return_value.lt.return_value.is_.return_value
        .order.return_value.limit.return_value
    )
    chain.execute.return_value = make_response(
        [
            {"id": "a", "owner_id": "u", "image_paths": ["p/1.png"]},
            {"id": "b", "owner_id": "u", "image_paths": []},
        ]
    )

    captures = SupabaseCaptureStore(client=client, table="captures").list_uncleaned_before(
        "2026-01-01T00:00:00+00:00", 50
    )

    assert [c.id for c in captures] == ["a", "b"]
    client.table.return_value.select.return_value.lt.assert_called_with(
        "created_at", "2026-01-01T00:00:00+00:00"
    )


def test_cleanup_stamps_text_only_capture():
    """A capture with no images is still stamped so the sweep moves past it."""
    client = MagicMock()
    table = client.table.return_value
    list_chain = table.select.return_value.lt.return_value.is_.return_value.order.return_value
    list_chain.limit.return_value.execute.return_value = make_response(
        [{"id": "b", "owner_id": "u", "image_paths": []}]
    )
    table.update.return_value.eq.return_value.execute.return_value = make_response(
        [{"id": "b", "owner_id": "u", "images_deleted_at": "2026-01-02T00:00:00+00:00"}]
    )
    blobs = MagicMock()

    results = cleanup_old_capture_images(
        SupabaseCaptureStore(client=client, table="captures"), blobs, limit=1
    )

    assert results["captures_cleaned"] == 1
    blobs.delete.assert_not_called()
    patch_arg = table.update.call_args.args[0]
    assert patch_arg["image_paths"] == []
    assert patch_arg["images_deleted_at"]
    table.update.return_value.eq.assert_called_with("id", "b")


def test_workspace_member_ids():
    client = MagicMock()
    chain = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    chain.execute.return_value = make_response([{"id": "ws-1", "member_ids": ["u", "v"]}])

    members = SupabaseWorkspaceStore(client=client, table="workspaces").get_member_ids("ws-1")

    assert members == ["u", "v"]
    client.table.return_value.select.return_value.eq.assert_called_with("id", "ws-1")


def test_workspace_missing_returns_none():
    client = MagicMock()
    chain = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    chain.execute.return_value = make_response([])

    assert SupabaseWorkspaceStore(client=client, table="workspaces").get_member_ids("x") is None


def test_blob_store_upload_upserts():
    client = MagicMock()
    store = SupabaseBlobStore(client=client, bucket="contact-files")
    path = capture_image_path("u", "cap-1", 1, "png")

    store.save(path, b"data", "image/png")

    client.storage.from_.assert_called_with("contact-files")
    client.storage.from_.return_value.upload.assert_called_with(
        path="users/u/captures/cap-1/img_1.png",
        file=b"data",
        file_options={"content-type": "image/png", "upsert": "true"},
    )


def test_blob_store_empty_download_raises():
    client = MagicMock()
    client.storage.from_.return_value.download.return_value = b""

    with pytest.raises(FileNotFoundError):
        SupabaseBlobStore(client=client, bucket="b").load("p/1.png")


def test_store_uses_shared_client_lazily():
    with patch("contact_engine.db.contacts.get_supabase") as mock_supabase:
        store = SupabaseContactStore(table="contacts")
        mock_supabase.assert_not_called()

        assert store.client is mock_supabase.return_value
