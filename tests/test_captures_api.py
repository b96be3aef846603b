"""Tests for capture API endpoints."""

import pytest
from fastapi.testclient import TestClient

from contact_engine.api.deps import get_current_owner_id, get_services
from contact_engine.main import app
from tests.fakes.fake_stores import OWNER_ID

EXTRACTION = {"contact": {"fullName": "Jane Doe", "companyName": "Acme"}}


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_current_owner_id] = lambda: OWNER_ID
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_submit_capture_queues_and_processes(client, model_client, captures, contacts) -> None:
    model_client.queue(EXTRACTION)

    response = client.post(
        "/v1/captures",
        data={"text": "Jane Doe, Acme", "workspace_id": "ws-1"},
        files={"image1": ("shot.png", b"png-bytes", "image/png")},
    )

    assert response.status_code == 202
    data = response.json()
    assert data["status"] == "queued"
    assert data["image_paths"] == [f"users/{OWNER_ID}/captures/{data['capture_id']}/img_1.png"]

    # Background task has run by the time TestClient returns
    capture = captures.get(data["capture_id"])
    assert capture.status == "ready"
    assert contacts.get(capture.result_contact_id).full_name == "Jane Doe"


def test_submit_capture_empty_input_is_400(client, captures) -> None:
    response = client.post("/v1/captures", data={"text": "   "})

    assert response.status_code == 400
    assert "text or at least one image" in response.json()["detail"]
    assert captures.rows == {}


def test_submit_capture_unsupported_image_is_400(client) -> None:
    response = client.post(
        "/v1/captures",
        data={"text": "hi"},
        files={"image2": ("anim.gif", b"GIF89a", "image/gif")},
    )

    assert response.status_code == 400
    assert "Unsupported image type" in response.json()["detail"]


def test_submit_capture_non_member_is_403(client, workspaces, captures, blobs) -> None:
    workspaces.members["ws-2"] = ["someone-else"]

    response = client.post(
        "/v1/captures",
        data={"text": "Jane Doe", "workspace_id": "ws-2"},
        files={"image1": ("shot.png", b"png-bytes", "image/png")},
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "Not a member of this workspace"
    assert captures.rows == {}
    assert blobs.blobs == {}


def test_submit_capture_unknown_workspace_is_404(client, captures) -> None:
    response = client.post("/v1/captures", data={"text": "Jane", "workspace_id": "nope"})

    assert response.status_code == 404
    assert captures.rows == {}


def test_workspace_capture_contact_gets_members(client, model_client, captures, contacts) -> None:
    model_client.queue(EXTRACTION)

    response = client.post("/v1/captures", data={"text": "Jane Doe", "workspace_id": "ws-1"})

    capture = captures.get(response.json()["capture_id"])
    contact = contacts.get(capture.result_contact_id)
    assert contact.member_ids == [OWNER_ID, "teammate-1"]
    assert contact.can_be_edited_by("teammate-1")


def test_submit_capture_requires_auth(services) -> None:
    app.dependency_overrides[get_services] = lambda: services
    try:
        response = TestClient(app).post("/v1/captures", data={"text": "hi"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401


def test_get_capture_owner_only(client, captures) -> None:
    captures.create({"id": "mine", "owner_id": OWNER_ID, "text": "x"})
    captures.create({"id": "theirs", "owner_id": "someone-else", "text": "x"})

    assert client.get("/v1/captures/mine").json()["status"] == "queued"
    assert client.get("/v1/captures/theirs").status_code == 404
    assert client.get("/v1/captures/missing").status_code == 404


def test_retry_failed_capture(client, model_client, captures) -> None:
    captures.create(
        {"id": "cap-1", "owner_id": OWNER_ID, "text": "Jane", "status": "error", "error": "boom"}
    )
    model_client.queue(EXTRACTION)

    response = client.post("/v1/captures/cap-1/retry")

    assert response.status_code == 202
    assert response.json()["status"] == "queued"
    capture = captures.get("cap-1")
    assert capture.status == "ready"
    assert capture.error is None


def test_retry_non_failed_capture_is_409(client, captures) -> None:
    captures.create({"id": "cap-1", "owner_id": OWNER_ID, "text": "Jane", "status": "ready"})

    response = client.post("/v1/captures/cap-1/retry")

    assert response.status_code == 409
    assert response.json()["detail"] == "Capture is ready; only failed captures can be retried"
