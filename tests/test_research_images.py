"""Tests for persisting research images with a mocked HTTP transport."""

import httpx
import pytest

from contact_engine.core.schemas_research import ResearchImageRef
from contact_engine.services.research_images import guess_extension, persist_research_images
from tests.fakes.fake_stores import InMemoryBlobStore


def transport() -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        if name == "a.webp":
            return httpx.Response(200, content=b"webp", headers={"content-type": "image/webp"})
        if name == "b":
            return httpx.Response(200, content=b"jpeg")
        if name == "empty.png":
            return httpx.Response(200, content=b"")
        return httpx.Response(500)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_each_image_is_independent() -> None:
    blobs = InMemoryBlobStore()
    images = [
        ResearchImageRef(image_url="https://img.example.com/a.webp", title="Headshot"),
        ResearchImageRef(url="https://img.example.com/b"),
        ResearchImageRef(image_url="https://img.example.com/broken.png"),
        ResearchImageRef(image_url="https://img.example.com/empty.png"),
        ResearchImageRef(),
    ]

    async with httpx.AsyncClient(transport=transport()) as http:
        stored = await persist_research_images(
            blobs, owner_id="u", contact_id="c", images=images, http=http
        )

    assert [(i.storage_path, i.source_url, i.title) for i in stored] == [
        ("users/u/contacts/c/research/img_1.webp", "https://img.example.com/a.webp", "Headshot"),
        ("users/u/contacts/c/research/img_2.jpg", "https://img.example.com/b", None),
    ]
    assert blobs.blobs["users/u/contacts/c/research/img_2.jpg"] == (b"jpeg", "image/jpeg")


@pytest.mark.asyncio
async def test_max_images_respected() -> None:
    blobs = InMemoryBlobStore()
    images = [ResearchImageRef(image_url="https://img.example.com/a.webp") for _ in range(4)]

    async with httpx.AsyncClient(transport=transport()) as http:
        stored = await persist_research_images(
            blobs, owner_id="u", contact_id="c", images=images, max_images=2, http=http
        )

    assert len(stored) == 2


@pytest.mark.asyncio
async def test_no_images_makes_no_requests() -> None:
    stored = await persist_research_images(
        InMemoryBlobStore(), owner_id="u", contact_id="c", images=[]
    )
    assert stored == []


def test_guess_extension() -> None:
    assert guess_extension("image/png") == "png"
    assert guess_extension("image/webp; q=1") == "webp"
    assert guess_extension(None) == "jpg"
