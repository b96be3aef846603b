"""Best-effort persistence of research images to the blob store."""

import asyncio

import httpx

from contact_engine.core.logging import get_logger
from contact_engine.core.schemas_contacts import ResearchImage
from contact_engine.core.schemas_research import ResearchImageRef
from contact_engine.db.storage import BlobStore, research_image_path

logger = get_logger(__name__)


def guess_extension(content_type: str | None) -> str:
    value = (content_type or "").lower()
    if "png" in value:
        return "png"
    if "webp" in value:
        return "webp"
    return "jpg"


async def _persist_one(
    http: httpx.AsyncClient,
    blobs: BlobStore,
    *,
    owner_id: str,
    contact_id: str,
    index: int,
    image: ResearchImageRef,
) -> ResearchImage | None:
    source = image.source
    if not source:
        return None

    try:
        response = await http.get(source)
        response.raise_for_status()
        data = response.content
        if not data:
            return None

        content_type = response.headers.get("content-type")
        path = research_image_path(owner_id, contact_id, index, guess_extension(content_type))
        await asyncio.to_thread(blobs.save, path, data, content_type or "image/jpeg")
        return ResearchImage(storage_path=path, source_url=source, title=image.title)

    except Exception as e:
        logger.warning(
            f"Failed to persist research image {source}: {e}",
            extra={"contact_id": contact_id},
        )
        return None


async def persist_research_images(
    blobs: BlobStore,
    *,
    owner_id: str,
    contact_id: str,
    images: list[ResearchImageRef],
    max_images: int = 6,
    timeout: float = 20.0,
    http: httpx.AsyncClient | None = None,
) -> list[ResearchImage]:
    """
    Download up to max_images research images concurrently and store them.

    Each image is independent: a failed download or upload is logged and
    skipped. All fetches are joined before returning.

    Returns:
        Stored image references in source order
    """
    selected = images[:max_images]
    if not selected:
        return []

    async def run(client: httpx.AsyncClient) -> list[ResearchImage | None]:
        return await asyncio.gather(
            *(
                _persist_one(
                    client,
                    blobs,
                    owner_id=owner_id,
                    contact_id=contact_id,
                    index=i,
                    image=image,
                )
                for i, image in enumerate(selected, start=1)
            )
        )

    if http is not None:
        saved = await run(http)
    else:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            saved = await run(client)

    stored = [image for image in saved if image is not None]
    logger.info(
        f"Persisted {len(stored)}/{len(selected)} research images",
        extra={"contact_id": contact_id},
    )
    return stored
