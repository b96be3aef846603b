"""Validation of pasted text and screenshot uploads."""

from dataclasses import dataclass

from contact_engine.core.llm import ImageInput

ALLOWED_IMAGE_TYPES: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}

DEFAULT_MAX_IMAGES = 6
DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024


class InputValidationError(ValueError):
    """Raw input was rejected before any side effect."""


@dataclass
class UploadedImage:
    """One screenshot as received from the caller."""

    content_type: str
    data: bytes
    filename: str | None = None

    @property
    def extension(self) -> str:
        return image_extension(self.content_type)

    def to_model_input(self) -> ImageInput:
        return ImageInput(mime_type=self.content_type, data=self.data)


def image_extension(content_type: str | None) -> str:
    """File extension for a stored image; unknown types fall back to jpg."""
    base = (content_type or "").split(";")[0].strip().lower()
    return ALLOWED_IMAGE_TYPES.get(base, "jpg")


def validate_capture_input(
    text: str | None,
    images: list[UploadedImage],
    *,
    max_images: int = DEFAULT_MAX_IMAGES,
    max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
) -> str:
    """
    Check pasted text and images against the upload limits.

    Args:
        text: Pasted text (may be empty)
        images: Uploaded screenshots
        max_images: Maximum number of images
        max_image_bytes: Maximum size of a single image

    Returns:
        The trimmed text

    Raises:
        InputValidationError: If the input is empty, has too many images,
            an unsupported type or an oversized image
    """
    clean_text = (text or "").strip()

    if not clean_text and not images:
        raise InputValidationError("Provide text or at least one image")

    if len(images) > max_images:
        raise InputValidationError(f"Too many images (max {max_images})")

    normalized: list[str] = []
    for index, image in enumerate(images, start=1):
        content_type = (image.content_type or "").split(";")[0].strip().lower()
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise InputValidationError(
                f"Unsupported image type for image {index}: {image.content_type or 'unknown'}"
            )
        if len(image.data) > max_image_bytes:
            limit_mb = max_image_bytes // (1024 * 1024)
            raise InputValidationError(f"Image {index} is too large (max {limit_mb}MB)")
        normalized.append(content_type)

    # Nothing is rewritten unless every image passed
    for image, content_type in zip(images, normalized):
        image.content_type = content_type

    return clean_text
