import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from photobooth.core.errors import InvalidRequestError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"


@dataclass(frozen=True)
class ImageDimensions:
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def is_landscape(self) -> bool:
        return is_landscape(self.width, self.height)


def is_landscape(width: Optional[int], height: Optional[int]) -> bool:
    """
    Missing dimensions count as zero, so a missing width is never landscape,
    a missing height with a known width always is, and squares are not.
    """
    return (width or 0) > (height or 0)


def inspect_image(data: bytes) -> ImageDimensions:
    """Read pixel dimensions from raw image bytes without decoding the pixels."""
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        logger.warning("Rejected unreadable source image (%d bytes): %s", len(data), exc)
        raise InvalidRequestError("Invalid image file", code="INVALID_IMAGE") from exc
    return ImageDimensions(width=width or None, height=height or None)


def extension_from_filename(filename: Optional[str]) -> str:
    # "photo." -> "jpg", ".hidden" -> "hidden", "photo" -> "photo"
    name = filename or f"image.{DEFAULT_EXTENSION}"
    return name.rsplit(".", 1)[-1].lower() or DEFAULT_EXTENSION


def sniff_content_type(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:2] == b"\xff\xd8":
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"
