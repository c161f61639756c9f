"""
Post-processing of generated photos before they are stored.

Every generated image goes through an ordered fallback chain:

1. merge the event logo onto a white-bordered canvas (only when the event
   has a logo),
2. add a plain white border,
3. keep the generated image untouched.

The first step that succeeds wins. Failures are logged as warnings and the
chain moves on, so a cosmetic problem never costs the user a photo that the
generation service already produced.
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Awaitable, Callable, List, Optional, Tuple

import anyio
from PIL import Image, ImageOps

from photobooth.services.image_inspector import inspect_image, sniff_content_type
from photobooth.services.storage_service import LogoAsset, has_event_logo

logger = logging.getLogger(__name__)

LANDSCAPE_TARGET = (1248, 832)
PORTRAIT_TARGET = (832, 1248)

_MIME_BY_FORMAT = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


@dataclass(frozen=True)
class CompositeOptions:
    logo_size: Tuple[int, int] = (180, 180)
    border_width: int = 7
    border_color: str = "#FFFFFF"
    quality: int = 90
    output_format: str = "jpeg"

    @property
    def mime_type(self) -> str:
        return _MIME_BY_FORMAT.get(self.output_format, "image/jpeg")


@dataclass
class CompositeResult:
    data: bytes
    mime_type: str
    width: Optional[int]
    height: Optional[int]
    has_logo: bool = False
    step: str = "raw"


class CompositeStepError(Exception):
    """A chain step failed; ``step_message`` is what gets logged."""

    def __init__(self, step_message: str, cause: BaseException):
        super().__init__(f"{step_message}: {cause}")
        self.step_message = step_message
        self.cause = cause


def _open_rgb(data: bytes) -> Image.Image:
    if not data:
        raise ValueError("Image file data is empty")
    with Image.open(BytesIO(data)) as img:
        return img.convert("RGB")


def _target_size(img: Image.Image) -> Tuple[int, int]:
    return LANDSCAPE_TARGET if img.width >= img.height else PORTRAIT_TARGET


def _bordered_canvas(main: Image.Image, options: CompositeOptions) -> Image.Image:
    target = _target_size(main)
    if main.size != target:
        logger.debug("Resizing generated image from %dx%d to %dx%d", main.width, main.height, *target)
        main = main.resize(target)

    border = options.border_width
    canvas = Image.new("RGB", (target[0] + border * 2, target[1] + border * 2), options.border_color)
    canvas.paste(main, (border, border))
    return canvas


def _encode(canvas: Image.Image, options: CompositeOptions, *, has_logo: bool, step: str) -> CompositeResult:
    buffer = BytesIO()
    fmt = options.output_format.upper()
    if fmt == "JPEG":
        canvas.save(buffer, format=fmt, quality=options.quality)
    else:
        canvas.save(buffer, format=fmt)
    return CompositeResult(
        data=buffer.getvalue(),
        mime_type=options.mime_type,
        width=canvas.width,
        height=canvas.height,
        has_logo=has_logo,
        step=step,
    )


def add_border(image_bytes: bytes, options: CompositeOptions = CompositeOptions()) -> CompositeResult:
    canvas = _bordered_canvas(_open_rgb(image_bytes), options)
    return _encode(canvas, options, has_logo=False, step="border")


def merge_logo(image_bytes: bytes, logo_bytes: bytes, options: CompositeOptions = CompositeOptions()) -> CompositeResult:
    canvas = _bordered_canvas(_open_rgb(image_bytes), options)

    if not logo_bytes:
        raise ValueError("Logo file data is empty")
    with Image.open(BytesIO(logo_bytes)) as raw_logo:
        logo = ImageOps.contain(raw_logo.convert("RGBA"), options.logo_size)

    # Centre the logo on a transparent tile so non-square logos keep their aspect ratio.
    tile = Image.new("RGBA", options.logo_size, (255, 255, 255, 0))
    tile.paste(logo, ((tile.width - logo.width) // 2, (tile.height - logo.height) // 2), logo)

    border = options.border_width
    position = (canvas.width - tile.width - border, canvas.height - tile.height - border)
    canvas.paste(tile, position, tile)
    return _encode(canvas, options, has_logo=True, step="logo")


def raw_result(image_bytes: bytes) -> CompositeResult:
    try:
        dims = inspect_image(image_bytes)
        width, height = dims.width, dims.height
    except Exception:
        width = height = None
    return CompositeResult(
        data=image_bytes,
        mime_type=sniff_content_type(image_bytes),
        width=width,
        height=height,
        step="raw",
    )


class Compositor:
    def __init__(
        self,
        logo_loader: Callable[[str], Awaitable[LogoAsset]],
        options: Optional[CompositeOptions] = None,
    ):
        self._logo_loader = logo_loader
        self.options = options or CompositeOptions()

    async def _merge_step(self, image_bytes: bytes, logo_ref: str) -> CompositeResult:
        try:
            logo = await self._logo_loader(logo_ref)
        except Exception as exc:
            raise CompositeStepError(f"Failed to download logo {logo_ref}", exc) from exc
        try:
            return await anyio.to_thread.run_sync(merge_logo, image_bytes, logo.data, self.options)
        except Exception as exc:
            raise CompositeStepError("Failed to merge logo", exc) from exc

    async def _border_step(self, image_bytes: bytes) -> CompositeResult:
        try:
            return await anyio.to_thread.run_sync(add_border, image_bytes, self.options)
        except Exception as exc:
            raise CompositeStepError("Failed to add border", exc) from exc

    def _steps(self, image_bytes: bytes, logo_ref: Optional[str]) -> List[Callable[[], Awaitable[CompositeResult]]]:
        steps = []
        if has_event_logo(logo_ref):
            steps.append(lambda: self._merge_step(image_bytes, logo_ref))
        steps.append(lambda: self._border_step(image_bytes))
        return steps

    async def composite(self, image_bytes: bytes, logo_ref: Optional[str] = None, *, label: str = "photo") -> CompositeResult:
        """Run the fallback chain for one generated image. Never raises."""
        for step in self._steps(image_bytes, logo_ref):
            try:
                result = await step()
            except CompositeStepError as exc:
                logger.warning("%s for %s: %s", exc.step_message, label, exc.cause)
                continue
            logger.info(
                "Composited %s via %s step: %sx%s %s",
                label, result.step, result.width, result.height, result.mime_type,
            )
            return result

        logger.warning("Using unmodified generated image for %s", label)
        return raw_result(image_bytes)
