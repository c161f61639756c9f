"""Tests for photobooth.services.compositor: logo merge, border and fallbacks."""

import logging
from io import BytesIO
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from photobooth.core.errors import StorageError
from photobooth.services import compositor as compositor_module
from photobooth.services.compositor import CompositeOptions, Compositor, add_border, merge_logo
from photobooth.services.storage_service import LogoAsset
from conftest import make_image

LOGGER = "photobooth.services.compositor"


def _open(data: bytes) -> Image.Image:
    return Image.open(BytesIO(data))


@pytest.fixture
def red_logo() -> LogoAsset:
    return LogoAsset(data=make_image(400, 200, fmt="PNG", color=(230, 10, 10)), mime_type="image/png")


class TestAddBorder:
    def test_landscape_is_resized_and_bordered(self):
        result = add_border(make_image(1920, 1080))

        assert (result.width, result.height) == (1262, 846)
        assert result.mime_type == "image/jpeg"
        assert result.has_logo is False
        img = _open(result.data)
        assert img.format == "JPEG"
        assert img.size == (1262, 846)
        # Border pixel stays white
        assert all(channel > 240 for channel in img.convert("RGB").getpixel((2, 2)))

    def test_portrait(self):
        result = add_border(make_image(832, 1248))
        assert (result.width, result.height) == (846, 1262)

    def test_square_counts_as_landscape(self):
        result = add_border(make_image(1000, 1000))
        assert (result.width, result.height) == (1262, 846)

    def test_custom_border_width(self):
        result = add_border(make_image(1248, 832), CompositeOptions(border_width=15))
        assert (result.width, result.height) == (1278, 862)

    def test_png_output(self):
        result = add_border(make_image(1248, 832), CompositeOptions(output_format="png"))
        assert result.mime_type == "image/png"
        assert _open(result.data).format == "PNG"

    def test_empty_data(self):
        with pytest.raises(ValueError, match="empty"):
            add_border(b"")


class TestMergeLogo:
    def test_logo_lands_bottom_right_inside_border(self, red_logo):
        result = merge_logo(make_image(1248, 832, color=(0, 0, 200)), red_logo.data)

        assert result.has_logo is True
        assert (result.width, result.height) == (1262, 846)
        img = _open(result.data).convert("RGB")
        # Centre of the 180x180 logo tile: canvas - border - 90
        r, g, b = img.getpixel((1262 - 7 - 90, 846 - 7 - 90))
        assert r > 180 and g < 80 and b < 80
        # Top-left of the photo keeps the generated colour
        r, g, b = img.getpixel((50, 50))
        assert b > 150 and r < 60

    def test_invalid_logo_raises(self):
        with pytest.raises(Exception):
            merge_logo(make_image(1248, 832), b"not a logo")


class TestCompositorChain:
    @pytest.mark.asyncio
    async def test_no_logo_skips_merge(self, generated_image):
        loader = AsyncMock()
        result = await Compositor(loader).composite(generated_image, None)

        loader.assert_not_awaited()
        assert result.step == "border"
        assert result.has_logo is False

    @pytest.mark.asyncio
    async def test_blank_logo_ref_skips_merge(self, generated_image):
        loader = AsyncMock()
        result = await Compositor(loader).composite(generated_image, "   ")

        loader.assert_not_awaited()
        assert result.step == "border"

    @pytest.mark.asyncio
    async def test_logo_merge(self, generated_image, red_logo):
        loader = AsyncMock(return_value=red_logo)
        result = await Compositor(loader).composite(generated_image, "u/e/Logo/logo.png")

        loader.assert_awaited_once_with("u/e/Logo/logo.png")
        assert result.step == "logo"
        assert result.has_logo is True

    @pytest.mark.asyncio
    async def test_logo_download_failure_falls_back_to_border(self, generated_image, caplog):
        caplog.set_level(logging.WARNING, logger=LOGGER)
        loader = AsyncMock(side_effect=StorageError("Logo download failed: Logo not found"))

        result = await Compositor(loader).composite(generated_image, "u/e/Logo/logo.png", label="Anime")

        assert result.step == "border"
        assert (result.width, result.height) == (1262, 846)
        assert "Failed to download logo" in caplog.text

    @pytest.mark.asyncio
    async def test_merge_failure_falls_back_to_border(self, generated_image, caplog):
        caplog.set_level(logging.WARNING, logger=LOGGER)
        loader = AsyncMock(return_value=LogoAsset(data=b"garbage", mime_type="image/png"))

        result = await Compositor(loader).composite(generated_image, "u/e/Logo/logo.png")

        assert result.step == "border"
        assert result.has_logo is False
        assert "Failed to merge logo" in caplog.text

    @pytest.mark.asyncio
    async def test_border_failure_keeps_raw_image(self, generated_image, caplog, monkeypatch):
        caplog.set_level(logging.WARNING, logger=LOGGER)

        def boom(*args, **kwargs):
            raise RuntimeError("pillow exploded")

        monkeypatch.setattr(compositor_module, "add_border", boom)

        result = await Compositor(AsyncMock()).composite(generated_image, None)

        assert result.step == "raw"
        assert result.data == generated_image
        assert result.mime_type == "image/jpeg"
        assert (result.width, result.height) == (1248, 832)
        assert "Failed to add border" in caplog.text

    @pytest.mark.asyncio
    async def test_everything_fails_still_returns_image(self, caplog, monkeypatch):
        caplog.set_level(logging.WARNING, logger=LOGGER)
        loader = AsyncMock(side_effect=RuntimeError("offline"))
        unreadable = b"\xff\xd8 broken jpeg"

        result = await Compositor(loader).composite(unreadable, "logo.png")

        assert result.step == "raw"
        assert result.data == unreadable
        assert result.width is None and result.height is None
        assert "Failed to download logo" in caplog.text
        assert "Failed to add border" in caplog.text
