"""Shared pytest fixtures for Photobooth tests."""

import os

# Settings are read at import time; give them a complete test environment
# before any photobooth module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("S3_ENDPOINT_URL", "http://localhost:9000")
os.environ.setdefault("S3_ACCESS_KEY_ID", "test-access")
os.environ.setdefault("S3_SECRET_ACCESS_KEY", "test-secret")
os.environ.setdefault("S3_BUCKET_NAME", "photobooth-test")
os.environ.setdefault("LEONARDO_API_KEY", "test-leonardo-key")
os.environ.setdefault("LEONARDO_MODEL_ID", "model-123")
os.environ.setdefault("LEONARDO_STYLE_ID", "style-uuid-123")
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")

from io import BytesIO
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image

from photobooth.db.models import Style
from photobooth.services.auth_service import AuthUser
from photobooth.services.compositor import Compositor
from photobooth.services.generation_orchestrator import (
    GenerationConfig,
    GenerationRequest,
    PhotoGenerationOrchestrator,
    SourceUpload,
)
from photobooth.services.leonardo_service import GenerationJob, JobStatus
from photobooth.services.storage_service import LogoAsset, StoredObject


def make_image(width: int = 1280, height: int = 720, fmt: str = "JPEG", color=(30, 120, 200)) -> bytes:
    """Encode a solid-colour image of the given size."""
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" and len(color) == 3 else color
    buffer = BytesIO()
    Image.new(mode, (width, height), fill).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def user() -> AuthUser:
    return AuthUser(id="user-123", email="test@example.com")


@pytest.fixture
def source_image() -> SourceUpload:
    return SourceUpload(data=make_image(1280, 720), content_type="image/jpeg", filename="photo.jpg")


@pytest.fixture
def generation_request(user: AuthUser, source_image: SourceUpload) -> GenerationRequest:
    return GenerationRequest(user=user, image=source_image, event_id="event-1", session_id="session-1")


@pytest.fixture
def fake_generator() -> Mock:
    """Leonardo client double whose jobs all complete on the first poll."""
    generator = Mock()
    generator.upload_source = AsyncMock(return_value="init-image-1")

    async def submit(**kwargs):
        style = kwargs["style"]
        return GenerationJob(generation_id=f"gen-{style.value.lower()}", style=style)

    async def wait(job, **kwargs):
        job.status = JobStatus.COMPLETE
        job.result_url = f"https://cdn.leonardo.ai/{job.generation_id}.jpg"
        return job

    generator.submit_generation = AsyncMock(side_effect=submit)
    generator.wait_for_generation = AsyncMock(side_effect=wait)
    return generator


@pytest.fixture
def fake_records() -> Mock:
    records = Mock()
    records.get_event_by_id = AsyncMock(
        return_value=SimpleNamespace(id="event-1", user_id="user-123", logo_url=None)
    )
    records.get_photo_session_by_id = AsyncMock(
        return_value=SimpleNamespace(id="session-1", event_id="event-1")
    )

    async def create(session_id, style):
        return SimpleNamespace(id=f"ai-{style.value.lower()}", session_id=session_id, style=style)

    records.create_styled_photo_record = AsyncMock(side_effect=create)
    records.update_styled_photo_record_url = AsyncMock(
        side_effect=lambda record_id, path: SimpleNamespace(id=record_id, generated_url=path)
    )
    return records


@pytest.fixture
def fake_storage() -> Mock:
    storage = Mock()

    async def upload(**kwargs):
        folder = kwargs["style"].value.lower()
        path = f"{kwargs['user_id']}/{kwargs['event_id']}/Photos/{kwargs['session_id']}/GenPhotos/{folder}/{folder}.jpg"
        return StoredObject(path=path, public_url=f"https://storage.example.com/{path}")

    storage.upload_generated_photo = AsyncMock(side_effect=upload)
    storage.download_event_logo = AsyncMock(
        return_value=LogoAsset(data=make_image(300, 300, fmt="PNG", color=(220, 20, 20)), mime_type="image/png")
    )
    return storage


@pytest.fixture
def generated_image() -> bytes:
    return make_image(1248, 832)


@pytest.fixture
def fake_download(generated_image: bytes) -> AsyncMock:
    return AsyncMock(return_value=generated_image)


@pytest.fixture
def generation_config() -> GenerationConfig:
    return GenerationConfig(model_id="model-123", style_uuid="style-uuid-123", poll_interval=0.01, max_poll_attempts=5)


@pytest.fixture
def orchestrator(fake_generator, fake_storage, fake_records, fake_download, generation_config) -> PhotoGenerationOrchestrator:
    return PhotoGenerationOrchestrator(
        generator=fake_generator,
        storage=fake_storage,
        records=fake_records,
        compositor=Compositor(fake_storage.download_event_logo),
        download=fake_download,
        config=generation_config,
        sleep=AsyncMock(),
    )


@pytest.fixture
def all_styles() -> list:
    return list(Style)
