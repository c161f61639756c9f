from typing import Optional

from fastapi import Header, Request

from photobooth.core.config import settings
from photobooth.crud.crud_photo import PhotoRecordStore
from photobooth.db.session import AsyncSessionLocal
from photobooth.services.auth_service import AuthService, AuthUser
from photobooth.services.compositor import Compositor
from photobooth.services.generation_orchestrator import GenerationConfig, PhotoGenerationOrchestrator
from photobooth.services.leonardo_service import LeonardoClient, fetch_image_bytes
from photobooth.services.storage_service import StorageService


async def get_current_user(request: Request, authorization: Optional[str] = Header(default=None)) -> AuthUser:
    auth: AuthService = request.app.state.auth
    return await auth.require_auth(authorization)


def get_orchestrator(request: Request) -> PhotoGenerationOrchestrator:
    generator: LeonardoClient = request.app.state.leonardo
    storage: StorageService = request.app.state.storage

    async def download(url: str) -> bytes:
        return await fetch_image_bytes(url, timeout=settings.HTTP_TIMEOUT_SECONDS)

    return PhotoGenerationOrchestrator(
        generator=generator,
        storage=storage,
        records=PhotoRecordStore(AsyncSessionLocal),
        compositor=Compositor(storage.download_event_logo),
        download=download,
        config=GenerationConfig.from_settings(settings),
    )
