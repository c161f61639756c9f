import asyncio
import logging
import os
import secrets

# Ensure project root (backend/) is on sys.path when running as a script
import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1]))

import anyio
import requests

from photobooth.core.config import settings
from photobooth.core.logging import configure_logging
from photobooth.crud.crud_photo import PhotoRecordStore
from photobooth.db.models import Event, PhotoSession
from photobooth.db.session import AsyncSessionLocal, create_tables
from photobooth.services.auth_service import AuthUser
from photobooth.services.compositor import Compositor
from photobooth.services.generation_orchestrator import (
    GenerationConfig,
    GenerationRequest,
    PhotoGenerationOrchestrator,
    SourceUpload,
)
from photobooth.services.leonardo_service import LeonardoClient, fetch_image_bytes
from photobooth.services.storage_service import StorageService


configure_logging("INFO")
logger = logging.getLogger("smoke")


DEFAULT_SOURCE_URL = (
    "https://i.pinimg.com/736x/fd/80/8e/fd808e5c2377c94bc21b5453dfccfc33.jpg"
)


async def _download_bytes(url: str, timeout: int = 60) -> bytes:
    def _get() -> bytes:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
        return resp.content

    return await anyio.to_thread.run_sync(_get)


async def _load_source() -> SourceUpload:
    local_path = os.getenv("SMOKE_SOURCE_FILE")
    if local_path:
        path = Path(local_path)
        return SourceUpload(data=path.read_bytes(), filename=path.name)
    url = os.getenv("SMOKE_SOURCE_URL", DEFAULT_SOURCE_URL)
    logger.info("Using source_url=%s", url)
    return SourceUpload(data=await _download_bytes(url), filename=url.rsplit("/", 1)[-1])


async def main():
    # Ensure DB schema exists
    await create_tables()

    leonardo = LeonardoClient.from_settings(settings)
    storage = StorageService.from_settings(settings)

    account = await leonardo.get_user_info()
    logger.info("Leonardo account reachable: %s", list(account.keys()))

    # Seed an event + session owned by a throwaway user
    user = AuthUser(id=os.getenv("SMOKE_USER_ID", secrets.token_hex(8)), email="smoke@example.com")
    async with AsyncSessionLocal() as db:
        event = Event(user_id=user.id, name=f"smoke-{secrets.token_hex(4)}", logo_url=os.getenv("SMOKE_LOGO_KEY"))
        db.add(event)
        await db.commit()
        await db.refresh(event)
        photo_session = PhotoSession(event_id=event.id)
        db.add(photo_session)
        await db.commit()
        await db.refresh(photo_session)
    logger.info("Created event=%s session=%s", event.id, photo_session.id)

    orchestrator = PhotoGenerationOrchestrator(
        generator=leonardo,
        storage=storage,
        records=PhotoRecordStore(AsyncSessionLocal),
        compositor=Compositor(storage.download_event_logo),
        download=fetch_image_bytes,
        config=GenerationConfig.from_settings(settings),
    )

    result = await orchestrator.generate(
        GenerationRequest(
            user=user,
            image=await _load_source(),
            event_id=event.id,
            session_id=photo_session.id,
        )
    )

    for item in result.images:
        url = await storage.public_url(item.storage_url)
        logger.info("%s -> %s (logo=%s)", item.style.value, url, item.has_logo)
        print(f"{item.style.value.upper()}_URL={url}")
    for failure in result.failures:
        logger.error("%s failed: %s", failure.style.value, failure.message)
    logger.info("SMOKE SUCCESS -> image_id=%s session=%s", result.image_id, result.session_id)


if __name__ == "__main__":
    asyncio.run(main())
