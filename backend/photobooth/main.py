import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from photobooth.api.v1.routes.generate import router as generate_router
from photobooth.core.config import settings
from photobooth.core.errors import PhotoboothError
from photobooth.core.logging import configure_logging
from photobooth.services.auth_service import AuthService
from photobooth.services.leonardo_service import LeonardoClient
from photobooth.services.storage_service import StorageService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the shared provider clients once per process and hang them on ``app.state``."""
    app.state.leonardo = LeonardoClient.from_settings(settings)
    app.state.storage = StorageService.from_settings(settings)
    app.state.auth = AuthService.from_settings(settings)
    logger.info("Photobooth API started (bucket=%s)", settings.S3_BUCKET_NAME)
    try:
        yield
    finally:
        app.state.leonardo.session.close()
        app.state.auth.session.close()


async def photobooth_error_handler(request: Request, exc: PhotoboothError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"statusCode": 500, "message": "Internal server error", "code": "INTERNAL_ERROR"},
    )


def create_app() -> FastAPI:
    """
    Application factory for the Photobooth API.
    """
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Photobooth API",
        version="0.1.0",
        description="AI styled photo generation for photo-booth events.",
        lifespan=lifespan,
    )
    app.add_exception_handler(PhotoboothError, photobooth_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health", tags=["health"])
    async def root_health_check() -> dict:
        """Simple root health check endpoint."""
        return {"status": "ok"}

    app.include_router(generate_router)

    return app


app = create_app()
