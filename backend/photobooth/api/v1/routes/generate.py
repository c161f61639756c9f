import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from photobooth.api.deps import get_current_user, get_orchestrator
from photobooth.api.v1.schemas.generate import ErrorResponse, GenerateResponse
from photobooth.services.auth_service import AuthUser
from photobooth.services.generation_orchestrator import (
    GenerationRequest,
    PhotoGenerationOrchestrator,
    SourceUpload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/leonardo", tags=["generation"])


@router.post(
    "/generate",
    response_model=GenerateResponse,
    response_model_by_alias=True,
    responses={code: {"model": ErrorResponse} for code in (400, 401, 404, 500, 502)},
    summary="Generate the four styled photos for a photo session",
)
async def generate_styled_photos(
    image: Optional[UploadFile] = File(default=None, description="Source photo (JPEG, PNG or WebP)."),
    eventId: Optional[str] = Form(default=None),
    sessionId: Optional[str] = Form(default=None),
    user: AuthUser = Depends(get_current_user),
    orchestrator: PhotoGenerationOrchestrator = Depends(get_orchestrator),
) -> GenerateResponse:
    """
    Upload one photo and receive one stored image per style.

    Fields are validated in order (image first, then the event/session pair)
    before any call to Leonardo is made.
    """
    source = None
    if image is not None:
        source = SourceUpload(
            data=await image.read(),
            content_type=image.content_type,
            filename=image.filename,
        )

    result = await orchestrator.generate(
        GenerationRequest(user=user, image=source, event_id=eventId, session_id=sessionId)
    )
    return GenerateResponse.from_result(result)
