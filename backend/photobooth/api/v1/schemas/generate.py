from typing import List
from pydantic import BaseModel, ConfigDict, Field
from photobooth.db.models import Style
from photobooth.services.generation_orchestrator import GenerationResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# --- One stored style ---
class GeneratedImage(_CamelModel):
    ai_photo_id: str = Field(..., alias="aiPhotoId")
    style: Style
    storage_url: str = Field(
        ...,
        alias="storageUrl",
        description="Object storage key of the final (composited) image",
        examples=["user1/event1/Photos/session1/GenPhotos/anime/anime.jpg"],
    )
    public_url: str = Field(..., alias="publicUrl", description="URL of the image as returned by Leonardo")
    generation_id: str = Field(..., alias="generationId")
    has_logo: bool = Field(..., alias="hasLogo")


# --- One style that was generated but could not be stored ---
class StyleFailureOut(_CamelModel):
    style: Style
    message: str


# --- Response Schema ---
class GenerateResponse(_CamelModel):
    image_id: str = Field(..., alias="imageId", description="Leonardo id of the uploaded source image")
    session_id: str = Field(..., alias="sessionId")
    event_id: str = Field(..., alias="eventId")
    images: List[GeneratedImage]
    failures: List[StyleFailureOut] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: GenerationResult) -> "GenerateResponse":
        return cls(
            image_id=result.image_id,
            session_id=result.session_id,
            event_id=result.event_id,
            images=[
                GeneratedImage(
                    ai_photo_id=item.ai_photo_id,
                    style=item.style,
                    storage_url=item.storage_url,
                    public_url=item.public_url,
                    generation_id=item.generation_id,
                    has_logo=item.has_logo,
                )
                for item in result.images
            ],
            failures=[StyleFailureOut(style=f.style, message=f.message) for f in result.failures],
        )


# --- Error Schema ---
class ErrorResponse(_CamelModel):
    status_code: int = Field(..., alias="statusCode")
    message: str
    code: str
