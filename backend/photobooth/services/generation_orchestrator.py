"""
Fan-out of one uploaded photo into one styled photo per Style.

Per request:

* validate the form fields, then event/session ownership (no external
  generation work happens before both pass),
* inspect the image once for orientation and upload it once to Leonardo,
* run one task per style: submit -> poll -> download -> composite ->
  upload -> record.

Failures in the generation half of a style (submit/poll) are fatal for the
whole request: sibling tasks are cancelled and the caller gets a single
"Generation failed" error. Failures after the image exists (download,
upload, record update) only drop that style from the response and are
listed under ``failures``. Compositing never fails, see ``compositor``.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import anyio
from anyio import CancelScope

from photobooth.core.config import DEFAULT_PROMPTS
from photobooth.core.errors import InvalidRequestError, NotFoundError, PhotoboothError
from photobooth.crud.crud_photo import PhotoRecordStore
from photobooth.db.models import Style
from photobooth.services.auth_service import AuthUser
from photobooth.services.compositor import CompositeResult, Compositor
from photobooth.services.image_inspector import extension_from_filename, inspect_image
from photobooth.services.leonardo_service import GenerationJob, ImageGenerationError, LeonardoClient
from photobooth.services.storage_service import StorageService, StoredObject

logger = logging.getLogger(__name__)

STYLES = tuple(Style)


class StyleState(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    POLLING = "POLLING"
    DOWNLOADED = "DOWNLOADED"
    COMPOSITED = "COMPOSITED"
    UPLOADED = "UPLOADED"
    RECORDED = "RECORDED"
    FAILED = "FAILED"


@dataclass
class SourceUpload:
    data: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None


@dataclass
class GenerationRequest:
    user: AuthUser
    image: Optional[SourceUpload]
    event_id: Optional[str]
    session_id: Optional[str]


@dataclass
class GenerationConfig:
    model_id: str
    style_uuid: str
    prompts: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PROMPTS))
    poll_interval: float = 3.0
    max_poll_attempts: int = 100
    max_upload_bytes: int = 5 * 1024 * 1024

    @classmethod
    def from_settings(cls, settings) -> "GenerationConfig":
        return cls(
            model_id=settings.LEONARDO_MODEL_ID,
            style_uuid=settings.LEONARDO_STYLE_ID,
            prompts={**DEFAULT_PROMPTS, **settings.LEONARDO_PROMPTS},
            poll_interval=settings.GENERATION_POLL_INTERVAL_SECONDS,
            max_poll_attempts=settings.GENERATION_POLL_MAX_ATTEMPTS,
            max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        )

    def prompt_for(self, style: Style) -> str:
        return self.prompts.get(style.value) or DEFAULT_PROMPTS[style.value]


@dataclass
class StyleOutcome:
    ai_photo_id: str
    style: Style
    storage_url: str
    public_url: str
    generation_id: str
    has_logo: bool


@dataclass
class StyleFailure:
    style: Style
    message: str


@dataclass
class GenerationResult:
    image_id: str
    session_id: str
    event_id: str
    images: List[StyleOutcome]
    failures: List[StyleFailure] = field(default_factory=list)


@dataclass
class _RequestContext:
    user_id: str
    event_id: str
    session_id: str
    image_id: str
    is_landscape: bool
    logo_ref: Optional[str]


@dataclass
class StyleRun:
    """Progress of one style through the pipeline."""

    style: Style
    state: Optional[StyleState] = None
    job: Optional[GenerationJob] = None
    record_id: Optional[str] = None
    composite: Optional[CompositeResult] = None
    stored: Optional[StoredObject] = None
    error: Optional[str] = None

    def advance(self, state: StyleState) -> None:
        logger.debug("%s: %s -> %s", self.style.value, self.state.value if self.state else "NEW", state.value)
        self.state = state

    def fail(self, exc: BaseException) -> None:
        self.error = str(exc)
        self.advance(StyleState.FAILED)

    def outcome(self) -> StyleOutcome:
        return StyleOutcome(
            ai_photo_id=self.record_id,
            style=self.style,
            storage_url=self.stored.path,
            public_url=self.job.result_url,
            generation_id=self.job.generation_id,
            has_logo=self.composite.has_logo,
        )


class PhotoGenerationOrchestrator:
    def __init__(
        self,
        *,
        generator: LeonardoClient,
        storage: StorageService,
        records: PhotoRecordStore,
        compositor: Compositor,
        download: Callable[[str], Awaitable[bytes]],
        config: GenerationConfig,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ):
        self.generator = generator
        self.storage = storage
        self.records = records
        self.compositor = compositor
        self.download = download
        self.config = config
        self.sleep = sleep

    def _validate(self, request: GenerationRequest) -> SourceUpload:
        if request.image is None or not request.image.data:
            raise InvalidRequestError("Image is required", code="MISSING_IMAGE")
        if not request.event_id or not request.session_id:
            raise InvalidRequestError("Event ID and Session ID are required", code="MISSING_IDS")
        if len(request.image.data) > self.config.max_upload_bytes:
            max_mb = self.config.max_upload_bytes // (1024 * 1024)
            raise InvalidRequestError(f"File too large. Maximum size is {max_mb}MB", code="FILE_TOO_LARGE")
        return request.image

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        image = self._validate(request)
        user_id = request.user.id
        event_id, session_id = request.event_id, request.session_id

        event = await self.records.get_event_by_id(event_id, user_id)
        if event is None:
            raise NotFoundError("Event not found", code="EVENT_NOT_FOUND")

        photo_session = await self.records.get_photo_session_by_id(session_id, user_id)
        if photo_session is None or photo_session.event_id != event_id:
            raise NotFoundError("Photo session not found", code="SESSION_NOT_FOUND")

        dims = inspect_image(image.data)
        extension = extension_from_filename(image.filename)
        logger.info(
            "Generating styled photos: user=%s event=%s session=%s size=%sx%s landscape=%s",
            user_id, event_id, session_id, dims.width, dims.height, dims.is_landscape,
        )

        image_id = await self.generator.upload_source(image.data, extension)
        ctx = _RequestContext(
            user_id=user_id,
            event_id=event_id,
            session_id=session_id,
            image_id=image_id,
            is_landscape=dims.is_landscape,
            logo_ref=event.logo_url,
        )

        runs = [StyleRun(style=style) for style in STYLES]
        fatal: List[PhotoboothError] = []
        async with anyio.create_task_group() as tg:
            for run in runs:
                tg.start_soon(self._run_style, ctx, run, fatal, tg.cancel_scope)

        if fatal:
            raise fatal[0]

        images = [run.outcome() for run in runs if run.state is StyleState.RECORDED]
        failures = [StyleFailure(style=run.style, message=run.error) for run in runs if run.state is StyleState.FAILED]
        if not images:
            raise PhotoboothError(
                failures[0].message if failures else "No styled photos were produced",
                code="GENERATION_INCOMPLETE",
            )

        logger.info(
            "Session %s finished: %d/%d styles stored", session_id, len(images), len(runs),
        )
        return GenerationResult(
            image_id=image_id,
            session_id=session_id,
            event_id=event_id,
            images=images,
            failures=failures,
        )

    async def _run_style(
        self,
        ctx: _RequestContext,
        run: StyleRun,
        fatal: List[PhotoboothError],
        cancel_scope: CancelScope,
    ) -> None:
        try:
            await self._generate_style(ctx, run)
        except Exception as exc:
            run.fail(exc)
            logger.error("Generation failed for %s: %s", run.style.value, exc)
            if not fatal:
                if not isinstance(exc, ImageGenerationError):
                    exc = ImageGenerationError(f"Generation failed: {exc}")
                fatal.append(exc)
            cancel_scope.cancel()
            return

        try:
            await self._finish_style(ctx, run)
        except Exception as exc:
            logger.exception("Failed to process %s photo", run.style.value)
            run.fail(exc)

    async def _generate_style(self, ctx: _RequestContext, run: StyleRun) -> None:
        run.job = await self.generator.submit_generation(
            image_id=ctx.image_id,
            style=run.style,
            is_landscape=ctx.is_landscape,
            prompt=self.config.prompt_for(run.style),
            model_id=self.config.model_id,
            style_uuid=self.config.style_uuid,
        )
        run.advance(StyleState.SUBMITTED)

        record = await self.records.create_styled_photo_record(ctx.session_id, run.style)
        run.record_id = record.id

        run.advance(StyleState.POLLING)
        await self.generator.wait_for_generation(
            run.job,
            interval=self.config.poll_interval,
            max_attempts=self.config.max_poll_attempts,
            sleep=self.sleep,
        )

    async def _finish_style(self, ctx: _RequestContext, run: StyleRun) -> None:
        image_bytes = await self.download(run.job.result_url)
        run.advance(StyleState.DOWNLOADED)

        run.composite = await self.compositor.composite(image_bytes, ctx.logo_ref, label=run.style.value)
        run.advance(StyleState.COMPOSITED)

        run.stored = await self.storage.upload_generated_photo(
            data=run.composite.data,
            content_type=run.composite.mime_type,
            user_id=ctx.user_id,
            event_id=ctx.event_id,
            session_id=ctx.session_id,
            style=run.style,
        )
        run.advance(StyleState.UPLOADED)

        await self.records.update_styled_photo_record_url(run.record_id, run.stored.path)
        run.advance(StyleState.RECORDED)
        logger.info("Stored %s photo at %s", run.style.value, run.stored.path)
