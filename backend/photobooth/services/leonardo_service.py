import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import anyio
import requests
from tenacity import retry, stop_after_attempt, wait_random_exponential, retry_if_exception_type

from photobooth.core.errors import PhotoboothError
from photobooth.db.models import Style

logger = logging.getLogger(__name__)

LANDSCAPE_SIZE = (1248, 832)
PORTRAIT_SIZE = (832, 1248)


class ImageGenerationError(PhotoboothError):
    """Raised when a generation job cannot produce an image. Fatal for the request."""

    status_code = 500
    code = "GENERATION_FAILED"


class UpstreamUnavailable(PhotoboothError):
    """Raised when upstream is temporarily unavailable (rate limit, 5xx). Safe to retry."""

    status_code = 502
    code = "UPSTREAM_UNAVAILABLE"


class SourceUploadError(PhotoboothError):
    status_code = 502
    code = "SOURCE_UPLOAD_FAILED"


class ImageDownloadError(PhotoboothError):
    status_code = 502
    code = "IMAGE_DOWNLOAD_FAILED"


class JobStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


@dataclass
class GenerationJob:
    generation_id: str
    style: Optional[Style] = None
    status: JobStatus = JobStatus.PENDING
    result_url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETE, JobStatus.FAILED)


def generation_size(is_landscape: bool) -> tuple[int, int]:
    return LANDSCAPE_SIZE if is_landscape else PORTRAIT_SIZE


def _raise_for_upstream(resp: requests.Response, what: str) -> None:
    if resp.status_code == 429 or 500 <= resp.status_code < 600:
        raise UpstreamUnavailable(f"{what} failed: {resp.status_code} {resp.reason}")
    if resp.status_code >= 400:
        raise ImageGenerationError(f"{what} failed: {resp.status_code} {resp.reason} - {resp.text}")


class LeonardoClient:
    """
    Thin client over the Leonardo REST API.

    Blocking ``requests`` calls run in a worker thread so the event loop
    stays responsive while the four style jobs are in flight.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://cloud.leonardo.ai/api/rest/v1",
        timeout: int = 60,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> "LeonardoClient":
        return cls(
            settings.LEONARDO_API_KEY,
            base_url=settings.LEONARDO_BASE_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_random_exponential(multiplier=1, max=8),
        retry=retry_if_exception_type(UpstreamUnavailable),
        reraise=True,
    )
    async def _request(self, method: str, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"

        def _send() -> Dict[str, Any]:
            try:
                resp = self.session.request(
                    method,
                    url,
                    headers=self._headers(),
                    data=json.dumps(payload) if payload is not None else None,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                logger.warning("Leonardo request %s %s failed: %s", method, endpoint, exc)
                raise UpstreamUnavailable(f"Leonardo request failed: {exc}") from exc

            if not resp.ok:
                logger.error(
                    "Leonardo API error: status=%s endpoint=%s response=%s",
                    resp.status_code, endpoint, resp.text,
                )
            _raise_for_upstream(resp, f"Leonardo {method} {endpoint}")
            return resp.json()

        return await anyio.to_thread.run_sync(_send)

    async def get_user_info(self) -> Dict[str, Any]:
        return await self._request("GET", "/me")

    async def upload_source(self, data: bytes, extension: str = "jpg") -> str:
        """
        Upload the source photo once and return Leonardo's init image id.

        Leonardo hands out a presigned form upload; the id is only usable
        after the form POST succeeds.
        """
        init = await self._request("POST", "/init-image", {"extension": extension})
        try:
            upload = init["uploadInitImage"]
            fields = upload["fields"]
            if isinstance(fields, str):
                fields = json.loads(fields)
            presigned_url, image_id = upload["url"], upload["id"]
        except (KeyError, TypeError, ValueError) as exc:
            raise SourceUploadError("Malformed init-image response from Leonardo") from exc

        def _post_form() -> None:
            try:
                resp = requests.post(
                    presigned_url,
                    data=fields,
                    files={"file": (f"source.{extension}", data)},
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                raise SourceUploadError(f"Upload failed: {exc}") from exc
            if not resp.ok:
                raise SourceUploadError(f"Upload failed: {resp.status_code}")

        await anyio.to_thread.run_sync(_post_form)
        logger.info("Uploaded source image to Leonardo: image_id=%s extension=%s bytes=%d", image_id, extension, len(data))
        return image_id

    async def submit_generation(
        self,
        *,
        image_id: str,
        style: Style,
        is_landscape: bool,
        prompt: str,
        model_id: str,
        style_uuid: str,
    ) -> GenerationJob:
        width, height = generation_size(is_landscape)
        body = {
            "modelId": model_id,
            "prompt": prompt,
            "enhancePrompt": True,
            "height": height,
            "width": width,
            "num_images": 1,
            "styleUUID": style_uuid,
            "contrastRatio": 0.5,
            "contextImages": [{"type": "UPLOADED", "id": image_id}],
        }
        resp = await self._request("POST", "/generations", body)
        try:
            generation_id = resp["sdGenerationJob"]["generationId"]
        except (KeyError, TypeError) as exc:
            raise ImageGenerationError("Generation failed: Leonardo returned no generation id") from exc

        logger.info("Submitted %s generation: generation_id=%s size=%dx%d", style.value, generation_id, width, height)
        return GenerationJob(generation_id=generation_id, style=style)

    async def poll_status(self, generation_id: str) -> GenerationJob:
        resp = await self._request("GET", f"/generations/{generation_id}")
        record = resp.get("generations_by_pk") or {}
        raw_status = record.get("status", JobStatus.PENDING.value)
        try:
            status = JobStatus(raw_status)
        except ValueError:
            # Leonardo reports intermediate states we treat as still pending.
            status = JobStatus.PENDING

        images = record.get("generated_images") or []
        result_url = images[0].get("url") if images else None
        return GenerationJob(generation_id=generation_id, status=status, result_url=result_url)

    async def wait_for_generation(
        self,
        job: GenerationJob,
        *,
        interval: float,
        max_attempts: int,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ) -> GenerationJob:
        """
        Poll a job until it reaches a terminal status.

        Raises ImageGenerationError when the job FAILS, completes without an
        image, or is still pending after ``max_attempts`` polls.
        """
        for attempt in range(1, max_attempts + 1):
            polled = await self.poll_status(job.generation_id)
            job.status = polled.status
            job.result_url = polled.result_url

            if job.is_terminal:
                if job.status is JobStatus.FAILED:
                    logger.error("Generation %s reported FAILED", job.generation_id)
                    raise ImageGenerationError("Generation failed")
                if not job.result_url:
                    job.status = JobStatus.FAILED
                    raise ImageGenerationError("Generation failed: no image returned")
                logger.info("Generation %s complete after %d poll(s)", job.generation_id, attempt)
                return job

            if attempt < max_attempts:
                await sleep(interval)

        job.status = JobStatus.FAILED
        logger.error("Generation %s still pending after %d polls", job.generation_id, max_attempts)
        raise ImageGenerationError(f"Generation failed: timed out after {max_attempts} polls")


async def fetch_image_bytes(url: str, timeout: int = 60) -> bytes:
    """Download a generated image. Any non-2xx response is a hard failure."""

    def _get() -> bytes:
        try:
            resp = requests.get(url, timeout=timeout)
        except requests.RequestException as exc:
            raise ImageDownloadError(f"Failed to download image: {exc}") from exc
        if not resp.ok:
            raise ImageDownloadError(f"Failed to download image: {resp.reason}")
        return resp.content

    return await anyio.to_thread.run_sync(_get)
