import logging
from dataclasses import dataclass
from typing import Optional

import anyio
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from photobooth.core.errors import StorageError
from photobooth.db.models import Style

logger = logging.getLogger(__name__)

GENERATED_PHOTO_TEMPLATE = "{user_id}/{event_id}/Photos/{session_id}/GenPhotos/{style}/{filename}.{ext}"

_EXT_BY_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class StoredObject:
    path: str
    public_url: Optional[str] = None


@dataclass(frozen=True)
class LogoAsset:
    data: bytes
    mime_type: str


def has_event_logo(logo_ref: Optional[str]) -> bool:
    return bool(logo_ref and logo_ref.strip())


def generated_photo_path(
    *, user_id: str, event_id: str, session_id: str, style: Style, content_type: str
) -> str:
    style_folder = style.value.lower()
    return GENERATED_PHOTO_TEMPLATE.format(
        user_id=user_id,
        event_id=event_id,
        session_id=session_id,
        style=style_folder,
        filename=style_folder,
        ext=_EXT_BY_MIME.get(content_type, "jpg"),
    )


def create_s3_client(settings):
    return boto3.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,
        aws_access_key_id=settings.S3_ACCESS_KEY_ID,
        aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


class StorageService:
    """S3-compatible bucket holding event logos and generated photos."""

    def __init__(self, client, bucket: str, *, public_base_url: Optional[str] = None):
        self._client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self._bucket_checked = False

    @classmethod
    def from_settings(cls, settings) -> "StorageService":
        return cls(
            create_s3_client(settings),
            settings.S3_BUCKET_NAME,
            public_base_url=settings.S3_PUBLIC_BASE_URL,
        )

    def _ensure_bucket_sync(self):
        try:
            self._client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            code = int(e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0))
            if code == 404:
                self._client.create_bucket(Bucket=self.bucket)
            else:
                raise

    async def ensure_bucket_exists(self) -> None:
        if self._bucket_checked:
            return
        await anyio.to_thread.run_sync(self._ensure_bucket_sync)
        self._bucket_checked = True

    async def upload_from_bytes(self, *, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload raw bytes to the configured bucket under the provided key."""
        try:
            await self.ensure_bucket_exists()

            def _put_object():
                self._client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=data,
                    ContentType=content_type,
                    CacheControl="max-age=3600",
                )

            await anyio.to_thread.run_sync(_put_object)
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload failed: key=%s bucket=%s error=%s", key, self.bucket, exc)
            raise StorageError(f"Upload failed: {exc}", code="STORAGE_UPLOAD_ERROR") from exc

        logger.info("Uploaded object to S3: key=%s bucket=%s", key, self.bucket)
        return key

    async def get_signed_url(self, *, key: str, expires: int = 3600) -> str:
        """Generate a time-limited signed URL for reading an object."""
        await self.ensure_bucket_exists()

        def _sign() -> str:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires,
            )

        return await anyio.to_thread.run_sync(_sign)

    async def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{self.bucket}/{key}"
        try:
            return await self.get_signed_url(key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not sign URL for {key}: {exc}", code="STORAGE_URL_ERROR") from exc

    async def upload_generated_photo(
        self,
        *,
        data: bytes,
        content_type: str,
        user_id: str,
        event_id: str,
        session_id: str,
        style: Style,
    ) -> StoredObject:
        key = generated_photo_path(
            user_id=user_id,
            event_id=event_id,
            session_id=session_id,
            style=style,
            content_type=content_type,
        )
        await self.upload_from_bytes(key=key, data=data, content_type=content_type)

        # The object is stored at this point; a missing URL must not fail the upload.
        try:
            url = await self.public_url(key)
        except StorageError as exc:
            logger.warning("Stored %s without a public URL: %s", key, exc.message)
            url = None
        return StoredObject(path=key, public_url=url)

    async def download_event_logo(self, logo_ref: str) -> LogoAsset:
        def _get_object():
            obj = self._client.get_object(Bucket=self.bucket, Key=logo_ref)
            return obj["Body"].read(), obj.get("ContentType")

        try:
            data, content_type = await anyio.to_thread.run_sync(_get_object)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Logo download failed: {exc}", code="LOGO_DOWNLOAD_ERROR") from exc

        if not data:
            raise StorageError("Logo download failed: Logo not found", code="LOGO_DOWNLOAD_ERROR")
        return LogoAsset(data=data, mime_type=content_type or "image/png")
