"""
Object storage for proposal uploads.

Files go to an S3-compatible bucket; the proposal stores only the public URL.
The boto3 client is blocking, so calls run in a worker thread.
"""
import asyncio
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import boto3
import structlog
from boto3.session import Session
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from backend.core.config import settings
from backend.core.exceptions import ValidationError

logger = structlog.get_logger(__name__)

# Folder tags used as key prefixes
PROPOSALS_FOLDER = "proposals"
CV_FOLDER = "cvs"
ADDITIONAL_FOLDER = "additional"

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    """Upload to the object store failed after retries."""


@dataclass
class UploadedFile:
    """A file received in a multipart request, read fully into memory."""

    filename: str
    content: bytes
    content_type: Optional[str] = None


def create_client(region_name: str = settings.s3_region) -> boto3.client:
    """Create a boto3 S3 client from settings."""
    session = Session(
        aws_access_key_id=settings.s3_access_key_id,
        aws_secret_access_key=settings.s3_secret_access_key,
        region_name=region_name,
    )
    return session.client("s3", endpoint_url=settings.s3_endpoint_url)


def build_object_key(folder: str, filename: str, now: Optional[datetime] = None) -> str:
    """``<folder>/<timestamp>_<uuid>_<safe name>``"""
    now = now or datetime.now(timezone.utc)
    safe_name = _SAFE_NAME.sub("_", filename.rsplit("/", 1)[-1]).strip("._") or "file"
    return f"{folder}/{now.strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}_{safe_name}"


def public_url(key: str, bucket: Optional[str] = None) -> str:
    """URL of ``key`` in ``bucket`` (the configured bucket by default)."""
    bucket = bucket or settings.s3_bucket
    if settings.s3_public_base_url:
        return f"{settings.s3_public_base_url.rstrip('/')}/{key}"
    if settings.s3_endpoint_url:
        return f"{settings.s3_endpoint_url.rstrip('/')}/{bucket}/{key}"
    return f"https://{bucket}.s3.{settings.s3_region}.amazonaws.com/{key}"


class S3Storage:
    """Uploads files to the configured bucket and returns their public URLs."""

    def __init__(self, client=None, bucket: Optional[str] = None):
        self._client = client
        self.bucket = bucket or settings.s3_bucket

    @property
    def client(self):
        if self._client is None:
            self._client = create_client()
        return self._client

    def _put_sync(self, key: str, content: bytes, content_type: Optional[str]) -> None:
        extra = {"ContentType": content_type} if content_type else {}
        self.client.put_object(Bucket=self.bucket, Key=key, Body=content, **extra)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(BotoCoreError),
        reraise=True,
    )
    async def _put(self, key: str, content: bytes, content_type: Optional[str]) -> None:
        await asyncio.to_thread(self._put_sync, key, content, content_type)

    async def upload(self, file: UploadedFile, folder: str) -> str:
        """
        Store ``file`` under ``folder`` and return its public URL.

        Raises:
            ValidationError: file is empty or larger than the configured limit.
            StorageError: the object store rejected the upload.
        """
        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        if not file.content:
            raise ValidationError(f"Uploaded file '{file.filename}' is empty.")
        if len(file.content) > max_bytes:
            raise ValidationError(
                f"Uploaded file '{file.filename}' exceeds the {settings.max_upload_size_mb} MB limit."
            )

        key = build_object_key(folder, file.filename)
        try:
            await self._put(key, file.content, file.content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error("storage_upload_failed", key=key, error=str(e))
            raise StorageError(f"Failed to store {file.filename}") from e

        logger.info("storage_upload_complete", key=key, size=len(file.content), folder=folder)
        return public_url(key, self.bucket)


_storage: Optional[S3Storage] = None


def get_storage() -> S3Storage:
    """FastAPI dependency returning the shared storage adapter."""
    global _storage
    if _storage is None:
        _storage = S3Storage()
    return _storage
