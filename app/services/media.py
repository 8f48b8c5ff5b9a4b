"""
Asset Uploader - stores cover and inline images.

Two backends:
- ``local``: writes into ``UPLOAD_DIR`` and serves files from ``/uploads``
- ``s3``: uploads to an S3-compatible bucket (AWS, MinIO) with boto3

Both return the URL the post should reference.
"""

import logging
import uuid
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import status
from fastapi.concurrency import run_in_threadpool

from app.core.config import Settings
from app.core.exceptions import UploadError

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}

UPLOAD_URL_PREFIX = "/uploads"
S3_FOLDER = "blogs"


def normalize_image_ref(ref: str | None) -> str | None:
    """
    Normalize a stored image reference.

    Absolute http(s) URLs are kept as-is; anything else becomes a
    root-relative path. Empty values become None.
    """
    if ref is None:
        return None
    ref = str(ref).strip()
    if not ref:
        return None
    if ref.lower().startswith(("http://", "https://")):
        return ref
    return "/" + ref.lstrip("/")


def resolve_image_url(ref: str | None, base_url: str) -> str | None:
    """Absolute URL for an image reference, prefixing relative paths with ``base_url``."""
    ref = normalize_image_ref(ref)
    if ref is None or ref.lower().startswith(("http://", "https://")):
        return ref
    return base_url.rstrip("/") + ref


class AssetUploader:
    """Base uploader: validates the payload and picks a storage name."""

    def __init__(self, max_size_bytes: int):
        self.max_size_bytes = max_size_bytes

    def _validate(self, filename: str | None, data: bytes, content_type: str | None) -> str:
        """Return the file extension to store under, or raise UploadError."""
        if not data:
            raise UploadError("No file uploaded", status.HTTP_400_BAD_REQUEST)

        if len(data) > self.max_size_bytes:
            raise UploadError(
                f"File exceeds the {self.max_size_bytes // (1024 * 1024)} MB limit",
                status.HTTP_400_BAD_REQUEST,
            )

        extension = Path(filename or "").suffix.lower()
        if not extension and content_type:
            extension = CONTENT_TYPE_EXTENSIONS.get(content_type.lower(), "")

        if extension not in ALLOWED_FORMATS:
            raise UploadError(
                "Unsupported image format (allowed: jpg, jpeg, png, webp)",
                status.HTTP_400_BAD_REQUEST,
            )
        return extension

    @staticmethod
    def _storage_name(extension: str) -> str:
        return f"{uuid.uuid4().hex}{extension}"

    async def upload(self, filename: str | None, data: bytes, content_type: str | None = None) -> str:
        raise NotImplementedError


class LocalDiskUploader(AssetUploader):
    """Stores images on local disk, served from ``/uploads``."""

    def __init__(self, upload_dir: str | Path, max_size_bytes: int):
        super().__init__(max_size_bytes)
        self.upload_dir = Path(upload_dir)

    def _write(self, name: str, data: bytes) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        (self.upload_dir / name).write_bytes(data)

    async def upload(self, filename: str | None, data: bytes, content_type: str | None = None) -> str:
        extension = self._validate(filename, data, content_type)
        name = self._storage_name(extension)
        try:
            await run_in_threadpool(self._write, name, data)
        except OSError as e:
            logger.exception("Failed to write upload %s", name)
            raise UploadError("Image upload failed") from e

        url = f"{UPLOAD_URL_PREFIX}/{name}"
        logger.info("Image uploaded: %s", url)
        return url


class S3Uploader(AssetUploader):
    """Stores images in an S3-compatible bucket."""

    def __init__(
        self,
        bucket: str,
        max_size_bytes: int,
        endpoint_url: str | None = None,
        region: str = "us-east-1",
        access_key: str | None = None,
        secret_key: str | None = None,
        public_url: str | None = None,
        client=None,
    ):
        super().__init__(max_size_bytes)
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region
        self.access_key = access_key
        self.secret_key = secret_key
        self.public_url = public_url
        self._client = client

    def _get_client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url,
                region_name=self.region,
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
            )
        return self._client

    def _public_base(self) -> str:
        if self.public_url:
            return self.public_url.rstrip("/")
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com"

    async def upload(self, filename: str | None, data: bytes, content_type: str | None = None) -> str:
        extension = self._validate(filename, data, content_type)
        key = f"{S3_FOLDER}/{self._storage_name(extension)}"
        try:
            await run_in_threadpool(
                self._get_client().put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=ALLOWED_FORMATS[extension],
            )
        except (BotoCoreError, ClientError) as e:
            logger.exception("Failed to upload %s to bucket %s", key, self.bucket)
            raise UploadError("Image upload failed") from e

        url = f"{self._public_base()}/{key}"
        logger.info("Image uploaded: %s", url)
        return url


def build_uploader(settings: Settings) -> AssetUploader:
    """Create the uploader for the configured media backend."""
    max_size_bytes = settings.max_upload_size_mb * 1024 * 1024
    if settings.media_backend == "s3":
        return S3Uploader(
            bucket=settings.s3_bucket,
            max_size_bytes=max_size_bytes,
            endpoint_url=settings.s3_endpoint,
            region=settings.s3_region,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            public_url=settings.s3_public_url,
        )
    return LocalDiskUploader(settings.upload_dir, max_size_bytes)
