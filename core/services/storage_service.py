# =============================================================================
# core/services/storage_service.py - Image Storage with Fallback Chain
# =============================================================================
# Uploads optimized images to the first storage backend that accepts them:
#
#   1. Supabase Storage   (public bucket URLs)
#   2. Cloudflare R2      (public domain, or 7-day presigned URLs)
#   3. Local disk         (served by the web server under /uploads)
#
# If every backend fails the caller still gets placeholder URLs, so a broken
# storage never blocks publishing.
# =============================================================================

import logging
import uuid
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from pydantic import BaseModel

from lib.images import ImageProcessingError, optimize_upload
from lib.supabase_client import SupabaseClient
from app.config import settings
from app.exceptions import FileTooLargeError, InvalidFileTypeError, InvalidImageError, StorageUploadError

logger = logging.getLogger(__name__)

THUMBNAIL_DIR = "thumbnails"
PRESIGNED_URL_EXPIRES = 7 * 24 * 60 * 60  # 604800 seconds
LOCAL_URL_PREFIX = "/uploads/"

PLACEHOLDER_IMAGE_URL = "https://placehold.co/800x600?text=Imagem+Indisponível"
PLACEHOLDER_THUMBNAIL_URL = "https://placehold.co/400x300?text=Imagem+Indisponível"

ALLOWED_FOLDERS = ("community", "arts", "avatars", "collections")


class ImageUploadResult(BaseModel):
    """URLs of a stored image and which backend took it."""
    image_url: str
    thumbnail_url: str
    storage_type: str


def thumbnail_key(key: str) -> str:
    """
    Key of the thumbnail stored next to a main image.

    Example:
        thumbnail_key("community/abc.webp")  # "community/thumbnails/abc.webp"
    """
    directory, _, name = key.rpartition("/")
    return f"{directory}/{THUMBNAIL_DIR}/{name}" if directory else f"{THUMBNAIL_DIR}/{name}"


def is_thumbnail_key(key: str) -> bool:
    return f"{THUMBNAIL_DIR}/" in key


# =============================================================================
# Backends
# =============================================================================

class StorageBackend:
    """
    Interface for a place images can be stored.

    Subclasses implement upload/delete and know how to recognize their URLs.
    """

    name = "base"

    def is_available(self) -> bool:
        return True

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under key and return the URL clients should use."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def key_from_url(self, url: str) -> str | None:
        """Key for a URL this backend produced, or None if it isn't ours."""
        raise NotImplementedError

    def check(self) -> str:
        """Connectivity check for the admin dashboard."""
        return "healthy" if self.is_available() else "not configured"


class SupabaseStorageBackend(StorageBackend):
    """Supabase Storage public bucket."""

    name = "supabase"

    def __init__(self, bucket: str | None = None):
        self.bucket = bucket or settings.STORAGE_BUCKET

    def _bucket(self):
        return SupabaseClient.get_client().storage.from_(self.bucket)

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        self._bucket().upload(
            path=key,
            file=data,
            file_options={"content-type": content_type, "upsert": "true"}
        )
        return self._bucket().get_public_url(key).rstrip("?")

    def delete(self, key: str) -> None:
        self._bucket().remove([key])

    def key_from_url(self, url: str) -> str | None:
        marker = f"/storage/v1/object/public/{self.bucket}/"
        if marker not in url:
            return None
        return unquote(url.split(marker, 1)[1].split("?", 1)[0])

    def check(self) -> str:
        try:
            SupabaseClient.get_client().storage.list_buckets()
            return "healthy"
        except Exception as e:
            return f"unhealthy: {str(e)[:50]}"


class R2StorageBackend(StorageBackend):
    """Cloudflare R2 through the S3 API."""

    name = "r2"

    def __init__(self, client: Any = None):
        self._client = client
        self.bucket = settings.R2_BUCKET_NAME
        self.public_url = settings.R2_PUBLIC_URL.rstrip("/")

    def is_available(self) -> bool:
        return self._client is not None or settings.r2_configured

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=settings.r2_endpoint_url,
                aws_access_key_id=settings.R2_ACCESS_KEY_ID,
                aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
                config=Config(signature_version="s3v4"),
                region_name="auto",
            )
            logger.info("R2 storage client initialized")
        return self._client

    def url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{key}"
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=PRESIGNED_URL_EXPIRES,
        )

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        return self.url_for(key)

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)

    def key_from_url(self, url: str) -> str | None:
        if self.public_url and url.startswith(f"{self.public_url}/"):
            return unquote(url[len(self.public_url) + 1:].split("?", 1)[0])

        parsed = urlparse(url)
        if parsed.netloc.endswith(".r2.cloudflarestorage.com"):
            path = unquote(parsed.path.lstrip("/"))
            prefix = f"{self.bucket}/"
            return path[len(prefix):] if path.startswith(prefix) else path
        return None

    def check(self) -> str:
        if not self.is_available():
            return "not configured"
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return "healthy"
        except Exception as e:
            return f"unhealthy: {str(e)[:50]}"


class LocalStorageBackend(StorageBackend):
    """Files on local disk, served under /uploads."""

    name = "local"

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or settings.LOCAL_UPLOAD_DIR)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Key escapes upload directory: {key}")
        return path

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return f"{LOCAL_URL_PREFIX}{key}"

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def key_from_url(self, url: str) -> str | None:
        if not url.startswith(LOCAL_URL_PREFIX):
            return None
        return url[len(LOCAL_URL_PREFIX):]

    def check(self) -> str:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            return "healthy"
        except OSError as e:
            return f"unhealthy: {str(e)[:50]}"


def default_backends() -> list[StorageBackend]:
    """Backends in fallback order."""
    return [SupabaseStorageBackend(), R2StorageBackend(), LocalStorageBackend()]


# =============================================================================
# Service
# =============================================================================

class StorageService:
    """
    Service for image uploads.

    Backends are injectable so tests (and scripts) can swap the chain.
    """

    @staticmethod
    def validate_image(filename: str, content_type: str | None, size: int) -> None:
        """
        Check type and size before any processing.

        Raises:
            InvalidFileTypeError: If the content type isn't an allowed image type
            FileTooLargeError: If the file exceeds MAX_UPLOAD_SIZE_MB
        """
        allowed = settings.allowed_image_types_list
        if (content_type or "").lower() not in allowed:
            raise InvalidFileTypeError(filename, allowed)

        if size > settings.max_upload_size_bytes:
            raise FileTooLargeError(size / (1024 * 1024), settings.MAX_UPLOAD_SIZE_MB)

    @staticmethod
    def upload_image(
        content: bytes,
        filename: str = "image",
        folder: str | None = None,
        backends: list[StorageBackend] | None = None,
    ) -> ImageUploadResult:
        """
        Optimize an image and store it on the first backend that works.

        Args:
            content: Raw uploaded bytes
            filename: Original filename (for error messages)
            folder: Optional key prefix (community, arts, avatars, collections)
            backends: Fallback chain (defaults to Supabase, R2, local)

        Returns:
            ImageUploadResult with both URLs and the backend name, or
            placeholder URLs with storage_type "placeholder" when all fail

        Raises:
            InvalidImageError: If the bytes are not a readable image
        """
        try:
            main, thumbnail = optimize_upload(content)
        except ImageProcessingError as e:
            raise InvalidImageError(filename, str(e))

        name = f"{uuid.uuid4()}.webp"
        key = f"{folder}/{name}" if folder else name

        for backend in backends if backends is not None else default_backends():
            if not backend.is_available():
                logger.debug(f"Skipping storage backend {backend.name}: not configured")
                continue

            try:
                image_url = backend.upload(key, main.data, main.content_type)
            except Exception as e:
                logger.warning(f"Upload to {backend.name} failed, trying next backend: {e}")
                continue

            try:
                thumbnail_url = backend.upload(thumbnail_key(key), thumbnail.data, thumbnail.content_type)
            except Exception as e:
                logger.warning(f"Thumbnail upload to {backend.name} failed, trying next backend: {e}")
                StorageService._discard(backend, key)
                continue

            logger.info(f"Stored image {key} on {backend.name} ({main.size} bytes)")
            return ImageUploadResult(
                image_url=image_url,
                thumbnail_url=thumbnail_url,
                storage_type=backend.name,
            )

        logger.error(f"All storage backends failed for {filename}; returning placeholders")
        return ImageUploadResult(
            image_url=PLACEHOLDER_IMAGE_URL,
            thumbnail_url=PLACEHOLDER_THUMBNAIL_URL,
            storage_type="placeholder",
        )

    @staticmethod
    def _discard(backend: StorageBackend, key: str) -> None:
        """Best-effort removal of a main image whose thumbnail didn't make it."""
        try:
            backend.delete(key)
        except Exception as e:
            logger.warning(f"Could not remove orphaned {key} from {backend.name}: {e}")

    @staticmethod
    def upload_image_strict(
        content: bytes,
        filename: str = "image",
        folder: str | None = None,
        backends: list[StorageBackend] | None = None,
    ) -> ImageUploadResult:
        """
        Same as upload_image but fails instead of returning placeholders.

        Raises:
            StorageUploadError: If no backend accepted the image
        """
        result = StorageService.upload_image(content, filename, folder, backends)
        if result.storage_type == "placeholder":
            raise StorageUploadError("all backends", "no storage backend accepted the image")
        return result

    @staticmethod
    def delete_image(url: str, backends: list[StorageBackend] | None = None) -> bool:
        """
        Delete an image and its thumbnail.

        The backend is found from the URL. Placeholder and foreign URLs are
        left alone.

        Returns:
            True if a backend recognized and deleted the image
        """
        if not url or url.startswith("https://placehold.co/"):
            return False

        for backend in backends if backends is not None else default_backends():
            if not backend.is_available():
                continue

            key = backend.key_from_url(url)
            if key is None:
                continue

            keys = [key] if is_thumbnail_key(key) else [key, thumbnail_key(key)]
            try:
                for item in keys:
                    backend.delete(item)
            except Exception as e:
                logger.error(f"Failed to delete {key} from {backend.name}: {e}")
                return False

            logger.info(f"Deleted image {key} from {backend.name}")
            return True

        logger.warning(f"No storage backend recognizes URL: {url}")
        return False

    @staticmethod
    def check_backends(backends: list[StorageBackend] | None = None) -> dict[str, str]:
        """Status of each backend, in fallback order."""
        return {
            backend.name: backend.check()
            for backend in (backends if backends is not None else default_backends())
        }
