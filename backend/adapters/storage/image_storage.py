"""
Cover image storage adapters for local and S3 storage.

Generated covers are fetched from the provider's temporary URL and copied
into our own storage under ``covers/{project_id}/`` so the URLs we hand
back to authors stay valid.
"""

import os
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp
import boto3
from botocore.exceptions import ClientError, NoCredentialsError

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

COVER_FOLDER = "covers"

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


def cover_folder(project_id: str) -> str:
    """Storage folder for one project's covers."""
    return f"{COVER_FOLDER}/{_sanitize_segment(project_id)}"


def _sanitize_segment(value: str) -> str:
    value = os.path.basename(str(value))
    for char in ['/', '\\', '..', '\0', '\n', '\r', '\t']:
        value = value.replace(char, '_')
    return value or "_"


def _sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal and add a timestamp
    suffix so repeated saves never collide.
    """
    filename = _sanitize_segment(filename)

    if '.' not in filename:
        filename = f"{filename}.png"

    name, ext = os.path.splitext(filename)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    return f"{name}_{timestamp}{ext}"


class StorageAdapter(ABC):
    """Abstract base class for storage adapters."""

    @abstractmethod
    async def save_image(self, image_data: bytes, filename: str, folder: str) -> str:
        """
        Save image data to storage.

        Args:
            image_data: Raw image bytes
            filename: Desired filename (will be sanitized)
            folder: Relative folder, e.g. ``covers/<project_id>``

        Returns:
            Storage path or key of the saved image
        """

    @abstractmethod
    async def delete_image(self, path: str) -> bool:
        """
        Delete an image from storage.

        Returns:
            True if deleted successfully, False otherwise
        """

    @abstractmethod
    async def get_image_url(self, path: str) -> str:
        """Public URL for a stored image path or key."""


class LocalStorageAdapter(StorageAdapter):
    """
    Local filesystem storage adapter.

    Structure: <base_path>/covers/<project_id>/<name>_<timestamp>.png
    """

    def __init__(self, base_path: Optional[str] = None, base_url: Optional[str] = None):
        self.base_path = Path(base_path or settings.storage_local_path)
        self.base_url = (base_url or settings.public_base_url).rstrip("/")

    async def save_image(self, image_data: bytes, filename: str, folder: str) -> str:
        try:
            full_dir = self.base_path / folder
            full_dir.mkdir(parents=True, exist_ok=True)

            safe_filename = _sanitize_filename(filename)
            file_path = full_dir / safe_filename

            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(image_data)

            relative_path = f"{folder}/{safe_filename}"
            logger.info(f"Saved image to local storage: {relative_path}")
            return relative_path

        except Exception as e:
            logger.error(f"Failed to save image to local storage: {e}")
            raise

    async def delete_image(self, path: str) -> bool:
        try:
            file_path = self.base_path / path

            if file_path.exists():
                file_path.unlink()
                logger.info(f"Deleted image from local storage: {path}")
                return True
            else:
                logger.warning(f"Image not found for deletion: {path}")
                return False

        except OSError as e:
            logger.error(f"Failed to delete image from local storage: {e}")
            return False

    async def get_image_url(self, path: str) -> str:
        # Served by the API under /uploads, or by a reverse proxy in production
        return f"{self.base_url}/uploads/{path}"


class S3StorageAdapter(StorageAdapter):
    """
    AWS S3 storage adapter.

    Objects are private. Public URLs are presigned (7-day expiry) unless a
    CDN domain is configured.
    """

    PRESIGNED_URL_EXPIRY = 7 * 24 * 3600  # 7 days in seconds

    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket or settings.s3_bucket
        self.region = region or settings.s3_region
        self.access_key = access_key or settings.s3_access_key
        self.secret_key = secret_key or settings.s3_secret_key

        if client is not None:
            self.s3_client = client
            return

        try:
            if self.access_key and self.secret_key:
                self.s3_client = boto3.client(
                    's3',
                    region_name=self.region,
                    aws_access_key_id=self.access_key,
                    aws_secret_access_key=self.secret_key,
                )
            else:
                # Default credential chain (IAM role, env vars, etc.)
                self.s3_client = boto3.client('s3', region_name=self.region)

            logger.info(f"S3 storage adapter initialized for bucket: {self.bucket}")
        except Exception as e:
            logger.warning(f"Failed to initialize S3 client: {e}")
            self.s3_client = None

    async def save_image(self, image_data: bytes, filename: str, folder: str) -> str:
        if not self.s3_client:
            raise RuntimeError("S3 client not initialized. Check AWS credentials.")

        if not self.bucket:
            raise RuntimeError("S3 bucket not configured.")

        safe_filename = _sanitize_filename(filename)
        s3_key = f"{folder}/{safe_filename}"
        _, ext = os.path.splitext(safe_filename)
        content_type = _CONTENT_TYPES.get(ext.lower(), "image/png")

        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=s3_key,
                Body=image_data,
                ContentType=content_type,
            )
        except NoCredentialsError:
            logger.error("AWS credentials not found")
            raise RuntimeError("AWS credentials not configured")
        except ClientError as e:
            logger.error(f"S3 upload failed: {e}")
            raise RuntimeError(f"Failed to upload to S3: {e}")

        logger.info(f"Uploaded image to S3: {s3_key}")
        return s3_key

    async def delete_image(self, path: str) -> bool:
        if not self.s3_client or not self.bucket:
            logger.warning("S3 not configured, cannot delete image")
            return False

        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=path)
            logger.info(f"Deleted image from S3: {path}")
            return True
        except ClientError as e:
            logger.error(f"Failed to delete from S3: {e}")
            return False

    async def get_image_url(self, path: str) -> str:
        if not self.s3_client or not self.bucket:
            raise RuntimeError("S3 client or bucket not configured")

        if settings.cdn_domain:
            return f"https://{settings.cdn_domain}/{path}"

        return self.s3_client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket, 'Key': path},
            ExpiresIn=self.PRESIGNED_URL_EXPIRY,
        )


async def download_image(url: str) -> bytes:
    """
    Download an image from a URL, typically a provider's temporary output URL.

    Raises:
        RuntimeError: If the download fails or the payload is not an image
    """
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=30)) as response:
                if response.status != 200:
                    raise RuntimeError(
                        f"Failed to download image. Status: {response.status}"
                    )
                content_type = response.headers.get("content-type", "").lower()
                if content_type and "image" not in content_type:
                    raise RuntimeError(
                        f"Downloaded content is not an image (content-type: {content_type})"
                    )
                image_data = await response.read()
                logger.info(f"Downloaded image from {url} ({len(image_data)} bytes)")
                return image_data
    except aiohttp.ClientError as e:
        logger.error(f"Network error downloading image from {url}: {e}")
        raise RuntimeError(f"Network error: {e}")


async def store_cover(
    image_url: str,
    project_id: str,
    filename: str,
    adapter: Optional[StorageAdapter] = None,
) -> str:
    """
    Copy a generated cover into durable storage.

    Returns:
        Public URL of the stored cover
    """
    adapter = adapter or storage_adapter
    image_data = await download_image(image_url)
    path = await adapter.save_image(image_data, filename, cover_folder(project_id))
    return await adapter.get_image_url(path)


def get_storage_adapter() -> StorageAdapter:
    """
    Storage adapter selected by settings.storage_type.

    Raises:
        ValueError: If storage_type is not recognized
    """
    storage_type = settings.storage_type.lower()

    if storage_type == "local":
        return LocalStorageAdapter()
    elif storage_type == "s3":
        return S3StorageAdapter()
    else:
        raise ValueError(
            f"Unknown storage type: {storage_type}. Must be 'local' or 's3'"
        )


# Convenience singleton for quick access
storage_adapter = get_storage_adapter()
