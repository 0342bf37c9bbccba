"""Storage adapters for generated cover images."""

from .image_storage import (
    LocalStorageAdapter,
    S3StorageAdapter,
    StorageAdapter,
    cover_folder,
    download_image,
    get_storage_adapter,
    storage_adapter,
    store_cover,
)

__all__ = [
    "StorageAdapter",
    "LocalStorageAdapter",
    "S3StorageAdapter",
    "cover_folder",
    "get_storage_adapter",
    "download_image",
    "store_cover",
    "storage_adapter",
]
