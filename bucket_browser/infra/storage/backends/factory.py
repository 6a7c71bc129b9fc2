"""Backend factory for creating object store backends from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from bucket_browser.core.settings.storage import StorageBackendType
from bucket_browser.infra.storage.exceptions import StorageNotConfiguredError

if TYPE_CHECKING:
    from bucket_browser.core.settings.storage import StorageSettings

    from .protocol import ObjectStoreClient


def create_object_store(settings: StorageSettings) -> ObjectStoreClient:
    """Create the object store selected by ``settings.backend``.

    Args:
        settings: Storage configuration settings

    Returns:
        Backend implementing ObjectStoreClient (not started yet)

    Raises:
        StorageNotConfiguredError: If the backend type is unsupported

    Example:
        store = create_object_store(get_storage_settings())
        async with store:
            await store.save("file.txt", b"data")
    """
    match settings.backend:
        case StorageBackendType.S3 | StorageBackendType.MINIO:
            # Both S3 and MinIO use the same S3-compatible backend
            from .s3.backend import S3ObjectStore

            return S3ObjectStore(settings)

        case StorageBackendType.MEMORY:
            from .memory import MemoryObjectStore

            return MemoryObjectStore(bucket=settings.bucket)

        case _:
            msg = (
                f"Unsupported storage backend: {settings.backend}. "
                f"Supported backends: {', '.join(t.value for t in StorageBackendType)}"
            )
            raise StorageNotConfiguredError(msg)
