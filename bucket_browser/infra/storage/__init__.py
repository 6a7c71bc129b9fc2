"""Object storage infrastructure.

Backends implementing the ObjectStoreClient contract live in ``backends``;
tracked transfers and renames live in ``operations``.
"""

from __future__ import annotations

from .backends import ObjectStoreClient, create_object_store
from .exceptions import (
    StorageConflictError,
    StorageError,
    StorageFileNotFoundError,
    StorageValidationError,
)

__all__ = [
    "ObjectStoreClient",
    "StorageConflictError",
    "StorageError",
    "StorageFileNotFoundError",
    "StorageValidationError",
    "create_object_store",
]
