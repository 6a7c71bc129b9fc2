"""Object store backends.

Provides the protocol-based abstraction and its implementations.
"""

from .factory import create_object_store
from .memory import MemoryObjectStore
from .protocol import (
    SEPARATOR,
    ByteSink,
    ByteSource,
    ListPage,
    ObjectInfo,
    ObjectStoreClient,
)

__all__ = [
    "SEPARATOR",
    "ByteSink",
    "ByteSource",
    "ListPage",
    "MemoryObjectStore",
    "ObjectInfo",
    "ObjectStoreClient",
    "create_object_store",
]
