"""Object store contract and normalized data structures.

This module defines:
- The ObjectStoreClient protocol every backend implements
- Byte stream handles (ByteSource / ByteSink) used by streamed transfers
- Normalized listing structures shared by all backends

All objects live in a single bucket namespace and are addressed by name;
folders are emulated with the ``/`` separator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime
    from types import TracebackType

SEPARATOR = "/"


# ============================================================================
# Normalized Data Structures
# ============================================================================


@dataclass(frozen=True)
class ObjectInfo:
    """Normalized object metadata.

    Attributes:
        name: Object name (full key, including any folder prefix)
        size: Object size in bytes
        updated: Last modification timestamp, when the backend reports one
    """

    name: str
    size: int
    updated: datetime | None = None


@dataclass(frozen=True)
class ListPage:
    """One page of a listing.

    Attributes:
        items: Objects on this page
        prefixes: Common prefixes ("sub-folders") when a delimiter was given
        next_page_token: Token for the next page, None on the last page
    """

    items: list[ObjectInfo] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    next_page_token: str | None = None


# ============================================================================
# Stream Handles
# ============================================================================


class ByteSource(Protocol):
    """Readable byte stream."""

    async def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; returns ``b""`` at end of stream."""
        ...

    async def close(self) -> None:
        """Release the underlying resource. Safe to call more than once."""
        ...


class ByteSink(Protocol):
    """Writable byte stream.

    Data becomes visible only after ``close()`` succeeds. ``abort()``
    discards whatever has not been committed yet; bytes the backend already
    flushed are not rolled back.
    """

    async def write(self, data: bytes) -> None:
        """Append ``data`` to the stream."""
        ...

    async def close(self) -> None:
        """Commit the written data."""
        ...

    async def abort(self) -> None:
        """Discard the stream without committing. Safe to call more than once."""
        ...


# ============================================================================
# Object Store Protocol
# ============================================================================


class ObjectStoreClient(Protocol):
    """Protocol for object store backends.

    Uses structural typing (Protocol) rather than inheritance, so test
    doubles only need the methods a component actually calls.
    """

    @property
    def backend_name(self) -> str:
        """Name of the backend (e.g., 's3', 'memory')."""
        ...

    @property
    def bucket(self) -> str:
        """Bucket every operation addresses."""
        ...

    # ========================================================================
    # Lifecycle Management
    # ========================================================================

    async def startup(self) -> None:
        """Initialize the backend (create clients, connection pools, etc.)."""
        ...

    async def shutdown(self) -> None:
        """Release backend resources."""
        ...

    async def __aenter__(self) -> ObjectStoreClient: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...

    # ========================================================================
    # Object Operations
    # ========================================================================

    async def exists(self, name: str) -> bool:
        """Check whether an object exists."""
        ...

    async def list(
        self,
        prefix: str = "",
        delimiter: str | None = None,
        page_token: str | None = None,
        max_results: int = 1000,
    ) -> ListPage:
        """List one page of objects under ``prefix``.

        Args:
            prefix: Filter by name prefix
            delimiter: When given, names containing the delimiter after the
                prefix are folded into ``ListPage.prefixes``
            page_token: Token returned by the previous page
            max_results: Maximum entries to return

        Returns:
            ListPage with items, common prefixes and the next page token
        """
        ...

    async def get_metadata(self, name: str) -> ObjectInfo:
        """Get object metadata.

        Raises:
            StorageFileNotFoundError: If the object does not exist
        """
        ...

    async def copy(self, src_name: str, dest_name: str) -> None:
        """Server-side copy.

        Raises:
            StorageFileNotFoundError: If the source does not exist
        """
        ...

    async def delete(self, name: str, ignore_not_found: bool = False) -> None:
        """Delete an object.

        Raises:
            StorageFileNotFoundError: If missing and ``ignore_not_found`` is False
        """
        ...

    async def delete_all_with_prefix(self, prefix: str) -> None:
        """Delete every object whose name starts with ``prefix``."""
        ...

    async def open_read(self, name: str) -> ByteSource:
        """Open a read stream on an object.

        Raises:
            StorageFileNotFoundError: If the object does not exist
        """
        ...

    async def open_write(self, name: str) -> ByteSink:
        """Open a write stream creating or replacing an object."""
        ...

    async def save(self, name: str, data: bytes) -> None:
        """Write a whole buffer as an object."""
        ...
