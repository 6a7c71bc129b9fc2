"""In-memory object store.

Implements the ObjectStoreClient protocol on a plain dict. Used for local
development (``STORAGE_BACKEND=memory``) and as the backend of the unit
tests. Objects are lost when the process exits.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import logging
from typing import TYPE_CHECKING

from bucket_browser.infra.storage.exceptions import StorageFileNotFoundError

from .protocol import ListPage, ObjectInfo

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


class MemoryByteSource:
    """Read stream over an immutable snapshot of an object."""

    def __init__(self, data: bytes) -> None:
        self._view = memoryview(data)
        self._offset = 0
        self.closed = False

    async def read(self, size: int) -> bytes:
        if self.closed:
            raise ValueError("read from closed stream")
        # Yield so that readers interleave like real network streams
        await asyncio.sleep(0)
        chunk = self._view[self._offset : self._offset + size].tobytes()
        self._offset += len(chunk)
        return chunk

    async def close(self) -> None:
        self.closed = True


class MemoryByteSink:
    """Write stream that stores its buffer as an object on close."""

    def __init__(self, store: MemoryObjectStore, name: str) -> None:
        self._store = store
        self._name = name
        self._buffer = bytearray()
        self.committed = False
        self.aborted = False

    async def write(self, data: bytes) -> None:
        if self.committed or self.aborted:
            raise ValueError("write to closed stream")
        await asyncio.sleep(0)
        self._buffer.extend(data)

    async def close(self) -> None:
        if self.aborted:
            raise ValueError("stream was aborted")
        if self.committed:
            return
        self._store._put(self._name, bytes(self._buffer))
        self.committed = True

    async def abort(self) -> None:
        self.aborted = True
        self._buffer.clear()


class MemoryObjectStore:
    """Dict-backed object store.

    Example:
        store = MemoryObjectStore(bucket="uploads")
        await store.save("docs/a.txt", b"hello")
        page = await store.list(prefix="docs/", delimiter="/")
    """

    def __init__(
        self,
        bucket: str = "memory",
        objects: dict[str, bytes] | None = None,
    ) -> None:
        self._bucket = bucket
        self._objects: dict[str, tuple[bytes, datetime]] = {}
        self._started = False
        for name, data in (objects or {}).items():
            self._put(name, data)

    @property
    def backend_name(self) -> str:
        return "memory"

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def is_ready(self) -> bool:
        return self._started

    # ========================================================================
    # Lifecycle Management
    # ========================================================================

    async def startup(self) -> None:
        self._started = True
        logger.debug("Memory object store started", extra={"bucket": self._bucket})

    async def shutdown(self) -> None:
        self._started = False

    async def __aenter__(self) -> MemoryObjectStore:
        await self.startup()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    # ========================================================================
    # Object Operations
    # ========================================================================

    def _put(self, name: str, data: bytes) -> None:
        self._objects[name] = (data, datetime.now(UTC))

    def _require(self, name: str) -> tuple[bytes, datetime]:
        try:
            return self._objects[name]
        except KeyError:
            raise StorageFileNotFoundError(
                f"Object not found: {name}", metadata={"key": name}
            ) from None

    def read_object(self, name: str) -> bytes:
        """Synchronous accessor for an object's content."""
        return self._require(name)[0]

    def names(self) -> list[str]:
        """Sorted snapshot of every stored object name."""
        return sorted(self._objects)

    async def exists(self, name: str) -> bool:
        await asyncio.sleep(0)
        return name in self._objects

    async def list(
        self,
        prefix: str = "",
        delimiter: str | None = None,
        page_token: str | None = None,
        max_results: int = 1000,
    ) -> ListPage:
        if max_results < 1:
            raise ValueError("max_results must be positive")
        await asyncio.sleep(0)

        # Entries are object names or folded prefixes, in lexicographic order
        entries: dict[str, ObjectInfo | None] = {}
        for name in sorted(self._objects):
            if not name.startswith(prefix):
                continue
            if delimiter:
                cut = name.find(delimiter, len(prefix))
                if cut >= 0:
                    entries.setdefault(name[: cut + len(delimiter)], None)
                    continue
            data, updated = self._objects[name]
            entries[name] = ObjectInfo(name=name, size=len(data), updated=updated)

        keys = sorted(entries)
        if page_token:
            keys = [k for k in keys if k > page_token]
        page = keys[:max_results]
        next_token = page[-1] if len(keys) > max_results else None

        items = [info for k in page if (info := entries[k]) is not None]
        prefixes = [k for k in page if entries[k] is None]
        return ListPage(items=items, prefixes=prefixes, next_page_token=next_token)

    async def get_metadata(self, name: str) -> ObjectInfo:
        await asyncio.sleep(0)
        data, updated = self._require(name)
        return ObjectInfo(name=name, size=len(data), updated=updated)

    async def copy(self, src_name: str, dest_name: str) -> None:
        await asyncio.sleep(0)
        data, _ = self._require(src_name)
        self._put(dest_name, data)

    async def delete(self, name: str, ignore_not_found: bool = False) -> None:
        await asyncio.sleep(0)
        if name not in self._objects:
            if ignore_not_found:
                return
            self._require(name)
        del self._objects[name]

    async def delete_all_with_prefix(self, prefix: str) -> None:
        await asyncio.sleep(0)
        for name in [n for n in self._objects if n.startswith(prefix)]:
            del self._objects[name]

    async def open_read(self, name: str) -> MemoryByteSource:
        return MemoryByteSource(self._require(name)[0])

    async def open_write(self, name: str) -> MemoryByteSink:
        return MemoryByteSink(self, name)

    async def save(self, name: str, data: bytes) -> None:
        await asyncio.sleep(0)
        self._put(name, bytes(data))
