"""Streamed uploads and downloads with progress reporting.

Every transfer is the same loop: read a chunk from a ByteSource, write it
to a ByteSink, report the running byte count. Only the endpoints differ:

- upload from a local file: LocalFileSource -> object store sink
- upload from memory: BufferSource -> object store sink
- download: object store source -> LocalFileSink

Request validation runs before the operation is registered, so a rejected
request never gets an id and never emits events.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from bucket_browser.core.settings import get_transfer_settings
from bucket_browser.infra.storage.exceptions import (
    StorageConflictError,
    StorageFileNotFoundError,
    StorageValidationError,
)

from .models import OperationKind
from .results import best_effort

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from bucket_browser.core.settings import TransferSettings
    from bucket_browser.infra.storage.backends.protocol import (
        ByteSink,
        ByteSource,
        ObjectStoreClient,
    )

    from .models import CancellationToken
    from .progress import ProgressReporter
    from .runner import OperationRunner

logger = logging.getLogger(__name__)


# ============================================================================
# Local Endpoints
# ============================================================================


class BufferSource:
    """ByteSource over an in-memory buffer."""

    def __init__(self, data: bytes) -> None:
        self._view = memoryview(data)
        self._offset = 0

    async def read(self, size: int) -> bytes:
        await asyncio.sleep(0)
        chunk = self._view[self._offset : self._offset + size].tobytes()
        self._offset += len(chunk)
        return chunk

    async def close(self) -> None:
        self._view.release()


class LocalFileSource:
    """ByteSource reading a local file in a worker thread."""

    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle

    @classmethod
    async def open(cls, path: Path) -> LocalFileSource:
        return cls(await asyncio.to_thread(path.open, "rb"))

    async def read(self, size: int) -> bytes:
        return await asyncio.to_thread(self._handle.read, size)

    async def close(self) -> None:
        await asyncio.to_thread(self._handle.close)


class LocalFileSink:
    """ByteSink writing a local file in a worker thread.

    Abort closes the file and leaves the partial content in place.
    """

    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle

    @classmethod
    async def open(cls, path: Path) -> LocalFileSink:
        return cls(await asyncio.to_thread(path.open, "wb"))

    async def write(self, data: bytes) -> None:
        await asyncio.to_thread(self._handle.write, data)

    async def close(self) -> None:
        await asyncio.to_thread(self._handle.close)

    async def abort(self) -> None:
        await asyncio.to_thread(self._handle.close)


# ============================================================================
# Transfer Plan
# ============================================================================


@dataclass(frozen=True)
class TransferPlan:
    """Validated transfer, ready to run.

    Attributes:
        kind: upload or download
        label: Name reported in progress events (the destination)
        total: Expected byte count
        open_source: Opens the readable endpoint
        open_sink: Opens the writable endpoint
        overwritten: Whether the destination object existed before (uploads)
        saved_to: Absolute local path written (downloads)
    """

    kind: OperationKind
    label: str
    total: int
    open_source: Callable[[], Awaitable[ByteSource]]
    open_sink: Callable[[], Awaitable[ByteSink]]
    overwritten: bool = False
    saved_to: str | None = None


def _require_name(value: str, field_name: str) -> None:
    if not value:
        raise StorageValidationError(
            f"{field_name} must not be empty", metadata={"field": field_name}
        )


class TransferPipeline:
    """Starts and runs streamed transfers against one object store.

    Example:
        pipeline = TransferPipeline(store, runner)
        op_id = await pipeline.upload_from_local_path(Path("a.txt"), "docs/a.txt")
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        runner: OperationRunner,
        settings: TransferSettings | None = None,
    ) -> None:
        self.store = store
        self.runner = runner
        self.settings = settings or get_transfer_settings()

    @property
    def chunk_size(self) -> int:
        return self.settings.chunk_size

    # ========================================================================
    # Validation
    # ========================================================================

    async def _check_destination(self, destination: str, overwrite: bool) -> bool:
        _require_name(destination, "destination")
        exists = await self.store.exists(destination)
        if exists and not overwrite:
            raise StorageConflictError(
                f"An object with the same name already exists: {destination}",
                metadata={"key": destination},
            )
        return exists

    async def plan_local_upload(
        self,
        local_path: str | Path,
        destination: str,
        overwrite: bool = False,
    ) -> TransferPlan:
        """Validate an upload of a local file."""
        path = Path(local_path)
        if not path.is_file():
            raise StorageFileNotFoundError(
                f"Local file not found: {path}", metadata={"path": str(path)}
            )
        overwritten = await self._check_destination(destination, overwrite)
        return TransferPlan(
            kind=OperationKind.UPLOAD,
            label=destination,
            total=path.stat().st_size,
            open_source=lambda: LocalFileSource.open(path),
            open_sink=lambda: self.store.open_write(destination),
            overwritten=overwritten,
        )

    async def plan_buffer_upload(
        self,
        data: bytes,
        destination: str,
        overwrite: bool = False,
    ) -> TransferPlan:
        """Validate an upload of an in-memory buffer."""
        overwritten = await self._check_destination(destination, overwrite)
        payload = bytes(data)

        async def open_source() -> ByteSource:
            return BufferSource(payload)

        return TransferPlan(
            kind=OperationKind.UPLOAD,
            label=destination,
            total=len(payload),
            open_source=open_source,
            open_sink=lambda: self.store.open_write(destination),
            overwritten=overwritten,
        )

    async def plan_download(
        self,
        object_name: str,
        local_path: str | Path,
    ) -> TransferPlan:
        """Validate a download and create the local parent directory."""
        _require_name(object_name, "object_name")
        if not str(local_path):
            raise StorageValidationError(
                "local_path must not be empty", metadata={"field": "local_path"}
            )
        info = await self.store.get_metadata(object_name)
        path = Path(local_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        return TransferPlan(
            kind=OperationKind.DOWNLOAD,
            label=object_name,
            total=info.size,
            open_source=lambda: self.store.open_read(object_name),
            open_sink=lambda: LocalFileSink.open(path),
            saved_to=str(path),
        )

    # ========================================================================
    # Tracked Transfers
    # ========================================================================

    async def upload_from_local_path(
        self,
        local_path: str | Path,
        destination: str,
        overwrite: bool = False,
    ) -> str:
        """Start uploading a local file; returns the operation id."""
        plan = await self.plan_local_upload(local_path, destination, overwrite)
        return self.start(plan)

    async def upload_from_buffer(
        self,
        data: bytes,
        destination: str,
        overwrite: bool = False,
    ) -> str:
        """Start uploading a buffer; returns the operation id."""
        plan = await self.plan_buffer_upload(data, destination, overwrite)
        return self.start(plan)

    async def download_to_local_path(
        self,
        object_name: str,
        local_path: str | Path,
    ) -> str:
        """Start downloading an object to a local file; returns the operation id."""
        plan = await self.plan_download(object_name, local_path)
        return self.start(plan)

    def start(self, plan: TransferPlan) -> str:
        """Register and schedule a validated transfer."""

        async def body(reporter: ProgressReporter) -> None:
            await self.run(
                plan,
                token=reporter.operation.token,
                on_progress=lambda transferred: reporter.transfer_progress(
                    transferred, plan.total
                ),
            )
            if plan.saved_to is not None:
                reporter.done(saved_to=plan.saved_to)
            else:
                reporter.done()

        return self.runner.start(plan.kind, plan.label, body)

    # ========================================================================
    # Streaming Loop
    # ========================================================================

    async def run(
        self,
        plan: TransferPlan,
        token: CancellationToken | None = None,
        on_progress: Callable[[int], None] | None = None,
    ) -> int:
        """Stream ``plan`` to completion and return the bytes transferred.

        On failure or cancellation the sink is aborted; the source is always
        closed. Teardown failures are logged and ignored.
        """
        source: ByteSource | None = None
        sink: ByteSink | None = None
        committed = False
        transferred = 0
        try:
            source = await plan.open_source()
            sink = await plan.open_sink()
            if on_progress:
                on_progress(0)

            while True:
                if token is not None:
                    token.raise_if_cancelled()
                chunk = await source.read(self.chunk_size)
                if not chunk:
                    break
                await sink.write(chunk)
                transferred += len(chunk)
                if on_progress:
                    on_progress(transferred)

            await sink.close()
            committed = True
        finally:
            if sink is not None and not committed:
                aborted = await best_effort("abort sink", sink.abort, label=plan.label)
                if not aborted.ok and not aborted.ignorable:
                    logger.error(
                        "Partial data may remain at the destination",
                        extra={"kind": plan.kind.value, "label": plan.label},
                    )
            if source is not None:
                await best_effort("close source", source.close, label=plan.label)

        logger.info(
            "Transfer complete",
            extra={
                "kind": plan.kind.value,
                "label": plan.label,
                "size_bytes": transferred,
            },
        )
        return transferred
