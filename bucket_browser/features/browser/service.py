"""Bucket browser service: the operation surface exposed to the UI layer.

BucketBrowserService owns the object store client, the operation registry
and the progress bus, and wires them into the transfer pipeline and the
rename orchestrator. A UI bridge (desktop shell, CLI, HTTP adapter) talks
to this class only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from bucket_browser.core.services.base import BaseService
from bucket_browser.core.settings import get_storage_settings, get_transfer_settings
from bucket_browser.features.browser.schemas import (
    BucketUsage,
    CancelResult,
    CreatePrefixResult,
    DeleteResult,
    DownloadResult,
    ListResult,
    ObjectEntry,
    RenamePrefixResult,
    RenameResult,
    UploadResult,
)
from bucket_browser.infra.storage.backends import SEPARATOR, create_object_store
from bucket_browser.infra.storage.exceptions import StorageValidationError
from bucket_browser.infra.storage.operations import (
    OperationRegistry,
    OperationRunner,
    ProgressBus,
    RenameOrchestrator,
    TransferPipeline,
    iter_objects,
    normalize_prefix,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from pathlib import Path
    from types import TracebackType

    from bucket_browser.core.settings import (
        SourceCleanupPolicy,
        StorageSettings,
        TransferSettings,
    )
    from bucket_browser.infra.storage.backends import ObjectStoreClient
    from bucket_browser.infra.storage.operations import ProgressEvent, Subscription


def _require(value: str, field_name: str) -> str:
    if not value:
        raise StorageValidationError(
            f"{field_name} is required", metadata={"field": field_name}
        )
    return value


class BucketBrowserService(BaseService):
    """Browse, transfer and rename objects in one bucket.

    Example:
        async with BucketBrowserService() as browser:
            page = await browser.list(prefix="docs/")
            op_id = await browser.start_upload_local("a.txt", "docs/a.txt")
            async for event in browser.events(op_id=op_id):
                if event.is_terminal:
                    break
    """

    def __init__(
        self,
        store: ObjectStoreClient | None = None,
        *,
        storage_settings: StorageSettings | None = None,
        transfer_settings: TransferSettings | None = None,
    ) -> None:
        super().__init__()
        self.store = store or create_object_store(
            storage_settings or get_storage_settings()
        )
        self.settings = transfer_settings or get_transfer_settings()
        self.registry = OperationRegistry()
        self.bus = ProgressBus()
        self.runner = OperationRunner(self.registry, self.bus)
        self.transfers = TransferPipeline(self.store, self.runner, self.settings)
        self.renames = RenameOrchestrator(self.store, self.runner, self.settings)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def startup(self) -> None:
        await self.store.startup()
        self.logger.info(
            "Bucket browser ready",
            extra={"backend": self.store.backend_name, "bucket": self.store.bucket},
        )

    async def shutdown(self) -> None:
        """Cancel in-flight operations and close the object store."""
        await self.runner.cancel_all()
        await self.store.shutdown()

    async def __aenter__(self) -> Self:
        await self.startup()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    async def join(self) -> None:
        """Wait for every background operation to finish."""
        await self.runner.join()

    # ========================================================================
    # Browsing
    # ========================================================================

    async def list(
        self,
        prefix: str = "",
        page_token: str | None = None,
        max_results: int = 1000,
        delimiter: str | None = SEPARATOR,
    ) -> ListResult:
        """List one page of objects and sub-prefixes under ``prefix``."""
        if max_results < 1:
            raise StorageValidationError(
                "max_results must be at least 1", metadata={"max_results": max_results}
            )
        page = await self.store.list(
            prefix=prefix,
            delimiter=delimiter,
            page_token=page_token,
            max_results=max_results,
        )
        return ListResult(
            items=[ObjectEntry.model_validate(item) for item in page.items],
            prefixes=page.prefixes,
            next_page_token=page.next_page_token,
        )

    async def exists(self, object_name: str) -> bool:
        return await self.store.exists(_require(object_name, "object_name"))

    async def delete(self, object_name: str) -> DeleteResult:
        """Delete one object.

        Raises:
            StorageFileNotFoundError: If the object does not exist
        """
        await self.store.delete(_require(object_name, "object_name"))
        self.logger.info("Object deleted", extra={"key": object_name})
        return DeleteResult(deleted=True)

    async def create_prefix(self, prefix: str) -> CreatePrefixResult:
        """Create an empty folder as a zero-byte ``prefix/`` marker object."""
        marker = normalize_prefix(_require(prefix, "prefix"))
        if await self.store.exists(marker):
            return CreatePrefixResult(created=False, name=marker)
        await self.store.save(marker, b"")
        self.logger.info("Prefix created", extra={"prefix": marker})
        return CreatePrefixResult(created=True, name=marker)

    async def delete_prefix(self, prefix: str) -> DeleteResult:
        """Delete a folder and everything under it."""
        normalized = normalize_prefix(_require(prefix, "prefix"))
        await self.store.delete_all_with_prefix(normalized)
        self.logger.info("Prefix deleted", extra={"prefix": normalized})
        return DeleteResult(deleted=True)

    async def get_bucket_usage(self, prefix: str = "") -> BucketUsage:
        """Sum object sizes under ``prefix`` (the whole bucket by default)."""
        total = 0
        count = 0
        async for info in iter_objects(self.store, prefix, self.settings.list_page_size):
            total += info.size
            count += 1
        return BucketUsage(bytes=str(total), count=count)

    # ========================================================================
    # Renames
    # ========================================================================

    async def rename(self, src: str, dest: str, overwrite: bool = False) -> RenameResult:
        name = await self.renames.rename_object(src, dest, overwrite=overwrite)
        return RenameResult(name=name)

    async def rename_prefix(
        self,
        src_prefix: str,
        dest_prefix: str,
        overwrite: bool = False,
        cleanup: SourceCleanupPolicy | None = None,
    ) -> RenamePrefixResult:
        outcome = await self.renames.rename_prefix(
            src_prefix, dest_prefix, overwrite=overwrite, cleanup=cleanup
        )
        return RenamePrefixResult.from_outcome(outcome)

    async def start_rename_prefix(
        self,
        src_prefix: str,
        dest_prefix: str,
        overwrite: bool = False,
        cleanup: SourceCleanupPolicy | None = None,
    ) -> str:
        return await self.renames.start_rename_prefix(
            src_prefix, dest_prefix, overwrite=overwrite, cleanup=cleanup
        )

    # ========================================================================
    # Transfers
    # ========================================================================

    async def upload_local(
        self,
        local_path: str | Path,
        destination: str,
        overwrite: bool = False,
    ) -> UploadResult:
        """Upload a local file and wait for it to finish, without progress events."""
        plan = await self.transfers.plan_local_upload(local_path, destination, overwrite)
        await self.transfers.run(plan)
        return UploadResult(name=destination, overwritten=plan.overwritten)

    async def upload_buffer(
        self,
        data: bytes,
        destination: str,
        overwrite: bool = False,
    ) -> UploadResult:
        """Upload an in-memory buffer and wait for it to finish."""
        plan = await self.transfers.plan_buffer_upload(data, destination, overwrite)
        await self.transfers.run(plan)
        return UploadResult(name=destination, overwritten=plan.overwritten)

    async def download(self, object_name: str, local_path: str | Path) -> DownloadResult:
        """Download an object to a local file and wait for it to finish."""
        plan = await self.transfers.plan_download(object_name, local_path)
        await self.transfers.run(plan)
        return DownloadResult(saved_to=plan.saved_to or str(local_path))

    async def start_upload_local(
        self,
        local_path: str | Path,
        destination: str,
        overwrite: bool = False,
    ) -> str:
        return await self.transfers.upload_from_local_path(
            local_path, destination, overwrite=overwrite
        )

    async def start_upload_buffer(
        self,
        data: bytes,
        destination: str,
        overwrite: bool = False,
    ) -> str:
        return await self.transfers.upload_from_buffer(
            data, destination, overwrite=overwrite
        )

    async def start_download(self, object_name: str, local_path: str | Path) -> str:
        return await self.transfers.download_to_local_path(object_name, local_path)

    # ========================================================================
    # Operations
    # ========================================================================

    def cancel(self, op_id: str) -> CancelResult:
        """Cancel an in-flight operation. Unknown ids report ``canceled=False``."""
        return CancelResult(canceled=self.registry.cancel(op_id))

    def subscribe(
        self,
        callback: Callable[[ProgressEvent], None],
        *,
        op_id: str | None = None,
    ) -> Subscription:
        """Receive progress events until ``unsubscribe()`` is called."""
        return self.bus.subscribe(callback, op_id=op_id)

    def events(self, *, op_id: str | None = None) -> AsyncIterator[ProgressEvent]:
        """Async iterator over progress events."""
        return self.bus.events(op_id=op_id)
