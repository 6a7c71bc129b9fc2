"""Object and prefix ("folder") renames.

Object stores have no rename primitive, so a rename is a server-side copy
followed by deleting the source. Prefix renames copy every object under
the source prefix one at a time; a failed copy is recorded and the loop
moves on, so a bulk rename can finish partially.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bucket_browser.core.settings import SourceCleanupPolicy, get_transfer_settings
from bucket_browser.infra.storage.backends.protocol import SEPARATOR
from bucket_browser.infra.storage.exceptions import (
    StorageConflictError,
    StorageFileNotFoundError,
    StorageValidationError,
)

from .models import OperationKind
from .results import PrefixRenameOutcome, RenameSummary, best_effort

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from bucket_browser.core.settings import TransferSettings
    from bucket_browser.infra.storage.backends.protocol import (
        ObjectInfo,
        ObjectStoreClient,
    )

    from .models import CancellationToken
    from .progress import ProgressReporter
    from .runner import OperationRunner

logger = logging.getLogger(__name__)


def normalize_prefix(prefix: str) -> str:
    """Return ``prefix`` with exactly one trailing separator."""
    return prefix if prefix.endswith(SEPARATOR) else prefix + SEPARATOR


async def iter_objects(
    store: ObjectStoreClient,
    prefix: str,
    page_size: int = 1000,
) -> AsyncIterator[ObjectInfo]:
    """Yield every object under ``prefix``, following page tokens to the end."""
    page_token: str | None = None
    while True:
        page = await store.list(
            prefix=prefix,
            page_token=page_token,
            max_results=page_size,
        )
        for item in page.items:
            yield item
        page_token = page.next_page_token
        if not page_token:
            return


async def has_objects(store: ObjectStoreClient, prefix: str) -> bool:
    """Check whether at least one object lives under ``prefix``."""
    page = await store.list(prefix=prefix, max_results=1)
    return bool(page.items)


class RenameOrchestrator:
    """Renames single objects and whole prefixes.

    Example:
        orchestrator = RenameOrchestrator(store, runner)
        await orchestrator.rename_object("a.txt", "b.txt")
        result = await orchestrator.rename_prefix("old", "new")
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

    # ========================================================================
    # Single Object
    # ========================================================================

    async def rename_object(self, src: str, dest: str, overwrite: bool = False) -> str:
        """Rename one object; returns the new name.

        Raises:
            StorageValidationError: If a name is empty or both names are equal
            StorageFileNotFoundError: If ``src`` does not exist
            StorageConflictError: If ``dest`` exists and ``overwrite`` is False
        """
        if not src or not dest:
            raise StorageValidationError(
                "Source and destination names are required",
                metadata={"src": src, "dest": dest},
            )
        if src == dest:
            raise StorageValidationError(
                "Source and destination are the same object", metadata={"key": src}
            )
        if not await self.store.exists(src):
            raise StorageFileNotFoundError(
                f"Object not found: {src}", metadata={"key": src}
            )
        if await self.store.exists(dest):
            if not overwrite:
                raise StorageConflictError(
                    f"An object with the same name already exists: {dest}",
                    metadata={"key": dest},
                )
            await self.store.delete(dest, ignore_not_found=True)

        await self.store.copy(src, dest)
        await self.store.delete(src, ignore_not_found=True)

        logger.info("Object renamed", extra={"src": src, "dest": dest})
        return dest

    # ========================================================================
    # Prefix
    # ========================================================================

    async def _prepare_prefix_rename(
        self,
        src_prefix: str,
        dest_prefix: str,
        overwrite: bool,
    ) -> tuple[str, str] | None:
        """Normalize and validate both prefixes.

        Returns None when they are the same prefix; nested prefixes are rejected.
        """
        if not src_prefix or not dest_prefix:
            raise StorageValidationError(
                "Source and destination prefixes are required",
                metadata={"src_prefix": src_prefix, "dest_prefix": dest_prefix},
            )
        src = normalize_prefix(src_prefix)
        dest = normalize_prefix(dest_prefix)
        if src == dest:
            return None
        # Copies would land in the source tree, or overwrite would delete it
        if dest.startswith(src) or src.startswith(dest):
            raise StorageValidationError(
                f"Cannot move a folder into itself or its parent: {src} -> {dest}",
                metadata={"src_prefix": src, "dest_prefix": dest},
            )

        if not await has_objects(self.store, src):
            raise StorageFileNotFoundError(
                f"Prefix not found: {src}", metadata={"prefix": src}
            )
        if await has_objects(self.store, dest):
            if not overwrite:
                raise StorageConflictError(
                    f"A folder with the same name already exists: {dest}",
                    metadata={"prefix": dest},
                )
            await self.store.delete_all_with_prefix(dest)
        return src, dest

    async def rename_prefix(
        self,
        src_prefix: str,
        dest_prefix: str,
        overwrite: bool = False,
        cleanup: SourceCleanupPolicy | None = None,
    ) -> PrefixRenameOutcome:
        """Move every object under ``src_prefix`` to ``dest_prefix``.

        Per-object copy failures are listed in the result instead of
        aborting the rename.
        """
        prefixes = await self._prepare_prefix_rename(src_prefix, dest_prefix, overwrite)
        if prefixes is None:
            return PrefixRenameOutcome(
                renamed=False, message="Source and destination are the same"
            )
        src, dest = prefixes

        summary = await self._copy_all(src, dest)
        message = await self._cleanup_sources(src, summary, cleanup)
        return PrefixRenameOutcome(
            renamed=True,
            copied=summary.copied,
            failed=list(summary.failures),
            message=message,
        )

    async def start_rename_prefix(
        self,
        src_prefix: str,
        dest_prefix: str,
        overwrite: bool = False,
        cleanup: SourceCleanupPolicy | None = None,
    ) -> str:
        """Validate a prefix rename, then run it in the background.

        Returns:
            The operation id

        Raises:
            StorageValidationError: If the prefixes are the same or nested
        """
        prefixes = await self._prepare_prefix_rename(src_prefix, dest_prefix, overwrite)
        if prefixes is None:
            raise StorageValidationError(
                "Source and destination are the same",
                metadata={"prefix": normalize_prefix(src_prefix)},
            )
        src, dest = prefixes

        async def body(reporter: ProgressReporter) -> None:
            token = reporter.operation.token
            summary = await self._copy_all(
                src,
                dest,
                token=token,
                on_object=lambda current, s: reporter.rename_progress(
                    count=s.attempted,
                    total=s.total,
                    current=current,
                    failed_count=len(s.failures),
                ),
            )
            token.raise_if_cancelled()
            message = await self._cleanup_sources(src, summary, cleanup)
            reporter.done(
                total=summary.total,
                copied=summary.copied,
                failed=summary.failed_dicts(),
                message=message,
            )

        return self.runner.start(OperationKind.RENAME, f"{src} -> {dest}", body)

    async def _copy_all(
        self,
        src: str,
        dest: str,
        token: CancellationToken | None = None,
        on_object: Callable[[str, RenameSummary], None] | None = None,
    ) -> RenameSummary:
        names = [
            info.name
            async for info in iter_objects(self.store, src, self.settings.list_page_size)
        ]
        summary = RenameSummary(total=len(names))

        for name in names:
            if token is not None:
                token.raise_if_cancelled()
            target = dest + name[len(src) :]
            try:
                await self.store.copy(name, target)
            except Exception as e:
                logger.warning(
                    "Copy failed during prefix rename",
                    extra={"src": name, "dest": target, "error": str(e)},
                )
                summary.record_failure(name, e)
            else:
                summary.record_success(name)
            if on_object:
                on_object(name, summary)

        logger.info(
            "Prefix copied",
            extra={
                "src_prefix": src,
                "dest_prefix": dest,
                "total": summary.total,
                "copied": summary.copied,
                "failed": len(summary.failures),
            },
        )
        return summary

    async def _cleanup_sources(
        self,
        src: str,
        summary: RenameSummary,
        cleanup: SourceCleanupPolicy | None,
    ) -> str | None:
        """Delete the sources of a finished copy pass.

        Returns:
            A message when some source objects may remain, None otherwise
        """
        policy = cleanup or self.settings.rename_source_cleanup
        if policy is SourceCleanupPolicy.PREFIX or not summary.failures:
            outcomes = [
                await best_effort(
                    "delete source prefix",
                    lambda: self.store.delete_all_with_prefix(src),
                    prefix=src,
                )
            ]
        else:
            outcomes = [
                await best_effort(
                    "delete copied source",
                    lambda name=name: self.store.delete(name, ignore_not_found=True),
                    key=name,
                )
                for name in summary.copied_sources
            ]

        leftovers = [o for o in outcomes if not o.ok and not o.ignorable]
        if not leftovers:
            return None
        logger.warning(
            "Source cleanup incomplete",
            extra={"src_prefix": src, "failed_deletes": len(leftovers)},
        )
        return f"Some source objects under {src} were not removed: {leftovers[0].error}"
