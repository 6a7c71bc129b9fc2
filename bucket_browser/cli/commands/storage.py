"""Storage commands for browsing, transferring and renaming objects.

This module provides CLI commands for:
- Listing objects and folders, and summing usage under a prefix
- Uploading and downloading files with a live progress bar
- Renaming objects and whole folders
- Creating and deleting folders
"""

import asyncio
from collections.abc import Awaitable, Callable
import sys
from typing import NoReturn

import click

from bucket_browser.cli.utils import coro, error, format_bytes, info, success, warning
from bucket_browser.core.settings import SourceCleanupPolicy
from bucket_browser.features.browser import BucketBrowserService
from bucket_browser.infra.storage.exceptions import StorageError
from bucket_browser.infra.storage.operations import ProgressEvent, ProgressPhase


async def _next_event(queue: asyncio.Queue[ProgressEvent], op_id: str) -> ProgressEvent:
    while True:
        event = await queue.get()
        if event.op_id == op_id:
            return event


def _position(event: ProgressEvent) -> int:
    if event.transferred is not None:
        return event.transferred
    return event.count or 0


async def follow_operation(
    browser: BucketBrowserService,
    start: Callable[[], Awaitable[str]],
) -> ProgressEvent:
    """Start an operation and render its progress until the terminal event.

    The subscription is made before the operation starts so that no event
    is missed.
    """
    queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
    subscription = browser.subscribe(queue.put_nowait)
    try:
        op_id = await start()
        event = await _next_event(queue, op_id)
        if event.is_terminal:
            return event

        with click.progressbar(length=event.total or 1, label=event.name) as bar:
            while not event.is_terminal:
                bar.update(_position(event) - bar.pos)
                event = await _next_event(queue, op_id)
            if event.phase is ProgressPhase.DONE:
                bar.update(bar.length - bar.pos)
        return event
    finally:
        subscription.unsubscribe()


def _fail(e: StorageError) -> NoReturn:
    error(f"{e.title}: {e.detail}")
    sys.exit(1)


@click.group(name="storage")
def storage() -> None:
    """Object storage commands.

    Browse the configured bucket, move data in and out of it, and
    reorganize its folders.
    """


@storage.command(name="ls")
@click.argument("prefix", default="")
@click.option("--limit", type=int, default=100, help="Maximum entries per page (default: 100)")
@click.option("--page-token", default=None, help="Token printed by a previous page")
@click.option("--recursive", "-r", is_flag=True, help="List nested objects instead of folders")
@coro
async def list_objects(prefix: str, limit: int, page_token: str | None, recursive: bool) -> None:
    """List objects and folders under PREFIX.

    Examples:
        bucket-browser storage ls
        bucket-browser storage ls docs/ --limit 50
    """
    try:
        async with BucketBrowserService() as browser:
            page = await browser.list(
                prefix=prefix,
                page_token=page_token,
                max_results=limit,
                delimiter=None if recursive else "/",
            )
    except StorageError as e:
        _fail(e)

    if not page.items and not page.prefixes:
        warning(f"Nothing found under '{prefix or '/'}'")
        return

    click.echo(f"\n{'Name':<60} {'Size':<12} {'Last Modified':<25}")
    click.echo("-" * 97)
    for folder in page.prefixes:
        click.secho(f"{folder:<60} {'-':<12}", fg="cyan")
    for item in page.items:
        name = item.name if len(item.name) <= 58 else "..." + item.name[-55:]
        modified = item.updated.strftime("%Y-%m-%d %H:%M:%S %Z") if item.updated else ""
        click.echo(f"{name:<60} {format_bytes(item.size):<12} {modified:<25}")
    click.echo("-" * 97)
    click.echo(f"{len(page.prefixes)} folders, {len(page.items)} objects")

    if page.next_page_token:
        info(f"More results: --page-token {page.next_page_token}")


@storage.command(name="usage")
@click.argument("prefix", default="")
@coro
async def usage(prefix: str) -> None:
    """Show total size and object count under PREFIX."""
    try:
        async with BucketBrowserService() as browser:
            result = await browser.get_bucket_usage(prefix)
    except StorageError as e:
        _fail(e)

    size = int(result.bytes)
    click.echo(f"Objects: {result.count}")
    click.echo(f"Size:    {format_bytes(size)} ({size} bytes)")


@storage.command(name="upload")
@click.argument("local_path", type=click.Path(dir_okay=False, path_type=str))
@click.argument("destination")
@click.option("--overwrite", is_flag=True, help="Replace an existing object")
@coro
async def upload(local_path: str, destination: str, overwrite: bool) -> None:
    """Upload LOCAL_PATH to DESTINATION with a progress bar."""
    try:
        async with BucketBrowserService() as browser:
            event = await follow_operation(
                browser,
                lambda: browser.start_upload_local(local_path, destination, overwrite=overwrite),
            )
    except StorageError as e:
        _fail(e)

    if event.phase is ProgressPhase.ERROR:
        error(f"Upload failed: {event.message}")
        sys.exit(1)
    success(f"Uploaded {local_path} -> {destination}")


@storage.command(name="download")
@click.argument("object_name")
@click.argument("local_path", type=click.Path(dir_okay=False, path_type=str))
@coro
async def download(object_name: str, local_path: str) -> None:
    """Download OBJECT_NAME to LOCAL_PATH with a progress bar."""
    try:
        async with BucketBrowserService() as browser:
            event = await follow_operation(
                browser,
                lambda: browser.start_download(object_name, local_path),
            )
    except StorageError as e:
        _fail(e)

    if event.phase is ProgressPhase.ERROR:
        error(f"Download failed: {event.message}")
        sys.exit(1)
    success(f"Saved to {event.saved_to}")


@storage.command(name="mv")
@click.argument("src")
@click.argument("dest")
@click.option("--overwrite", is_flag=True, help="Replace an existing destination object")
@coro
async def move(src: str, dest: str, overwrite: bool) -> None:
    """Rename object SRC to DEST."""
    try:
        async with BucketBrowserService() as browser:
            result = await browser.rename(src, dest, overwrite=overwrite)
    except StorageError as e:
        _fail(e)
    success(f"Renamed {src} -> {result.name}")


@storage.command(name="mv-prefix")
@click.argument("src_prefix")
@click.argument("dest_prefix")
@click.option("--overwrite", is_flag=True, help="Delete the destination folder first if it exists")
@click.option(
    "--cleanup",
    type=click.Choice([p.value for p in SourceCleanupPolicy]),
    default=None,
    help="Source deletion policy (default: TRANSFER_RENAME_SOURCE_CLEANUP)",
)
@coro
async def move_prefix(
    src_prefix: str,
    dest_prefix: str,
    overwrite: bool,
    cleanup: str | None,
) -> None:
    """Rename folder SRC_PREFIX to DEST_PREFIX, one object at a time."""
    policy = SourceCleanupPolicy(cleanup) if cleanup else None
    try:
        async with BucketBrowserService() as browser:
            event = await follow_operation(
                browser,
                lambda: browser.start_rename_prefix(
                    src_prefix, dest_prefix, overwrite=overwrite, cleanup=policy
                ),
            )
    except StorageError as e:
        _fail(e)

    if event.phase is ProgressPhase.ERROR:
        error(f"Rename failed: {event.message}")
        sys.exit(1)

    failed = event.failed or []
    if failed:
        warning(f"Copied {event.copied} objects, {len(failed)} failed:")
        for failure in failed:
            click.echo(f"  {failure['src']}: {failure['error']}")
        sys.exit(1)
    success(f"Moved {event.copied} objects to {dest_prefix}")
    if event.message:
        warning(event.message)


@storage.command(name="rm")
@click.argument("object_name")
@coro
async def remove(object_name: str) -> None:
    """Delete OBJECT_NAME."""
    try:
        async with BucketBrowserService() as browser:
            await browser.delete(object_name)
    except StorageError as e:
        _fail(e)
    success(f"Deleted {object_name}")


@storage.command(name="mkdir")
@click.argument("prefix")
@coro
async def make_prefix(prefix: str) -> None:
    """Create an empty folder PREFIX."""
    try:
        async with BucketBrowserService() as browser:
            result = await browser.create_prefix(prefix)
    except StorageError as e:
        _fail(e)

    if result.created:
        success(f"Created {result.name}")
    else:
        warning(f"{result.name} already exists")


@storage.command(name="rmdir")
@click.argument("prefix")
@click.confirmation_option(prompt="Delete the folder and everything under it?")
@coro
async def remove_prefix(prefix: str) -> None:
    """Delete folder PREFIX and every object under it."""
    try:
        async with BucketBrowserService() as browser:
            await browser.delete_prefix(prefix)
    except StorageError as e:
        _fail(e)
    success(f"Deleted {prefix}")
