"""Unit tests for BucketBrowserService, the operation surface of the UI layer."""

import asyncio

import pytest

from bucket_browser.features.browser import BucketBrowserService
from bucket_browser.infra.storage.exceptions import (
    StorageConflictError,
    StorageFileNotFoundError,
    StorageValidationError,
)
from bucket_browser.infra.storage.operations import ProgressEvent, ProgressPhase


async def _seed(store, objects: dict[str, bytes]) -> None:
    for name, data in objects.items():
        await store.save(name, data)


class TestBrowsing:
    """Test listing, existence and usage."""

    async def test_list_returns_items_and_prefixes(self, browser, memory_store):
        await _seed(memory_store, {"a.txt": b"1", "docs/b.txt": b"22"})

        result = await browser.list()

        assert [i.name for i in result.items] == ["a.txt"]
        assert result.prefixes == ["docs/"]
        assert result.next_page_token is None

    async def test_list_serializes_camel_case(self, browser, memory_store):
        await _seed(memory_store, {"a": b"1", "b": b"2"})

        payload = (await browser.list(max_results=1)).model_dump(by_alias=True)

        assert payload["nextPageToken"] == "a"
        assert payload["items"][0]["name"] == "a"

    async def test_list_rejects_non_positive_page_size(self, browser):
        with pytest.raises(StorageValidationError):
            await browser.list(max_results=0)

    async def test_exists(self, browser, memory_store):
        await _seed(memory_store, {"a": b""})

        assert await browser.exists("a") is True
        assert await browser.exists("b") is False

    async def test_empty_name_is_validation_error(self, browser):
        with pytest.raises(StorageValidationError):
            await browser.exists("")

    async def test_bucket_usage_is_exact_string(self, browser, memory_store):
        """Test usage totals across listing pages."""
        await _seed(memory_store, {"a": b"x" * 10, "d/b": b"y" * 5, "d/c": b"z" * 7})

        whole = await browser.get_bucket_usage()
        docs = await browser.get_bucket_usage("d/")

        assert (whole.bytes, whole.count) == ("22", 3)
        assert (docs.bytes, docs.count) == ("12", 2)

    async def test_bucket_usage_empty(self, browser):
        usage = await browser.get_bucket_usage()
        assert (usage.bytes, usage.count) == ("0", 0)


class TestPrefixes:
    """Test folder creation and deletion."""

    async def test_create_prefix_writes_marker(self, browser, memory_store):
        result = await browser.create_prefix("photos")

        assert result.created is True
        assert result.name == "photos/"
        assert memory_store.read_object("photos/") == b""

    async def test_create_existing_prefix(self, browser):
        await browser.create_prefix("photos/")
        result = await browser.create_prefix("photos/")

        assert result.created is False

    async def test_delete_prefix(self, browser, memory_store):
        await _seed(memory_store, {"p/a": b"1", "p/b": b"2", "pp/c": b"3"})

        result = await browser.delete_prefix("p")

        assert result.deleted is True
        assert memory_store.names() == ["pp/c"]

    async def test_delete_object(self, browser, memory_store):
        await _seed(memory_store, {"a": b"1"})

        assert (await browser.delete("a")).deleted is True
        with pytest.raises(StorageFileNotFoundError):
            await browser.delete("a")


class TestRenames:
    """Test rename operations through the facade."""

    async def test_rename(self, browser, memory_store):
        await _seed(memory_store, {"a": b"1"})

        result = await browser.rename("a", "b")

        assert result.name == "b"
        assert memory_store.names() == ["b"]

    async def test_rename_prefix_same_prefix(self, browser):
        result = await browser.rename_prefix("docs", "docs/")

        assert result.renamed is False
        assert result.message

    async def test_rename_prefix_conflict_leaves_tree(self, browser, memory_store):
        """Test renaming onto an existing folder without overwrite."""
        await _seed(memory_store, {"old/a": b"1", "new/a": b"2"})

        with pytest.raises(StorageConflictError):
            await browser.rename_prefix("old/", "new/")

        assert memory_store.names() == ["new/a", "old/a"]

    async def test_rename_prefix_reports_failures(self, browser, memory_store):
        await _seed(memory_store, {"old/a": b"1", "old/b": b"2"})
        real_copy = memory_store.copy

        async def flaky_copy(src: str, dest: str) -> None:
            if src == "old/a":
                raise OSError("copy refused")
            await real_copy(src, dest)

        memory_store.copy = flaky_copy

        result = await browser.rename_prefix("old", "new")

        assert result.renamed is True
        assert result.copied == 1
        assert [(f.src, f.error) for f in result.failed] == [("old/a", "copy refused")]

    async def test_start_rename_prefix(self, browser, memory_store):
        await _seed(memory_store, {"old/a": b"1"})
        events: list[ProgressEvent] = []
        browser.subscribe(events.append)

        op_id = await browser.start_rename_prefix("old", "new")
        await browser.join()

        assert events[-1].op_id == op_id
        assert events[-1].phase is ProgressPhase.DONE
        assert memory_store.names() == ["new/a"]


class TestTransfers:
    """Test uploads and downloads through the facade."""

    async def test_upload_buffer(self, browser, memory_store):
        result = await browser.upload_buffer(b"hello", "a.txt")

        assert (result.name, result.overwritten) == ("a.txt", False)
        assert memory_store.read_object("a.txt") == b"hello"

    async def test_upload_local_overwrite_flag(self, browser, memory_store, tmp_path):
        await _seed(memory_store, {"a.txt": b"old"})
        source = tmp_path / "a.txt"
        source.write_bytes(b"new")

        with pytest.raises(StorageConflictError):
            await browser.upload_local(source, "a.txt")
        result = await browser.upload_local(source, "a.txt", overwrite=True)

        assert result.overwritten is True
        assert memory_store.read_object("a.txt") == b"new"

    async def test_download(self, browser, memory_store, tmp_path):
        await _seed(memory_store, {"a.txt": b"data"})
        target = tmp_path / "out" / "a.txt"

        result = await browser.download("a.txt", target)

        assert result.saved_to == str(target.resolve())
        assert target.read_bytes() == b"data"

    async def test_start_upload_and_download_events(self, browser, tmp_path):
        """Test the upload scenario end to end over the event channel."""
        source = tmp_path / "in.bin"
        source.write_bytes(b"k" * 2500)
        events: list[ProgressEvent] = []
        subscription = browser.subscribe(events.append)

        up_id = await browser.start_upload_local(source, "data/in.bin")
        await browser.join()
        down_id = await browser.start_download("data/in.bin", tmp_path / "out.bin")
        await browser.join()
        subscription.unsubscribe()

        uploads = [e for e in events if e.op_id == up_id]
        downloads = [e for e in events if e.op_id == down_id]
        assert [e.transferred for e in uploads[:-1]] == [0, 1024, 2048, 2500]
        assert uploads[-1].phase is ProgressPhase.DONE
        assert downloads[-1].saved_to == str((tmp_path / "out.bin").resolve())
        assert (tmp_path / "out.bin").read_bytes() == b"k" * 2500

    async def test_events_iterator_filters_by_operation(self, browser):
        """Test following one operation with the async iterator."""
        stream = browser.events()
        first = asyncio.ensure_future(anext(stream))
        await asyncio.sleep(0)

        op_id = await browser.start_upload_buffer(b"abc", "x")
        received = [await asyncio.wait_for(first, timeout=1)]
        while not received[-1].is_terminal:
            received.append(await asyncio.wait_for(anext(stream), timeout=1))
        await stream.aclose()

        assert {e.op_id for e in received} == {op_id}
        assert received[-1].phase is ProgressPhase.DONE


class TestCancel:
    """Test cancellation through the facade."""

    def test_cancel_nonexistent(self, browser):
        assert browser.cancel("nonexistent").canceled is False

    async def test_cancel_running_download(self, browser, memory_store, tmp_path):
        await _seed(memory_store, {"big": b"z" * 200_000})
        events: list[ProgressEvent] = []
        browser.subscribe(events.append)

        op_id = await browser.start_download("big", tmp_path / "big")
        while not events:
            await asyncio.sleep(0)

        assert browser.cancel(op_id).canceled is True
        await browser.join()

        assert not any(e.is_terminal for e in events)
        assert browser.cancel(op_id).canceled is False


class TestLifecycle:
    """Test startup and shutdown."""

    async def test_shutdown_cancels_in_flight_operations(self, memory_store, transfer_settings):
        """Test that shutdown cancels running transfers and stops the store."""
        browser = BucketBrowserService(memory_store, transfer_settings=transfer_settings)
        await browser.startup()
        op_id = await browser.start_upload_buffer(b"q" * 200_000, "copy")

        await browser.shutdown()

        assert op_id not in browser.registry
        assert browser.runner.pending == 0
        assert memory_store.is_ready is False
        assert "copy" not in memory_store.names()
