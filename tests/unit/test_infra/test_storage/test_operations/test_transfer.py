"""Unit tests for TransferPipeline streamed uploads and downloads."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from bucket_browser.infra.storage.backends.memory import MemoryByteSink, MemoryByteSource
from bucket_browser.infra.storage.exceptions import (
    StorageConflictError,
    StorageError,
    StorageFileNotFoundError,
    StorageValidationError,
)
from bucket_browser.infra.storage.operations import OperationKind, ProgressPhase


class TestUploadFromLocalPath:
    """Test uploads of local files."""

    async def test_upload_streams_file_with_progress(
        self, pipeline, runner, memory_store, recorder, registry, tmp_path
    ):
        """Test a 3000-byte upload in 1024-byte chunks."""
        source = tmp_path / "a.bin"
        source.write_bytes(b"x" * 3000)

        op_id = await pipeline.upload_from_local_path(source, "docs/a.bin")
        await runner.join()

        events = recorder.for_op(op_id)
        assert [e.phase for e in events] == [ProgressPhase.PROGRESS] * 4 + [ProgressPhase.DONE]
        assert [e.transferred for e in events[:-1]] == [0, 1024, 2048, 3000]
        assert [e.percent for e in events[:-1]] == [0, 34, 68, 100]
        assert all(e.total == 3000 for e in events[:-1])
        assert all(e.kind is OperationKind.UPLOAD and e.name == "docs/a.bin" for e in events)
        assert memory_store.read_object("docs/a.bin") == b"x" * 3000
        assert op_id not in registry

    async def test_existing_destination_rejected_before_registration(
        self, pipeline, memory_store, recorder, registry, tmp_path
    ):
        """Test that a conflict is raised synchronously without events."""
        source = tmp_path / "a.txt"
        source.write_bytes(b"new")
        await memory_store.save("docs/a.txt", b"old")

        with pytest.raises(StorageConflictError) as exc_info:
            await pipeline.upload_from_local_path(source, "docs/a.txt")

        assert "already exists" in exc_info.value.detail
        assert len(registry) == 0
        assert recorder.events == []
        assert memory_store.read_object("docs/a.txt") == b"old"

    async def test_overwrite_replaces_destination(
        self, pipeline, runner, memory_store, recorder, tmp_path
    ):
        """Test overwrite=True."""
        source = tmp_path / "a.txt"
        source.write_bytes(b"new")
        await memory_store.save("docs/a.txt", b"old")

        op_id = await pipeline.upload_from_local_path(source, "docs/a.txt", overwrite=True)
        await runner.join()

        assert recorder.terminal(op_id).phase is ProgressPhase.DONE
        assert memory_store.read_object("docs/a.txt") == b"new"

    async def test_missing_local_file(self, pipeline, registry, tmp_path):
        """Test that a missing local path is rejected."""
        with pytest.raises(StorageFileNotFoundError):
            await pipeline.upload_from_local_path(tmp_path / "nope", "docs/a.txt")
        assert len(registry) == 0

    async def test_empty_destination(self, pipeline, tmp_path):
        """Test that an empty destination is a validation error."""
        source = tmp_path / "a.txt"
        source.write_bytes(b"a")

        with pytest.raises(StorageValidationError):
            await pipeline.upload_from_local_path(source, "")


class TestUploadFromBuffer:
    """Test uploads of in-memory buffers."""

    async def test_buffer_upload(self, pipeline, runner, memory_store, recorder):
        """Test a small buffer upload."""
        op_id = await pipeline.upload_from_buffer(b"hello", "greeting.txt")
        await runner.join()

        events = recorder.for_op(op_id)
        assert [e.transferred for e in events if not e.is_terminal] == [0, 5]
        assert events[-1].phase is ProgressPhase.DONE
        assert events[-1].saved_to is None
        assert memory_store.read_object("greeting.txt") == b"hello"

    async def test_conflict_emits_nothing(self, pipeline, memory_store, recorder, registry):
        """Test conflict rejection for buffer uploads."""
        await memory_store.save("greeting.txt", b"old")

        with pytest.raises(StorageConflictError):
            await pipeline.upload_from_buffer(b"hello", "greeting.txt")

        assert len(registry) == 0
        assert recorder.events == []

    async def test_write_failure_reports_error(self, pipeline, runner, memory_store, recorder):
        """Test that a mid-stream failure becomes an error event."""
        sink = AsyncMock()
        sink.write.side_effect = OSError("connection reset")
        memory_store.open_write = AsyncMock(return_value=sink)

        op_id = await pipeline.upload_from_buffer(b"hello", "a.txt")
        await runner.join()

        terminal = recorder.terminal(op_id)
        assert terminal.phase is ProgressPhase.ERROR
        assert terminal.message == "connection reset"
        sink.abort.assert_awaited_once()
        sink.close.assert_not_awaited()

    async def test_failed_abort_keeps_original_error(
        self, pipeline, runner, memory_store, recorder, caplog
    ):
        """Test that an abort failure is logged and the write error is reported."""
        sink = AsyncMock()
        sink.write.side_effect = OSError("connection reset")
        sink.abort.side_effect = StorageError("abort refused", code="STORAGE_ERROR")
        memory_store.open_write = AsyncMock(return_value=sink)

        op_id = await pipeline.upload_from_buffer(b"hello", "a.txt")
        await runner.join()

        assert recorder.terminal(op_id).message == "connection reset"
        assert "Partial data may remain at the destination" in caplog.text


class TestDownloadToLocalPath:
    """Test downloads to local files."""

    async def test_download_creates_parent_and_reports_saved_to(
        self, pipeline, runner, memory_store, recorder, registry, tmp_path
    ):
        """Test a download into a directory that does not exist yet."""
        await memory_store.save("docs/a.bin", b"y" * 2048)
        target = tmp_path / "nested" / "dir" / "a.bin"

        op_id = await pipeline.download_to_local_path("docs/a.bin", target)
        await runner.join()

        terminal = recorder.terminal(op_id)
        assert terminal.phase is ProgressPhase.DONE
        assert terminal.saved_to == str(target.resolve())
        assert target.read_bytes() == b"y" * 2048
        assert op_id not in registry

    async def test_zero_byte_download(self, pipeline, runner, memory_store, recorder, tmp_path):
        """Test that an empty object yields one 0% event and then done."""
        await memory_store.save("empty", b"")
        target = tmp_path / "empty"

        op_id = await pipeline.download_to_local_path("empty", target)
        await runner.join()

        events = recorder.for_op(op_id)
        assert [e.phase for e in events] == [ProgressPhase.PROGRESS, ProgressPhase.DONE]
        assert events[0].percent == 0
        assert events[0].total == 0
        assert target.read_bytes() == b""

    async def test_missing_object(self, pipeline, registry, tmp_path):
        """Test that downloading a missing object is rejected synchronously."""
        with pytest.raises(StorageFileNotFoundError):
            await pipeline.download_to_local_path("missing", tmp_path / "x")
        assert len(registry) == 0

    async def test_percent_non_decreasing_and_bounded(
        self, pipeline, runner, memory_store, recorder, tmp_path
    ):
        """Test percent bounds across a multi-chunk download."""
        await memory_store.save("big", b"z" * 10_000)

        op_id = await pipeline.download_to_local_path("big", tmp_path / "big")
        await runner.join()

        percents = [e.percent for e in recorder.for_op(op_id) if not e.is_terminal]
        assert percents == sorted(percents)
        assert all(0 <= p <= 100 for p in percents)
        assert percents[-1] == 100


class TestCancellation:
    """Test cancellation of running transfers."""

    async def test_cancel_aborts_sink_and_closes_source(
        self, pipeline, runner, memory_store, recorder, registry
    ):
        """Test that a cancelled upload tears down its streams and goes silent."""
        sinks: list[MemoryByteSink] = []
        original_open_write = memory_store.open_write

        async def tracking_open_write(name: str) -> MemoryByteSink:
            sink = await original_open_write(name)
            sinks.append(sink)
            return sink

        memory_store.open_write = tracking_open_write
        first_progress = asyncio.Event()

        def on_event(event) -> None:
            if event.transferred:
                first_progress.set()

        runner.bus.subscribe(on_event)

        op_id = await pipeline.upload_from_buffer(b"q" * 100_000, "big.bin")
        await asyncio.wait_for(first_progress.wait(), timeout=1)
        count_at_cancel = len(recorder.for_op(op_id))

        assert registry.cancel(op_id) is True
        await runner.join()

        assert len(recorder.for_op(op_id)) == count_at_cancel
        assert not any(e.is_terminal for e in recorder.for_op(op_id))
        assert sinks[0].aborted is True
        assert sinks[0].committed is False
        assert "big.bin" not in memory_store.names()
        assert op_id not in registry

    async def test_cancel_download_closes_source(
        self, pipeline, runner, memory_store, registry, tmp_path
    ):
        """Test that the object read stream is closed on cancel."""
        await memory_store.save("big", b"z" * 100_000)
        sources: list[MemoryByteSource] = []
        original_open_read = memory_store.open_read

        async def tracking_open_read(name: str) -> MemoryByteSource:
            source = await original_open_read(name)
            sources.append(source)
            return source

        memory_store.open_read = tracking_open_read

        op_id = await pipeline.download_to_local_path("big", tmp_path / "big")
        while not sources:
            await asyncio.sleep(0)
        registry.cancel(op_id)
        await runner.join()

        assert sources[0].closed is True
        assert op_id not in registry
