"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolated settings instances
    - Storage Fixtures: in-memory object store seeded per test
    - Operation Fixtures: registry, progress bus, runner, pipelines
    - Utility Fixtures: progress event recorder
"""

from __future__ import annotations

import os

import pytest

from bucket_browser.core.settings import TransferSettings, clear_settings_cache
from bucket_browser.features.browser import BucketBrowserService
from bucket_browser.infra.storage.backends import MemoryObjectStore
from bucket_browser.infra.storage.operations import (
    OperationRegistry,
    OperationRunner,
    ProgressBus,
    ProgressEvent,
    RenameOrchestrator,
    TransferPipeline,
)

# Ensure tests run without external infrastructure
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Rebuild cached settings for every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def transfer_settings() -> TransferSettings:
    """Small chunks so that short payloads span several progress events."""
    return TransferSettings(chunk_size=1024, list_page_size=2)


# ============================================================================
# Storage Fixtures
# ============================================================================


@pytest.fixture
async def memory_store():
    """Started in-memory object store."""
    async with MemoryObjectStore(bucket="test-bucket") as store:
        yield store


# ============================================================================
# Operation Fixtures
# ============================================================================


@pytest.fixture
def registry() -> OperationRegistry:
    return OperationRegistry()


@pytest.fixture
def bus() -> ProgressBus:
    return ProgressBus()


@pytest.fixture
def runner(registry: OperationRegistry, bus: ProgressBus) -> OperationRunner:
    return OperationRunner(registry, bus)


@pytest.fixture
def pipeline(memory_store, runner, transfer_settings) -> TransferPipeline:
    return TransferPipeline(memory_store, runner, transfer_settings)


@pytest.fixture
def orchestrator(memory_store, runner, transfer_settings) -> RenameOrchestrator:
    return RenameOrchestrator(memory_store, runner, transfer_settings)


@pytest.fixture
async def browser(memory_store, transfer_settings):
    """BucketBrowserService over the in-memory store."""
    service = BucketBrowserService(memory_store, transfer_settings=transfer_settings)
    yield service
    await service.runner.cancel_all()


# ============================================================================
# Utility Fixtures
# ============================================================================


class EventRecorder:
    """Collects every published progress event, in order."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def for_op(self, op_id: str) -> list[ProgressEvent]:
        return [e for e in self.events if e.op_id == op_id]

    def terminal(self, op_id: str) -> ProgressEvent:
        terminal = [e for e in self.for_op(op_id) if e.is_terminal]
        assert len(terminal) == 1, f"expected one terminal event, got {terminal}"
        return terminal[0]


@pytest.fixture
def recorder(bus: ProgressBus) -> EventRecorder:
    """Recorder subscribed to the shared progress bus."""
    recorder = EventRecorder()
    bus.subscribe(recorder)
    return recorder
