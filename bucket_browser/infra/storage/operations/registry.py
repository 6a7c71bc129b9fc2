"""Registry of in-flight operations.

The registry is the only shared mutable state of the operation manager.
It is owned by whoever builds the pipelines (normally BucketBrowserService)
and handed to them explicitly. Mutations are guarded by a lock so a UI
thread may call ``cancel`` while the event loop runs the operations; the
token and task are then interrupted on the loop that owns the task.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any
import uuid

from .models import Operation, OperationKind, OperationState

logger = logging.getLogger(__name__)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _interrupt(operation: Operation) -> None:
    operation.token.cancel()
    if operation.task is not None and not operation.task.done():
        operation.task.cancel()


class OperationRegistry:
    """In-flight operations keyed by opaque id.

    An id is present iff its operation has neither reached a terminal
    state nor been canceled.

    Example:
        registry = OperationRegistry()
        op = registry.register(OperationKind.UPLOAD, "docs/a.txt")
        ...
        registry.cancel(op.id)
    """

    def __init__(self) -> None:
        self._operations: dict[str, Operation] = {}
        self._loops: dict[str, asyncio.AbstractEventLoop] = {}
        self._lock = threading.Lock()

    def register(self, kind: OperationKind, label: str) -> Operation:
        """Record a new operation and return it with a fresh id."""
        with self._lock:
            op_id = uuid.uuid4().hex
            while op_id in self._operations:
                op_id = uuid.uuid4().hex
            operation = Operation(id=op_id, kind=kind, label=label)
            self._operations[op_id] = operation
        logger.debug(
            "Operation registered",
            extra={"op_id": op_id, "kind": kind.value, "label": label},
        )
        return operation

    def attach(self, op_id: str, task: asyncio.Task[Any]) -> None:
        """Bind the task running an operation so that cancel can stop it."""
        with self._lock:
            operation = self._operations.get(op_id)
            if operation is not None:
                operation.task = task
                self._loops[op_id] = task.get_loop()

    def get(self, op_id: str) -> Operation | None:
        with self._lock:
            return self._operations.get(op_id)

    def remove(self, op_id: str) -> Operation | None:
        """Drop an operation. Removing an unknown id is a no-op."""
        with self._lock:
            self._loops.pop(op_id, None)
            return self._operations.pop(op_id, None)

    def cancel(self, op_id: str) -> bool:
        """Cancel a registered operation.

        Removes the operation, then fires its token and cancels its task.
        Safe to call from any thread: when the caller is not running the
        operation's event loop, the cancellation is handed to that loop.

        Returns:
            True if the operation was registered, False otherwise
        """
        with self._lock:
            operation = self._operations.pop(op_id, None)
            loop = self._loops.pop(op_id, None)
        if operation is None:
            return False

        operation.state = OperationState.CANCELED
        if loop is None or loop.is_closed() or _running_loop() is loop:
            _interrupt(operation)
        else:
            loop.call_soon_threadsafe(_interrupt, operation)

        logger.info(
            "Operation canceled",
            extra={"op_id": op_id, "kind": operation.kind.value, "label": operation.label},
        )
        return True

    def active(self) -> list[Operation]:
        """Snapshot of the registered operations."""
        with self._lock:
            return list(self._operations.values())

    def __contains__(self, op_id: object) -> bool:
        with self._lock:
            return op_id in self._operations

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)
