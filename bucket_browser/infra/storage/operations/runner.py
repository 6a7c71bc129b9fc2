"""Background execution of tracked operations.

OperationRunner registers an operation, schedules its body as an asyncio
task, and turns the body's outcome into the operation's terminal event.
Task references are held until the task finishes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeAlias

from bucket_browser.infra.logging.context import log_context

from .models import OperationCancelledError, OperationState
from .progress import ProgressReporter

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .models import OperationKind
    from .progress import ProgressBus
    from .registry import OperationRegistry

logger = logging.getLogger(__name__)

OperationBody: TypeAlias = "Callable[[ProgressReporter], Awaitable[None]]"


def describe_error(error: BaseException) -> str:
    """Message carried by an ``error`` progress event."""
    detail = getattr(error, "detail", None)
    if isinstance(detail, str) and detail:
        return detail
    return str(error) or type(error).__name__


class OperationRunner:
    """Runs operation bodies as registered background tasks."""

    def __init__(self, registry: OperationRegistry, bus: ProgressBus) -> None:
        self.registry = registry
        self.bus = bus
        self._tasks: set[asyncio.Task[None]] = set()

    def start(self, kind: OperationKind, label: str, body: OperationBody) -> str:
        """Register an operation and schedule ``body``; returns the operation id.

        Must be called from a running event loop.
        """
        operation = self.registry.register(kind, label)
        reporter = ProgressReporter(operation, self.registry, self.bus)
        task = asyncio.create_task(
            self._run(reporter, body),
            name=f"{kind.value}:{operation.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.registry.attach(operation.id, task)

        logger.info(
            "Operation started",
            extra={"op_id": operation.id, "kind": kind.value, "label": label},
        )
        return operation.id

    async def _run(self, reporter: ProgressReporter, body: OperationBody) -> None:
        operation = reporter.operation
        with log_context(op_id=operation.id, kind=operation.kind.value):
            operation.state = OperationState.RUNNING
            try:
                await body(reporter)
            except OperationCancelledError:
                self._settle_cancelled(reporter)
            except asyncio.CancelledError:
                self._settle_cancelled(reporter)
                raise
            except Exception as e:
                logger.exception(
                    "Operation failed",
                    extra={"kind": operation.kind.value, "label": operation.label},
                )
                reporter.error(describe_error(e))
            else:
                if not reporter.finished:
                    reporter.done()

    def _settle_cancelled(self, reporter: ProgressReporter) -> None:
        operation = reporter.operation
        # Cancellation that did not come through the registry (loop shutdown)
        self.registry.remove(operation.id)
        operation.state = OperationState.CANCELED
        logger.info(
            "Operation stopped after cancellation",
            extra={"kind": operation.kind.value, "label": operation.label},
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every scheduled operation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel every registered operation and wait for the tasks to unwind."""
        for operation in self.registry.active():
            self.registry.cancel(operation.id)
        await self.join()
