"""Progress notifications for tracked operations.

ProgressBus fans events out to any number of subscribers, either plain
callbacks or async iterators. ProgressReporter is the per-operation
publisher that keeps an operation's event stream well formed:

- transferred/count values never decrease
- exactly one terminal event (done or error) is published
- the registry entry is removed before the terminal event goes out
- nothing is published once the operation was canceled

Example:
    bus = ProgressBus()
    subscription = bus.subscribe(lambda event: print(event.to_dict()))
    ...
    subscription.unsubscribe()

    async for event in bus.events(op_id=op_id):
        if event.is_terminal:
            break
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import threading
from typing import TYPE_CHECKING, Any, TypeAlias

from .models import (
    OperationState,
    ProgressEvent,
    ProgressPhase,
    percent_of,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from .models import Operation
    from .registry import OperationRegistry

logger = logging.getLogger(__name__)

ProgressCallback: TypeAlias = "Callable[[ProgressEvent], None]"


@dataclass(eq=False)
class Subscription:
    """Handle for one subscriber of a ProgressBus."""

    bus: ProgressBus
    callback: ProgressCallback | None = None
    queue: asyncio.Queue[ProgressEvent] | None = None
    op_id: str | None = None
    active: bool = field(default=True)

    def matches(self, event: ProgressEvent) -> bool:
        return self.op_id is None or event.op_id == self.op_id

    def unsubscribe(self) -> None:
        """Stop receiving events. Calling it twice is harmless."""
        if self.active:
            self.active = False
            self.bus._discard(self)


class ProgressBus:
    """Multi-subscriber fan-out of ProgressEvents."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        callback: ProgressCallback,
        *,
        op_id: str | None = None,
    ) -> Subscription:
        """Register a callback, optionally restricted to one operation."""
        subscription = Subscription(bus=self, callback=callback, op_id=op_id)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    async def events(self, *, op_id: str | None = None) -> AsyncIterator[ProgressEvent]:
        """Iterate over published events until the consumer stops."""
        subscription = Subscription(bus=self, queue=asyncio.Queue(), op_id=op_id)
        with self._lock:
            self._subscriptions.append(subscription)

        try:
            while True:
                yield await subscription.queue.get()  # type: ignore[union-attr]
        finally:
            subscription.unsubscribe()

    def publish(self, event: ProgressEvent) -> None:
        """Deliver ``event`` to every matching subscriber.

        A failing callback is logged and does not prevent delivery to
        the others.
        """
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]

        for subscription in targets:
            if subscription.queue is not None:
                subscription.queue.put_nowait(event)
                continue
            try:
                subscription.callback(event)  # type: ignore[misc]
            except Exception:
                logger.exception(
                    "Progress subscriber raised",
                    extra={"op_id": event.op_id, "phase": event.phase.value},
                )

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _discard(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


class ProgressReporter:
    """Publishes the event stream of a single operation."""

    def __init__(
        self,
        operation: Operation,
        registry: OperationRegistry,
        bus: ProgressBus,
    ) -> None:
        self.operation = operation
        self._registry = registry
        self._bus = bus
        self._last_value = 0
        self._finished = False

    @property
    def op_id(self) -> str:
        return self.operation.id

    @property
    def finished(self) -> bool:
        return self._finished

    def _event(self, phase: ProgressPhase, **fields: Any) -> ProgressEvent:
        return ProgressEvent(
            op_id=self.operation.id,
            kind=self.operation.kind,
            name=self.operation.label,
            phase=phase,
            **fields,
        )

    def _live(self) -> bool:
        return not self._finished and self.operation.id in self._registry

    def transfer_progress(self, transferred: int, total: int) -> None:
        """Publish a byte-transfer progress event."""
        if not self._live():
            return
        transferred = max(transferred, self._last_value)
        self._last_value = transferred
        self.operation.state = OperationState.RUNNING
        self._bus.publish(
            self._event(
                ProgressPhase.PROGRESS,
                transferred=transferred,
                total=total,
                percent=percent_of(transferred, total),
            )
        )

    def rename_progress(
        self,
        count: int,
        total: int,
        current: str,
        failed_count: int,
    ) -> None:
        """Publish a per-object bulk-rename progress event."""
        if not self._live():
            return
        count = max(count, self._last_value)
        self._last_value = count
        self.operation.state = OperationState.RUNNING
        self._bus.publish(
            self._event(
                ProgressPhase.PROGRESS,
                count=count,
                total=total,
                percent=percent_of(count, total),
                current=current,
                failed_count=failed_count,
            )
        )

    def done(self, **fields: Any) -> None:
        """Publish the terminal ``done`` event."""
        self._finish(OperationState.DONE, self._event(ProgressPhase.DONE, **fields))

    def error(self, message: str) -> None:
        """Publish the terminal ``error`` event."""
        self._finish(OperationState.ERROR, self._event(ProgressPhase.ERROR, message=message))

    def _finish(self, state: OperationState, event: ProgressEvent) -> None:
        if self._finished:
            return
        self._finished = True
        # Removal decides the race with cancel: whoever pops the entry wins
        if self._registry.remove(self.operation.id) is None:
            return
        self.operation.state = state
        self._bus.publish(event)
