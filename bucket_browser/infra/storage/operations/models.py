"""Data model for tracked storage operations and their progress events."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, fields
from enum import StrEnum
import math
from typing import Any


class OperationKind(StrEnum):
    """Kind of long-running operation."""

    UPLOAD = "upload"
    DOWNLOAD = "download"
    RENAME = "rename"


class OperationState(StrEnum):
    """Lifecycle state of an operation.

    created -> running -> {done, error}; canceled is reachable from
    created and running.
    """

    CREATED = "created"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    CANCELED = "canceled"


class ProgressPhase(StrEnum):
    """Phase carried by a ProgressEvent."""

    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"


TERMINAL_PHASES = frozenset({ProgressPhase.DONE, ProgressPhase.ERROR})


class OperationCancelledError(Exception):
    """Raised inside an operation's task once its token has fired."""


class CancellationToken:
    """Per-operation cancellation flag.

    The registry fires the token; the task that owns the operation's I/O
    resources checks it and tears them down itself.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class Operation:
    """One in-flight task.

    Attributes:
        id: Opaque identifier, valid only while the operation is registered
        kind: upload, download or rename
        label: Destination object name for transfers, "src -> dest" for renames
        token: Cancellation token fired by OperationRegistry.cancel
        task: The asyncio task running the operation, once scheduled
        state: Current lifecycle state
    """

    id: str
    kind: OperationKind
    label: str
    token: CancellationToken = field(default_factory=CancellationToken)
    task: asyncio.Task[Any] | None = None
    state: OperationState = OperationState.CREATED


def percent_of(done: int, total: int) -> int:
    """Floor percentage of ``done`` over ``total``, clamped to [0, 100]; 0 when total is unknown."""
    if total <= 0:
        return 0
    return max(0, min(100, math.floor(done * 100 / total)))


@dataclass(frozen=True)
class ProgressEvent:
    """Notification describing the state of one operation.

    Transfer events use ``transferred``/``total``/``percent`` (bytes) and
    ``saved_to`` on a finished download. Rename events use ``current``,
    ``count``, ``total`` (objects), ``failed_count`` and, on completion,
    ``copied`` and ``failed``. ``message`` is set on error events and on a
    finished rename whose source cleanup left objects behind.
    """

    op_id: str
    kind: OperationKind
    name: str
    phase: ProgressPhase
    transferred: int | None = None
    total: int | None = None
    percent: int | None = None
    message: str | None = None
    saved_to: str | None = None
    current: str | None = None
    count: int | None = None
    failed_count: int | None = None
    copied: int | None = None
    failed: list[dict[str, str]] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping fields that were not set."""
        payload: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            head, *rest = f.name.split("_")
            key = head + "".join(part.capitalize() for part in rest)
            payload[key] = value.value if isinstance(value, StrEnum) else value
        return payload
