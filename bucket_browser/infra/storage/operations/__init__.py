"""Tracked long-running storage operations.

Provides:
- OperationRegistry: in-flight operations keyed by id, cancellable
- ProgressBus / ProgressReporter: progress event fan-out
- TransferPipeline: streamed uploads and downloads
- RenameOrchestrator: object and prefix renames
"""

from __future__ import annotations

from .models import (
    CancellationToken,
    Operation,
    OperationCancelledError,
    OperationKind,
    OperationState,
    ProgressEvent,
    ProgressPhase,
    percent_of,
)
from .progress import ProgressBus, ProgressReporter, Subscription
from .registry import OperationRegistry
from .rename import RenameOrchestrator, iter_objects, normalize_prefix
from .results import (
    BestEffortOutcome,
    PrefixRenameOutcome,
    RenameFailure,
    RenameSummary,
    best_effort,
)
from .runner import OperationRunner
from .transfer import TransferPipeline

__all__ = [
    "BestEffortOutcome",
    "CancellationToken",
    "Operation",
    "OperationCancelledError",
    "OperationKind",
    "OperationRegistry",
    "OperationRunner",
    "OperationState",
    "PrefixRenameOutcome",
    "ProgressBus",
    "ProgressEvent",
    "ProgressPhase",
    "ProgressReporter",
    "RenameFailure",
    "RenameOrchestrator",
    "RenameSummary",
    "Subscription",
    "TransferPipeline",
    "best_effort",
    "iter_objects",
    "normalize_prefix",
    "percent_of",
]
