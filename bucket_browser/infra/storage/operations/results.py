"""Result types for best-effort actions and bulk renames."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import logging
from typing import Any

from bucket_browser.infra.storage.exceptions import StorageFileNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BestEffortOutcome:
    """Outcome of an action whose failure must not abort the caller.

    Attributes:
        action: Short description of what was attempted
        error: The exception raised, if any
        ignorable: True when the failure left nothing behind (the target was
            already gone); False when it may have left residue, such as an
            undeleted source object or an unaborted multipart upload
    """

    action: str
    error: BaseException | None = None
    ignorable: bool = True

    @property
    def ok(self) -> bool:
        return self.error is None


async def best_effort(
    action: str,
    call: Callable[[], Awaitable[Any]],
    **log_extra: Any,
) -> BestEffortOutcome:
    """Run ``call``; log and return its failure instead of raising it.

    Cancellation still propagates.
    """
    try:
        await call()
    except StorageFileNotFoundError as e:
        logger.debug(
            "Best-effort action target already gone",
            extra={"action": action, "error": str(e), **log_extra},
        )
        return BestEffortOutcome(action=action, error=e, ignorable=True)
    except Exception as e:
        logger.warning(
            "Best-effort action failed",
            extra={"action": action, "error": str(e), **log_extra},
        )
        return BestEffortOutcome(action=action, error=e, ignorable=False)
    return BestEffortOutcome(action=action)


@dataclass(frozen=True)
class RenameFailure:
    """One object that could not be copied during a bulk rename."""

    src: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"src": self.src, "error": self.error}


@dataclass
class RenameSummary:
    """Aggregate outcome of a bulk prefix rename, built one object at a time.

    Attributes:
        total: Number of objects enumerated under the source prefix
        copied_sources: Source names copied successfully, in attempt order
        failures: Copy failures, in attempt order
    """

    total: int = 0
    copied_sources: list[str] = field(default_factory=list)
    failures: list[RenameFailure] = field(default_factory=list)

    @property
    def copied(self) -> int:
        return len(self.copied_sources)

    @property
    def attempted(self) -> int:
        return self.copied + len(self.failures)

    def record_success(self, src: str) -> None:
        self.copied_sources.append(src)

    def record_failure(self, src: str, error: BaseException) -> None:
        self.failures.append(RenameFailure(src=src, error=str(error)))

    def failed_dicts(self) -> list[dict[str, str]]:
        return [failure.to_dict() for failure in self.failures]


@dataclass(frozen=True)
class PrefixRenameOutcome:
    """Result of a synchronous bulk prefix rename.

    ``renamed`` is False only when source and destination are the same
    prefix; per-object copy failures are listed in ``failed`` and do not
    make the whole rename fail. ``message`` explains a same-prefix no-op or
    a source cleanup that left objects behind.
    """

    renamed: bool
    copied: int = 0
    failed: list[RenameFailure] = field(default_factory=list)
    message: str | None = None
