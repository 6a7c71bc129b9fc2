"""Pydantic schemas for the bucket browser feature."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from bucket_browser.infra.storage.operations import (
        PrefixRenameOutcome,
        RenameFailure,
    )


class CamelModel(BaseModel):
    """Base model serializing with camelCase aliases for the UI bridge."""

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        alias_generator=to_camel,
    )


class ObjectEntry(CamelModel):
    """One object in a listing."""

    name: str
    size: int = Field(..., ge=0)
    updated: datetime | None = None


class ListResult(CamelModel):
    """One page of a listing."""

    items: list[ObjectEntry] = Field(default_factory=list)
    prefixes: list[str] = Field(default_factory=list)
    next_page_token: str | None = None


class DeleteResult(CamelModel):
    deleted: bool


class RenameResult(CamelModel):
    name: str


class RenameFailureRead(CamelModel):
    """An object whose copy failed during a prefix rename."""

    src: str
    error: str


class RenamePrefixResult(CamelModel):
    """Outcome of a synchronous prefix rename."""

    renamed: bool
    copied: int = 0
    failed: list[RenameFailureRead] = Field(default_factory=list)
    message: str | None = None

    @classmethod
    def from_outcome(cls, outcome: PrefixRenameOutcome) -> RenamePrefixResult:
        return cls(
            renamed=outcome.renamed,
            copied=outcome.copied,
            failed=[_failure(f) for f in outcome.failed],
            message=outcome.message,
        )


def _failure(failure: RenameFailure) -> RenameFailureRead:
    return RenameFailureRead(src=failure.src, error=failure.error)


class CreatePrefixResult(CamelModel):
    created: bool
    name: str


class BucketUsage(CamelModel):
    """Total size and object count under a prefix.

    ``bytes`` is a decimal string so that consumers without arbitrary
    precision integers do not lose digits.
    """

    bytes: str
    count: int = Field(..., ge=0)


class UploadResult(CamelModel):
    name: str
    overwritten: bool


class DownloadResult(CamelModel):
    saved_to: str


class CancelResult(CamelModel):
    canceled: bool
