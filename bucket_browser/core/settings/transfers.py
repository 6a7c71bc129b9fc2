"""Transfer and bulk-rename operation settings.

Environment variables use TRANSFER_ prefix.
Example: TRANSFER_CHUNK_SIZE=262144
         TRANSFER_RENAME_SOURCE_CLEANUP=prefix
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourceCleanupPolicy(StrEnum):
    """What a bulk prefix rename deletes from the source tree after copying.

    COPIED_ONLY deletes the whole source prefix when every copy succeeded,
    and otherwise only the source objects that were copied, so objects whose
    copy failed stay where they were.

    PREFIX deletes the whole source prefix regardless of copy failures.
    """

    COPIED_ONLY = "copied_only"
    PREFIX = "prefix"


class TransferSettings(BaseSettings):
    """Settings for streamed transfers and prefix renames."""

    chunk_size: int = Field(
        default=256 * 1024,
        ge=1024,
        le=64 * 1024 * 1024,
        description="Bytes read per chunk while streaming; one progress event is emitted per chunk",
    )

    list_page_size: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Page size used when enumerating every object under a prefix",
    )

    rename_source_cleanup: SourceCleanupPolicy = Field(
        default=SourceCleanupPolicy.COPIED_ONLY,
        description="Source deletion policy applied after a bulk prefix rename",
    )

    model_config = SettingsConfigDict(
        env_prefix="TRANSFER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
