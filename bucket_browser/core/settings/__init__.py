"""Modular Pydantic Settings v2 configuration.

Settings are split by domain and loaded through LRU-cached loaders:

    from bucket_browser.core.settings import get_storage_settings

    settings = get_storage_settings()
    print(settings.bucket)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file (development only)
"""

from __future__ import annotations

from .loader import (
    clear_settings_cache,
    get_logging_settings,
    get_storage_settings,
    get_transfer_settings,
)
from .logs import LoggingSettings
from .storage import StorageBackendType, StorageSettings
from .transfers import SourceCleanupPolicy, TransferSettings

__all__ = [
    "LoggingSettings",
    "SourceCleanupPolicy",
    "StorageBackendType",
    "StorageSettings",
    "TransferSettings",
    "clear_settings_cache",
    "get_logging_settings",
    "get_storage_settings",
    "get_transfer_settings",
]
