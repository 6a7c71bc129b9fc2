"""Cached settings loaders.

Each loader builds its settings model once per process; call
``cache_clear()`` on a loader in tests that change the environment.
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .storage import StorageSettings
from .transfers import TransferSettings


@lru_cache(maxsize=1)
def get_storage_settings() -> StorageSettings:
    """Get cached object storage settings.

    Returns:
        Validated and frozen StorageSettings instance.
    """
    return StorageSettings()


@lru_cache(maxsize=1)
def get_transfer_settings() -> TransferSettings:
    """Get cached transfer settings.

    Returns:
        Validated and frozen TransferSettings instance.
    """
    return TransferSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_settings_cache() -> None:
    """Drop every cached settings instance."""
    get_storage_settings.cache_clear()
    get_transfer_settings.cache_clear()
    get_logging_settings.cache_clear()
