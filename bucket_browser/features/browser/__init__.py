"""Bucket browser feature: listing, transfers and renames for one bucket."""

from __future__ import annotations

from .service import BucketBrowserService

__all__ = ["BucketBrowserService"]
