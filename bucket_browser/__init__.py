"""Bucket browser: transfer and bulk-rename operation manager for object storage."""

__version__ = "0.1.0"
