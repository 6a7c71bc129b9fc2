"""S3-compatible storage backend."""

from .backend import S3ObjectStore

__all__ = ["S3ObjectStore"]
