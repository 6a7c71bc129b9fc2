"""Storage-specific exceptions for object storage operations.

This module defines custom exceptions for storage operations, providing
structured error handling with HTTP-style status codes and metadata
following RFC 7807 Problem Details.

Setup failures (validation, conflicts, missing sources) are raised to the
caller synchronously; failures of a running transfer are reported as
``error`` progress events carrying ``str(exc)``.

Example:
    ```python
    from bucket_browser.infra.storage.exceptions import map_boto_error

    try:
        await client.head_object(Bucket=bucket, Key=key)
    except ClientError as e:
        raise map_boto_error(e, operation="get_metadata", key=key) from e
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from bucket_browser.core.exceptions import AppException

if TYPE_CHECKING:
    from botocore.exceptions import ClientError

# botocore error codes meaning "the object is not there"
NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchBucket", "404", "NotFound"})


class StorageError(AppException):
    """Base exception for all storage-related errors.

    Attributes:
        code: Error code identifier for programmatic error handling.
        message: Human-readable error message.

    Example:
        ```python
        raise StorageError(
            message="Failed to connect to storage backend",
            code="STORAGE_CONNECTION_ERROR",
            status_code=503,
            metadata={"endpoint": "http://localhost:9000"}
        )
        ```
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Initialize storage error.

        Args:
            message: Human-readable error message.
            code: Error code for programmatic handling.
            status_code: HTTP-style status code (default: 500).
            metadata: Additional error context.
        """
        self.code = code
        self.message = message
        super().__init__(
            status_code=status_code,
            detail=message,
            type=code.lower().replace("_", "-"),
            extra=metadata or {},
        )


class StorageNotConfiguredError(StorageError):
    """Raised when the storage backend is not configured or not started."""

    def __init__(
        self,
        message: str = "Storage is not configured or not started",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_NOT_CONFIGURED",
            status_code=503,
            metadata=metadata,
        )


class StorageFileNotFoundError(StorageError):
    """Raised when a source object, prefix, or local file does not exist.

    Example:
        ```python
        raise StorageFileNotFoundError(
            f"Object not found: {name}",
            metadata={"name": name}
        )
        ```
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_NOT_FOUND",
            status_code=404,
            metadata=metadata,
        )


class StorageConflictError(StorageError):
    """Raised when a destination already exists and overwrite was not requested.

    Always raised before any byte moves and before any operation is
    registered.

    Example:
        ```python
        raise StorageConflictError(
            f"An object with the same name already exists: {destination}",
            metadata={"destination": destination}
        )
        ```
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_CONFLICT",
            status_code=409,
            metadata=metadata,
        )


class StorageUploadError(StorageError):
    """Raised when writing an object fails."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_UPLOAD_ERROR",
            status_code=500,
            metadata=metadata,
        )


class StorageDownloadError(StorageError):
    """Raised when reading an object fails."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_DOWNLOAD_ERROR",
            status_code=500,
            metadata=metadata,
        )


class StoragePermissionError(StorageError):
    """Raised when the credentials lack permission for an operation."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_PERMISSION_DENIED",
            status_code=403,
            metadata=metadata,
        )


class StorageQuotaExceededError(StorageError):
    """Raised when the storage provider refuses an operation for quota reasons."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_QUOTA_EXCEEDED",
            status_code=507,
            metadata=metadata,
        )


class StorageValidationError(StorageError):
    """Raised when a required argument is missing or malformed.

    Example:
        ```python
        raise StorageValidationError(
            "prefix is required",
            metadata={"field": "prefix"}
        )
        ```
    """

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_VALIDATION_ERROR",
            status_code=400,
            metadata=metadata,
        )


class StorageTimeoutError(StorageError):
    """Raised when the transport reports a timeout."""

    def __init__(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="STORAGE_TIMEOUT",
            status_code=504,
            metadata=metadata,
        )


def is_not_found(error: ClientError) -> bool:
    """Return True when a botocore ClientError means the key does not exist."""
    return error.response.get("Error", {}).get("Code", "") in NOT_FOUND_CODES


def map_boto_error(
    error: ClientError,
    operation: str,
    key: str | None = None,
) -> StorageError:
    """Map a botocore ClientError to a domain-specific StorageError.

    Args:
        error: The botocore ClientError exception to map.
        operation: The storage operation being performed (e.g., "copy", "list").
        key: Optional object name being operated on.

    Returns:
        StorageError: Appropriate domain-specific storage exception.

    Error Code Mappings:
        - NoSuchKey, NoSuchBucket, 404 -> StorageFileNotFoundError (404)
        - AccessDenied, ExpiredToken, InvalidAccessKeyId -> StoragePermissionError (403)
        - RequestTimeout, RequestTimeTooSkewed, SlowDown -> StorageTimeoutError (504)
        - QuotaExceeded, TooManyBuckets -> StorageQuotaExceededError (507)
        - InvalidRequest, InvalidArgument, MalformedXML -> StorageValidationError (400)
        - Other upload/download failures -> StorageUploadError / StorageDownloadError (500)
        - Others -> StorageError (500)
    """
    error_code = error.response.get("Error", {}).get("Code", "Unknown")
    error_message = error.response.get("Error", {}).get("Message", str(error))

    metadata: dict[str, Any] = {
        "operation": operation,
        "aws_error_code": error_code,
        "aws_error_message": error_message,
        "request_id": error.response.get("ResponseMetadata", {}).get("RequestId"),
    }
    if key:
        metadata["key"] = key

    message = f"{operation.capitalize()} failed: {error_message}"

    if error_code in NOT_FOUND_CODES:
        return StorageFileNotFoundError(message=message, metadata=metadata)

    if error_code in {
        "AccessDenied",
        "ExpiredToken",
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
        "InvalidToken",
        "TokenRefreshRequired",
    }:
        return StoragePermissionError(message=message, metadata=metadata)

    if error_code in {"RequestTimeout", "RequestTimeTooSkewed", "SlowDown"}:
        return StorageTimeoutError(
            message=f"{operation.capitalize()} timed out: {error_message}",
            metadata=metadata,
        )

    if error_code in {"QuotaExceeded", "TooManyBuckets", "AccountProblem"}:
        return StorageQuotaExceededError(message=message, metadata=metadata)

    if error_code in {
        "InvalidRequest",
        "InvalidArgument",
        "MalformedXML",
        "InvalidBucketName",
        "InvalidObjectState",
        "KeyTooLongError",
        "MetadataTooLarge",
    }:
        return StorageValidationError(message=message, metadata=metadata)

    if operation == "upload":
        return StorageUploadError(message=message, metadata=metadata)
    if operation == "download":
        return StorageDownloadError(message=message, metadata=metadata)

    return StorageError(
        message=message,
        code="STORAGE_ERROR",
        status_code=500,
        metadata=metadata,
    )
