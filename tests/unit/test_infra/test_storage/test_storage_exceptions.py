"""Unit tests for storage exceptions and botocore error mapping."""

from botocore.exceptions import ClientError
import pytest

from bucket_browser.infra.storage.exceptions import (
    StorageConflictError,
    StorageDownloadError,
    StorageError,
    StorageFileNotFoundError,
    StoragePermissionError,
    StorageQuotaExceededError,
    StorageTimeoutError,
    StorageUploadError,
    StorageValidationError,
    is_not_found,
    map_boto_error,
)


def _client_error(code: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": f"{code} happened"}, "RequestId": "req-1"},
        "GetObject",
    )


class TestStorageErrors:
    """Test the exception hierarchy."""

    def test_conflict_is_409(self):
        error = StorageConflictError("exists", metadata={"key": "a"})

        assert isinstance(error, StorageError)
        assert error.status_code == 409
        assert error.code == "STORAGE_CONFLICT"
        assert error.extra == {"key": "a"}
        assert str(error) == "exists"

    def test_validation_is_400(self):
        assert StorageValidationError("bad").status_code == 400

    def test_problem_details(self):
        """Test RFC 7807 rendering."""
        problem = StorageFileNotFoundError("missing", metadata={"key": "a"}).to_problem()

        assert problem["status"] == 404
        assert problem["title"] == "Not Found"
        assert problem["detail"] == "missing"
        assert problem["type"] == "storage-not-found"


class TestMapBotoError:
    """Test ClientError translation."""

    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("NoSuchKey", StorageFileNotFoundError),
            ("404", StorageFileNotFoundError),
            ("AccessDenied", StoragePermissionError),
            ("RequestTimeout", StorageTimeoutError),
            ("QuotaExceeded", StorageQuotaExceededError),
            ("InvalidArgument", StorageValidationError),
        ],
    )
    def test_mapping(self, code: str, expected: type[StorageError]):
        error = map_boto_error(_client_error(code), operation="download", key="a")

        assert isinstance(error, expected)
        assert error.extra["key"] == "a"
        assert error.extra["aws_error_code"] == code

    def test_unknown_code_is_generic(self):
        error = map_boto_error(_client_error("Weird"), operation="copy")

        assert type(error) is StorageError
        assert error.status_code == 500
        assert "Copy failed" in error.detail

    @pytest.mark.parametrize(
        ("operation", "expected"),
        [("upload", StorageUploadError), ("download", StorageDownloadError)],
    )
    def test_unknown_code_during_transfer(self, operation: str, expected: type[StorageError]):
        error = map_boto_error(_client_error("InternalError"), operation=operation, key="a")

        assert isinstance(error, expected)
        assert error.status_code == 500

    def test_is_not_found(self):
        assert is_not_found(_client_error("NotFound")) is True
        assert is_not_found(_client_error("AccessDenied")) is False
