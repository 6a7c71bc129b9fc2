"""S3-compatible storage backend implementation.

Implements the ObjectStoreClient protocol for AWS S3, MinIO, and other
S3-compatible services (including the Google Cloud Storage interoperability
endpoint) using aioboto3.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import aioboto3
from botocore.config import Config
from botocore.exceptions import ClientError

from bucket_browser.infra.storage.exceptions import (
    StorageError,
    StorageFileNotFoundError,
    StorageNotConfiguredError,
    StorageUploadError,
    is_not_found,
    map_boto_error,
)

from ..protocol import ListPage, ObjectInfo

if TYPE_CHECKING:
    from types import TracebackType

    from bucket_browser.core.settings.storage import StorageSettings

logger = logging.getLogger(__name__)

# DeleteObjects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000


class S3ByteSource:
    """Read stream over a GetObject response body."""

    def __init__(self, name: str, body: Any) -> None:
        self._name = name
        self._body = body
        self._closed = False

    async def read(self, size: int) -> bytes:
        try:
            return await self._body.read(size)
        except ClientError as e:
            raise map_boto_error(e, operation="download", key=self._name) from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._body.close()


class S3ByteSink:
    """Write stream backed by a multipart upload.

    Data is buffered until a full part is available. Objects smaller than a
    single part are written with one PutObject on close.
    """

    def __init__(self, client: Any, bucket: str, name: str, part_size: int) -> None:
        self._client = client
        self._bucket = bucket
        self._name = name
        self._part_size = part_size
        self._buffer = bytearray()
        self._upload_id: str | None = None
        self._parts: list[dict[str, Any]] = []
        self._finished = False

    async def write(self, data: bytes) -> None:
        if self._finished:
            raise StorageUploadError(
                f"Write stream already closed: {self._name}", metadata={"key": self._name}
            )
        self._buffer.extend(data)
        while len(self._buffer) >= self._part_size:
            part = bytes(self._buffer[: self._part_size])
            del self._buffer[: self._part_size]
            await self._upload_part(part)

    async def close(self) -> None:
        if self._finished:
            return
        try:
            if self._upload_id is None:
                await self._client.put_object(
                    Bucket=self._bucket, Key=self._name, Body=bytes(self._buffer)
                )
            else:
                if self._buffer:
                    await self._upload_part(bytes(self._buffer))
                await self._client.complete_multipart_upload(
                    Bucket=self._bucket,
                    Key=self._name,
                    UploadId=self._upload_id,
                    MultipartUpload={"Parts": self._parts},
                )
        except ClientError as e:
            raise map_boto_error(e, operation="upload", key=self._name) from e
        finally:
            self._buffer.clear()
        self._finished = True
        logger.debug(
            "Streamed upload committed",
            extra={"key": self._name, "parts": len(self._parts)},
        )

    async def abort(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._buffer.clear()
        if self._upload_id is not None:
            upload_id, self._upload_id = self._upload_id, None
            try:
                await self._client.abort_multipart_upload(
                    Bucket=self._bucket, Key=self._name, UploadId=upload_id
                )
            except ClientError as e:
                raise map_boto_error(e, operation="abort_upload", key=self._name) from e

    async def _upload_part(self, part: bytes) -> None:
        try:
            if self._upload_id is None:
                response = await self._client.create_multipart_upload(
                    Bucket=self._bucket, Key=self._name
                )
                self._upload_id = response["UploadId"]
            number = len(self._parts) + 1
            response = await self._client.upload_part(
                Bucket=self._bucket,
                Key=self._name,
                UploadId=self._upload_id,
                PartNumber=number,
                Body=part,
            )
        except ClientError as e:
            raise map_boto_error(e, operation="upload", key=self._name) from e
        self._parts.append({"ETag": response["ETag"], "PartNumber": number})


class S3ObjectStore:
    """S3-compatible object store.

    Attributes:
        settings: Storage configuration settings

    Example:
        async with S3ObjectStore(settings) as store:
            await store.save("docs/a.txt", b"hello")
    """

    def __init__(self, settings: StorageSettings) -> None:
        """Initialize S3 backend.

        Args:
            settings: Storage settings with S3 configuration
        """
        self.settings = settings
        self._session = aioboto3.Session()
        self._client: Any = None
        self._client_context: Any = None

    @property
    def backend_name(self) -> str:
        return "s3"

    @property
    def bucket(self) -> str:
        return self.settings.bucket

    @property
    def is_ready(self) -> bool:
        return self._client is not None

    # ========================================================================
    # Lifecycle Management
    # ========================================================================

    async def startup(self) -> None:
        """Initialize S3 client and connection pool."""
        if self._client is not None:
            logger.debug("S3 backend already initialized")
            return

        logger.info(
            "Initializing S3 backend",
            extra={
                "bucket": self.settings.bucket,
                "endpoint": self.settings.endpoint,
                "region": self.settings.region,
            },
        )

        boto_config = Config(
            retries={
                "max_attempts": self.settings.max_retries,
                "mode": self.settings.retry_mode,
            },
            connect_timeout=self.settings.timeout,
            read_timeout=self.settings.timeout,
            max_pool_connections=self.settings.max_pool_connections,
        )

        try:
            self._client_context = self._session.client(
                "s3",
                **self.settings.get_boto3_config(),
                config=boto_config,
            )
            self._client = await self._client_context.__aenter__()
        except Exception as e:
            self._client_context = None
            logger.exception("Failed to initialize S3 backend", extra={"error": str(e)})
            raise StorageError(
                f"Failed to initialize S3 backend: {e}",
                code="STORAGE_INITIALIZATION_ERROR",
            ) from e

        logger.info("S3 backend initialized successfully")

    async def shutdown(self) -> None:
        """Shutdown S3 client gracefully."""
        if self._client_context is None:
            logger.debug("S3 backend not initialized, nothing to shutdown")
            return

        try:
            await self._client_context.__aexit__(None, None, None)
        except Exception as e:
            logger.warning("Error closing S3 client", extra={"error": str(e)})
        finally:
            self._client = None
            self._client_context = None

        logger.info("S3 backend shutdown complete")

    async def __aenter__(self) -> S3ObjectStore:
        await self.startup()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    def _ensure_client(self) -> Any:
        if self._client is None:
            msg = "S3 backend not initialized. Call startup() first."
            raise StorageNotConfiguredError(msg)
        return self._client

    # ========================================================================
    # Object Operations
    # ========================================================================

    async def exists(self, name: str) -> bool:
        client = self._ensure_client()
        try:
            await client.head_object(Bucket=self.bucket, Key=name)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise map_boto_error(e, operation="exists", key=name) from e
        return True

    async def list(
        self,
        prefix: str = "",
        delimiter: str | None = None,
        page_token: str | None = None,
        max_results: int = 1000,
    ) -> ListPage:
        client = self._ensure_client()
        kwargs: dict[str, Any] = {
            "Bucket": self.bucket,
            "Prefix": prefix,
            "MaxKeys": max_results,
        }
        if delimiter:
            kwargs["Delimiter"] = delimiter
        if page_token:
            kwargs["ContinuationToken"] = page_token

        try:
            response = await client.list_objects_v2(**kwargs)
        except ClientError as e:
            raise map_boto_error(e, operation="list", key=prefix) from e

        items = [
            ObjectInfo(name=item["Key"], size=item["Size"], updated=item.get("LastModified"))
            for item in response.get("Contents", [])
        ]
        prefixes = [p["Prefix"] for p in response.get("CommonPrefixes", [])]
        next_token = response.get("NextContinuationToken")

        logger.debug(
            "Listed objects from S3",
            extra={
                "prefix": prefix,
                "count": len(items),
                "prefixes": len(prefixes),
                "has_more": next_token is not None,
            },
        )
        return ListPage(items=items, prefixes=prefixes, next_page_token=next_token)

    async def get_metadata(self, name: str) -> ObjectInfo:
        client = self._ensure_client()
        try:
            response = await client.head_object(Bucket=self.bucket, Key=name)
        except ClientError as e:
            if is_not_found(e):
                raise StorageFileNotFoundError(
                    f"Object not found: {name}", metadata={"key": name}
                ) from e
            raise map_boto_error(e, operation="get_metadata", key=name) from e
        return ObjectInfo(
            name=name,
            size=int(response.get("ContentLength", 0)),
            updated=response.get("LastModified"),
        )

    async def copy(self, src_name: str, dest_name: str) -> None:
        client = self._ensure_client()
        try:
            await client.copy_object(
                Bucket=self.bucket,
                Key=dest_name,
                CopySource={"Bucket": self.bucket, "Key": src_name},
            )
        except ClientError as e:
            raise map_boto_error(e, operation="copy", key=src_name) from e
        logger.debug("Object copied", extra={"source": src_name, "destination": dest_name})

    async def delete(self, name: str, ignore_not_found: bool = False) -> None:
        client = self._ensure_client()
        # DeleteObject succeeds for missing keys, so check first when that matters
        if not ignore_not_found and not await self.exists(name):
            raise StorageFileNotFoundError(f"Object not found: {name}", metadata={"key": name})
        try:
            await client.delete_object(Bucket=self.bucket, Key=name)
        except ClientError as e:
            if ignore_not_found and is_not_found(e):
                return
            raise map_boto_error(e, operation="delete", key=name) from e
        logger.debug("Object deleted", extra={"key": name})

    async def delete_all_with_prefix(self, prefix: str) -> None:
        client = self._ensure_client()
        page_token: str | None = None
        deleted = 0
        while True:
            page = await self.list(prefix=prefix, page_token=page_token)
            names = [item.name for item in page.items]
            for start in range(0, len(names), DELETE_BATCH_SIZE):
                batch = names[start : start + DELETE_BATCH_SIZE]
                try:
                    response = await client.delete_objects(
                        Bucket=self.bucket,
                        Delete={"Objects": [{"Key": n} for n in batch], "Quiet": True},
                    )
                except ClientError as e:
                    raise map_boto_error(e, operation="delete_prefix", key=prefix) from e
                errors = response.get("Errors", [])
                if errors:
                    first = errors[0]
                    raise StorageError(
                        f"Failed to delete {len(errors)} object(s) under {prefix}: "
                        f"{first.get('Key')}: {first.get('Message')}",
                        code="STORAGE_DELETE_ERROR",
                        metadata={"prefix": prefix, "failed": len(errors)},
                    )
                deleted += len(batch)
            page_token = page.next_page_token
            if page_token is None:
                break
        logger.info("Deleted objects by prefix", extra={"prefix": prefix, "count": deleted})

    async def open_read(self, name: str) -> S3ByteSource:
        client = self._ensure_client()
        try:
            response = await client.get_object(Bucket=self.bucket, Key=name)
        except ClientError as e:
            raise map_boto_error(e, operation="download", key=name) from e
        return S3ByteSource(name, response["Body"])

    async def open_write(self, name: str) -> S3ByteSink:
        client = self._ensure_client()
        return S3ByteSink(client, self.bucket, name, self.settings.multipart_part_size)

    async def save(self, name: str, data: bytes) -> None:
        client = self._ensure_client()
        try:
            await client.put_object(Bucket=self.bucket, Key=name, Body=data)
        except ClientError as e:
            raise map_boto_error(e, operation="upload", key=name) from e
        logger.debug("Object saved", extra={"key": name, "size_bytes": len(data)})
