"""
Blob store backed by Amazon S3 (or any S3-compatible service) via boto3.

Chunks are single put_object calls. Assembled files are written with the
multipart upload API so they never have to fit in memory; a failed
assembly aborts the multipart upload, leaving no partial object.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from uploads.exceptions import BlobStoreError
from uploads.services.blob_store.base import DEFAULT_READ_SIZE, BlobStore

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

# S3 rejects multipart parts below 5MB except the last one
MIN_PART_SIZE = 5 * 1024 * 1024

# Lifetime of presigned download URLs
URL_EXPIRY_SECONDS = 3600

_BOTO_ERRORS = (BotoCoreError, ClientError)


class S3BlobStore(BlobStore):
    """
    BlobStore on top of an S3 bucket.

    The boto3 client is created lazily so the module can be imported
    without credentials configured.
    """

    def __init__(
        self,
        bucket_name: str | None = None,
        client=None,
        part_size: int = MIN_PART_SIZE,
    ) -> None:
        """
        Initialize the S3 blob store.

        Args:
            bucket_name: Target bucket. Defaults to CHUNKED_UPLOAD_S3_BUCKET.
            client: Preconfigured boto3 S3 client (created lazily if omitted).
            part_size: Multipart part size for write_final (at least 5MB).
        """
        self.bucket_name = bucket_name or settings.CHUNKED_UPLOAD_S3_BUCKET
        self.part_size = max(part_size, MIN_PART_SIZE)
        self._s3_client = client

    @property
    def s3_client(self):
        """Get or create S3 client."""
        if self._s3_client is None:
            import boto3

            self._s3_client = boto3.client(
                "s3",
                region_name=getattr(settings, "AWS_S3_REGION_NAME", None),
                endpoint_url=getattr(settings, "AWS_S3_ENDPOINT_URL", None),
                aws_access_key_id=getattr(settings, "AWS_ACCESS_KEY_ID", None),
                aws_secret_access_key=getattr(settings, "AWS_SECRET_ACCESS_KEY", None),
            )
        return self._s3_client

    def write(self, key: str, data: bytes) -> str:
        try:
            self.s3_client.put_object(Bucket=self.bucket_name, Key=key, Body=data)
        except _BOTO_ERRORS as e:
            raise BlobStoreError(f"Failed to write S3 object: {e}", key=key) from e
        return key

    def read_stream(self, key: str, block_size: int = DEFAULT_READ_SIZE) -> Iterator[bytes]:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
            yield from response["Body"].iter_chunks(chunk_size=block_size)
        except _BOTO_ERRORS as e:
            raise BlobStoreError(f"Failed to read S3 object: {e}", key=key) from e

    def delete(self, key: str) -> None:
        # S3 reports success for keys that do not exist
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        except _BOTO_ERRORS as e:
            raise BlobStoreError(f"Failed to delete S3 object: {e}", key=key) from e

    def write_final(self, key: str, stream: Iterable[bytes]) -> str:
        """
        Stream blocks into a multipart upload, buffering up to part_size.

        Any failure, including one raised by the stream, aborts the
        multipart upload before the error propagates.
        """
        try:
            response = self.s3_client.create_multipart_upload(
                Bucket=self.bucket_name,
                Key=key,
            )
        except _BOTO_ERRORS as e:
            raise BlobStoreError(f"Failed to start multipart upload: {e}", key=key) from e

        upload_id = response["UploadId"]
        parts: list[dict] = []
        buffer = bytearray()

        try:
            for block in stream:
                buffer.extend(block)
                while len(buffer) >= self.part_size:
                    self._upload_part(key, upload_id, parts, bytes(buffer[: self.part_size]))
                    del buffer[: self.part_size]
            if buffer or not parts:
                self._upload_part(key, upload_id, parts, bytes(buffer))

            self.s3_client.complete_multipart_upload(
                Bucket=self.bucket_name,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except _BOTO_ERRORS as e:
            self._abort(key, upload_id)
            raise BlobStoreError(f"Failed to write S3 object: {e}", key=key) from e
        except Exception:
            self._abort(key, upload_id)
            raise
        return key

    def _upload_part(self, key: str, upload_id: str, parts: list[dict], body: bytes) -> None:
        part_number = len(parts) + 1
        response = self.s3_client.upload_part(
            Bucket=self.bucket_name,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
        parts.append({"ETag": response["ETag"], "PartNumber": part_number})

    def _abort(self, key: str, upload_id: str) -> None:
        try:
            self.s3_client.abort_multipart_upload(
                Bucket=self.bucket_name,
                Key=key,
                UploadId=upload_id,
            )
        except _BOTO_ERRORS:
            # Bucket lifecycle rules clean up uploads we fail to abort
            logger.warning(
                "Failed to abort multipart upload",
                extra={"key": key, "upload_id": upload_id},
                exc_info=True,
            )

    def url(self, key: str) -> str:
        try:
            return self.s3_client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=URL_EXPIRY_SECONDS,
            )
        except _BOTO_ERRORS as e:
            raise BlobStoreError(f"Failed to presign S3 URL: {e}", key=key) from e

    def exists(self, key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise BlobStoreError(f"Failed to stat S3 object: {e}", key=key) from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Failed to stat S3 object: {e}", key=key) from e
        return True
