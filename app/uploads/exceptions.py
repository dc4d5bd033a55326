"""
Upload-specific exceptions for chunked upload operations.

Exception Hierarchy:
    core.exceptions.ValidationError
    ├── ChecksumMismatchError - Observed hash differs from the declared one
    └── SizeMismatchError - Byte count differs from the expected size

    core.exceptions.ExternalServiceError
    └── StorageError - Blob store I/O failure surfaced by a service

    core.exceptions.BaseApplicationError
    └── ExpiredError - Session lifetime elapsed before completion

    BlobStoreError - Raised by blob store backends (not an application
                     error; services translate it into StorageError)

Usage:
    from uploads.exceptions import ChecksumMismatchError, StorageError

    if observed != declared:
        raise ChecksumMismatchError(
            f"Checksum mismatch for chunk {chunk_number}",
            details={"expected": declared, "actual": observed},
        )

    try:
        store.write(key, payload)
    except BlobStoreError as e:
        raise StorageError("Failed to store chunk") from e
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ExternalServiceError,
    ValidationError,
)


# =============================================================================
# Integrity Exceptions
# =============================================================================


class ChecksumMismatchError(ValidationError):
    """
    Raised when a computed checksum differs from the one the client declared.

    Applies to both single chunks (nothing is persisted) and the assembled
    file (the session is marked FAILED and its chunks are preserved).
    """

    default_error_code: str = "CHECKSUM_MISMATCH"


class SizeMismatchError(ValidationError):
    """
    Raised when a byte count differs from the expected size.

    Use for:
    - A chunk payload whose length is not the expected size for its position
    - A declared chunk size that disagrees with the payload
    - An assembled artifact whose length differs from total_file_size
    """

    default_error_code: str = "SIZE_MISMATCH"


# =============================================================================
# Lifecycle Exceptions
# =============================================================================


class ExpiredError(BaseApplicationError):
    """
    Raised when an operation targets a session whose lifetime has elapsed.

    A session counts as expired once the sweeper marked it EXPIRED, or as
    soon as expires_at has passed while it is still open, even if the
    sweeper has not run yet.
    """

    default_error_code: str = "EXPIRED"


# =============================================================================
# Storage Exceptions
# =============================================================================


class StorageError(ExternalServiceError):
    """
    Raised by services when the blob store fails.

    The original BlobStoreError is chained as ``__cause__``.
    """

    default_error_code: str = "STORAGE_ERROR"


class BlobStoreError(Exception):
    """
    Raised by BlobStore implementations for any I/O failure.

    Backends wrap their native errors (OSError, botocore ClientError)
    in this type so services only ever handle one storage exception.
    """

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)
