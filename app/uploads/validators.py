"""
Upload parameter validators and checksum helpers.

Validates the parameters a client declares when opening a chunked upload
session, and provides the incremental hashers used to verify chunk and
whole-file checksums.

All validators raise core.exceptions.ValidationError with a ``details``
dict naming the offending field.
"""

from __future__ import annotations

import hashlib
import os
import re

from django.conf import settings
from django.core.exceptions import SuspiciousFileOperation
from django.utils.text import get_valid_filename

from core.exceptions import ValidationError


# =============================================================================
# Configuration
# =============================================================================

ALLOWED_MIME_TYPES: dict[str, set[str]] = {
    "image": {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/heic",
        "image/heif",
        "image/svg+xml",
    },
    "video": {
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
        "video/webm",
        "video/x-matroska",
    },
    "document": {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "text/csv",
        "application/rtf",
    },
    "audio": {
        "audio/mpeg",
        "audio/mp4",
        "audio/wav",
        "audio/x-wav",
        "audio/aac",
        "audio/ogg",
        "audio/flac",
        "audio/x-m4a",
    },
}

# Supported checksum algorithms and the length of their hex digests
CHECKSUM_ALGORITHMS: dict[str, int] = {
    "md5": 32,
    "sha256": 64,
}

DEFAULT_CHECKSUM_ALGORITHM = "md5"

_HEX_RE = re.compile(r"^[0-9a-f]+$")


# =============================================================================
# Session Parameter Validation
# =============================================================================


def validate_media_type(media_type: str, mime_type: str) -> None:
    """
    Check that media_type is a known category and mime_type is allowed in it.

    Raises:
        ValidationError: Unknown category or MIME type outside its allow-list
    """
    allowed = ALLOWED_MIME_TYPES.get(media_type)
    if allowed is None:
        raise ValidationError(
            f"Unknown media type '{media_type}'",
            details={
                "media_type": media_type,
                "allowed": sorted(ALLOWED_MIME_TYPES),
            },
        )
    if mime_type not in allowed:
        raise ValidationError(
            f"MIME type '{mime_type}' is not allowed for {media_type} uploads",
            details={"media_type": media_type, "mime_type": mime_type},
        )


def validate_total_file_size(total_file_size: int) -> None:
    """Reject empty files and files above CHUNKED_UPLOAD_MAX_FILE_SIZE."""
    max_size = settings.CHUNKED_UPLOAD_MAX_FILE_SIZE
    if total_file_size < 1:
        raise ValidationError(
            "File size must be at least 1 byte",
            details={"total_file_size": total_file_size},
        )
    if total_file_size > max_size:
        raise ValidationError(
            f"File size exceeds maximum allowed ({max_size} bytes)",
            details={"total_file_size": total_file_size, "max_file_size": max_size},
        )


def validate_chunk_size(chunk_size: int) -> None:
    """Reject chunk sizes outside the configured [min, max] range."""
    min_size = settings.CHUNKED_UPLOAD_MIN_CHUNK_SIZE
    max_size = settings.CHUNKED_UPLOAD_MAX_CHUNK_SIZE
    if not min_size <= chunk_size <= max_size:
        raise ValidationError(
            f"Chunk size must be between {min_size} and {max_size} bytes",
            details={
                "chunk_size": chunk_size,
                "min_chunk_size": min_size,
                "max_chunk_size": max_size,
            },
        )


def compute_total_chunks(total_file_size: int, chunk_size: int) -> int:
    """Number of chunks needed: ceil(total_file_size / chunk_size)."""
    return (total_file_size + chunk_size - 1) // chunk_size


def validate_checksum(checksum: str | None, algorithm: str) -> str | None:
    """
    Validate a checksum algorithm and, if given, a hex digest for it.

    Returns:
        The checksum normalized to lowercase, or None when not supplied

    Raises:
        ValidationError: Unsupported algorithm or malformed digest
    """
    expected_length = CHECKSUM_ALGORITHMS.get(algorithm)
    if expected_length is None:
        raise ValidationError(
            f"Unsupported checksum algorithm '{algorithm}'",
            details={
                "checksum_algorithm": algorithm,
                "allowed": sorted(CHECKSUM_ALGORITHMS),
            },
        )
    if not checksum:
        return None

    normalized = checksum.strip().lower()
    if len(normalized) != expected_length or not _HEX_RE.match(normalized):
        raise ValidationError(
            f"Checksum is not a valid {algorithm} hex digest",
            details={"checksum": checksum, "checksum_algorithm": algorithm},
        )
    return normalized


# =============================================================================
# Hashing Helpers
# =============================================================================


def new_hasher(algorithm: str):
    """Return a fresh hashlib object for one of CHECKSUM_ALGORITHMS."""
    if algorithm not in CHECKSUM_ALGORITHMS:
        raise ValidationError(
            f"Unsupported checksum algorithm '{algorithm}'",
            details={"checksum_algorithm": algorithm},
        )
    return hashlib.new(algorithm)


def compute_checksum(data: bytes, algorithm: str) -> str:
    """Hex digest of data using the given algorithm."""
    hasher = new_hasher(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def checksums_match(expected: str | None, actual: str) -> bool:
    """Case-insensitive digest comparison; no expectation always matches."""
    if not expected:
        return True
    return expected.strip().lower() == actual.lower()


# =============================================================================
# File Names
# =============================================================================


def safe_file_name(file_name: str) -> str:
    """
    Reduce a client-supplied file name to a safe storage key component.

    Strips directory components and characters that are unsafe in keys.
    Falls back to "upload" when nothing usable remains.
    """
    base_name = os.path.basename(file_name.replace("\\", "/"))
    try:
        return get_valid_filename(base_name)
    except SuspiciousFileOperation:
        return "upload"
