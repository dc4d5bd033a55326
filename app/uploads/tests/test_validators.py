"""
Tests for upload parameter validators and checksum helpers.
"""

from __future__ import annotations

import hashlib

import pytest

from core.exceptions import ValidationError
from uploads.validators import (
    checksums_match,
    compute_checksum,
    compute_total_chunks,
    safe_file_name,
    validate_checksum,
    validate_chunk_size,
    validate_media_type,
    validate_total_file_size,
)


class TestValidateMediaType:
    def test_allowed_mime_type(self):
        validate_media_type("video", "video/mp4")
        validate_media_type("document", "application/pdf")

    def test_unknown_media_type(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_media_type("hologram", "video/mp4")

        assert exc_info.value.details["media_type"] == "hologram"

    def test_mime_type_outside_category(self):
        with pytest.raises(ValidationError):
            validate_media_type("image", "video/mp4")

    def test_executable_rejected(self):
        with pytest.raises(ValidationError):
            validate_media_type("document", "application/x-msdownload")


class TestValidateSizes:
    def test_file_size_within_limit(self, settings):
        settings.CHUNKED_UPLOAD_MAX_FILE_SIZE = 1000

        validate_total_file_size(1)
        validate_total_file_size(1000)

    @pytest.mark.parametrize("size", [0, -5, 1001])
    def test_file_size_out_of_range(self, settings, size):
        settings.CHUNKED_UPLOAD_MAX_FILE_SIZE = 1000

        with pytest.raises(ValidationError):
            validate_total_file_size(size)

    def test_chunk_size_bounds(self, settings):
        settings.CHUNKED_UPLOAD_MIN_CHUNK_SIZE = 1024
        settings.CHUNKED_UPLOAD_MAX_CHUNK_SIZE = 4096

        validate_chunk_size(1024)
        validate_chunk_size(4096)
        with pytest.raises(ValidationError):
            validate_chunk_size(1023)
        with pytest.raises(ValidationError) as exc_info:
            validate_chunk_size(4097)

        assert exc_info.value.details["max_chunk_size"] == 4096

    @pytest.mark.parametrize(
        "file_size,chunk_size,expected",
        [(300, 100, 3), (301, 100, 4), (1, 100, 1), (100, 100, 1)],
    )
    def test_compute_total_chunks(self, file_size, chunk_size, expected):
        assert compute_total_chunks(file_size, chunk_size) == expected


class TestChecksums:
    def test_validate_checksum_normalizes_case(self):
        digest = hashlib.md5(b"x").hexdigest().upper()

        assert validate_checksum(digest, "md5") == digest.lower()

    def test_validate_checksum_absent(self):
        assert validate_checksum(None, "sha256") is None
        assert validate_checksum("", "md5") is None

    def test_validate_checksum_wrong_length(self):
        with pytest.raises(ValidationError):
            validate_checksum(hashlib.md5(b"x").hexdigest(), "sha256")

    def test_validate_checksum_not_hex(self):
        with pytest.raises(ValidationError):
            validate_checksum("z" * 32, "md5")

    def test_unsupported_algorithm(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_checksum(None, "crc32")

        assert exc_info.value.details["checksum_algorithm"] == "crc32"

    def test_compute_checksum(self):
        assert compute_checksum(b"hello", "md5") == hashlib.md5(b"hello").hexdigest()
        assert (
            compute_checksum(b"hello", "sha256")
            == hashlib.sha256(b"hello").hexdigest()
        )

    def test_checksums_match(self):
        digest = hashlib.md5(b"hello").hexdigest()

        assert checksums_match(None, digest)
        assert checksums_match(digest.upper(), digest)
        assert not checksums_match(hashlib.md5(b"other").hexdigest(), digest)


class TestSafeFileName:
    @pytest.mark.parametrize(
        "file_name,expected",
        [
            ("video.mp4", "video.mp4"),
            ("../../etc/passwd", "passwd"),
            ("C:\\Users\\me\\report final.pdf", "report_final.pdf"),
            ("..", "upload"),
        ],
    )
    def test_safe_file_name(self, file_name, expected):
        assert safe_file_name(file_name) == expected
