"""
Serializers for the chunked upload API.

Request serializers only check shape (types, required fields); range and
allow-list checks live in the services so they apply to every caller.
Response serializers render the service result dataclasses.

Provides:
- ChunkedUploadInitSerializer: Open a session
- ChunkedUploadInitResultSerializer: Token and chunk geometry
- ChunkResultSerializer: Progress after one chunk (plus assembly result)
- SessionStatusSerializer: Status and resume responses
- CancelResultSerializer: Cancel response
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers

from uploads.models import UploadSession
from uploads.validators import CHECKSUM_ALGORITHMS, DEFAULT_CHECKSUM_ALGORITHM


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Video upload",
            value={
                "file_name": "company_presentation.mp4",
                "mime_type": "video/mp4",
                "media_type": "video",
                "total_file_size": 12582912,
                "chunk_size": 5242880,
                "checksum": "9e107d9d372bb6826bd81d3542a419d6",
                "checksum_algorithm": "md5",
            },
            request_only=True,
        ),
    ]
)
class ChunkedUploadInitSerializer(serializers.Serializer):
    """Serializer for initializing a chunked upload session."""

    file_name = serializers.CharField(max_length=255, help_text="Original filename")
    mime_type = serializers.CharField(max_length=100, help_text="MIME type of the file")
    media_type = serializers.ChoiceField(
        choices=UploadSession.MediaType.choices,
        help_text="Media category the MIME type must belong to",
    )
    total_file_size = serializers.IntegerField(
        min_value=1, help_text="Total file size in bytes"
    )
    chunk_size = serializers.IntegerField(
        min_value=1, help_text="Size of every chunk except possibly the last"
    )
    total_chunks = serializers.IntegerField(
        min_value=1,
        required=False,
        help_text="Optional client-computed chunk count; must match the server's",
    )
    checksum = serializers.CharField(
        max_length=128,
        required=False,
        allow_null=True,
        help_text="Optional hex digest of the whole file",
    )
    checksum_algorithm = serializers.ChoiceField(
        choices=sorted(CHECKSUM_ALGORITHMS),
        default=DEFAULT_CHECKSUM_ALGORITHM,
        help_text="Algorithm for chunk and file checksums",
    )

    def validate_mime_type(self, value: str) -> str:
        """Normalize MIME type."""
        if "/" not in value:
            raise serializers.ValidationError("Invalid MIME type format.")
        return value.lower()


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Session created",
            value={
                "token": "kq3Vn0Jb6c8Y0eR4m1wZp2Xy9sTuVwXyZaBcDeFgHiJ",
                "total_chunks": 3,
                "chunk_size": 5242880,
                "expires_at": "2024-01-16T10:30:00Z",
            },
            response_only=True,
        ),
    ]
)
class ChunkedUploadInitResultSerializer(serializers.Serializer):
    token = serializers.CharField(help_text="Session token used in every later call")
    total_chunks = serializers.IntegerField()
    chunk_size = serializers.IntegerField()
    expires_at = serializers.DateTimeField()


class AssemblyResultSerializer(serializers.Serializer):
    final_key = serializers.CharField(help_text="Storage key of the assembled file")
    url = serializers.CharField(help_text="URL to fetch the assembled file")
    size = serializers.IntegerField(help_text="Size of the assembled file in bytes")


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Chunk accepted",
            value={
                "chunk_number": 0,
                "uploaded_chunks": 1,
                "total_chunks": 3,
                "status": "uploading",
                "assembly": None,
            },
            response_only=True,
        ),
        OpenApiExample(
            "Last chunk accepted, file assembled",
            value={
                "chunk_number": 1,
                "uploaded_chunks": 3,
                "total_chunks": 3,
                "status": "completed",
                "assembly": {
                    "final_key": "uploads/42/5c1f..._company_presentation.mp4",
                    "url": "/media/uploads/42/5c1f..._company_presentation.mp4",
                    "size": 12582912,
                },
            },
            response_only=True,
        ),
    ]
)
class ChunkResultSerializer(serializers.Serializer):
    """
    Serializer for chunk upload result.

    ``assembly`` is only present when this request completed the upload and
    assembly ran inline; with async assembly ``status`` is "completing".
    """

    chunk_number = serializers.IntegerField()
    uploaded_chunks = serializers.IntegerField()
    total_chunks = serializers.IntegerField()
    status = serializers.CharField()
    assembly = AssemblyResultSerializer(allow_null=True)


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Session in progress",
            value={
                "token": "kq3Vn0Jb6c8Y0eR4m1wZp2Xy9sTuVwXyZaBcDeFgHiJ",
                "status": "uploading",
                "file_name": "company_presentation.mp4",
                "mime_type": "video/mp4",
                "media_type": "video",
                "total_file_size": 12582912,
                "chunk_size": 5242880,
                "uploaded_chunks": 2,
                "total_chunks": 3,
                "progress_percent": 66,
                "expires_at": "2024-01-16T10:30:00Z",
                "chunks": [0, 2],
                "missing_chunks": [1],
                "final_key": None,
                "final_size": None,
                "failure_code": "",
                "failure_reason": "",
            },
            response_only=True,
        ),
    ]
)
class SessionStatusSerializer(serializers.Serializer):
    """
    Serializer for session status and resume responses.

    missing_chunks is null for plain status requests.
    """

    token = serializers.CharField()
    status = serializers.CharField()
    file_name = serializers.CharField()
    mime_type = serializers.CharField()
    media_type = serializers.CharField()
    total_file_size = serializers.IntegerField()
    chunk_size = serializers.IntegerField()
    uploaded_chunks = serializers.IntegerField()
    total_chunks = serializers.IntegerField()
    progress_percent = serializers.IntegerField()
    expires_at = serializers.DateTimeField()
    chunks = serializers.ListField(child=serializers.IntegerField())
    missing_chunks = serializers.ListField(
        child=serializers.IntegerField(), allow_null=True
    )
    final_key = serializers.CharField(allow_null=True)
    final_size = serializers.IntegerField(allow_null=True)
    failure_code = serializers.CharField(allow_blank=True)
    failure_reason = serializers.CharField(allow_blank=True)


class CancelResultSerializer(serializers.Serializer):
    token = serializers.CharField()
    status = serializers.CharField()
    cleaned_chunks = serializers.IntegerField()
