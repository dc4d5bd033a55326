"""
Result types and shared helpers for the chunked upload services.

The services return plain dataclasses; views serialize them with the
serializers in uploads.serializers.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.conf import settings

from core.exceptions import NotFoundError
from core.services import BaseService
from uploads.models import UploadChunk, UploadSession
from uploads.services.blob_store import get_blob_store
from uploads.validators import safe_file_name

if TYPE_CHECKING:
    from datetime import datetime

    from uploads.services.blob_store import BlobStore


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class InitResult:
    """
    Result of opening an upload session.

    Attributes:
        token: Opaque session handle for all further calls
        total_chunks: Number of chunks the client must send
        chunk_size: Size of every chunk except possibly the last
        expires_at: Deadline after which the session is reclaimed
    """

    token: str
    total_chunks: int
    chunk_size: int
    expires_at: datetime


@dataclass
class AssemblyResult:
    """
    Outcome of a successful assembly.

    Attributes:
        final_key: Blob store key of the assembled file
        url: URL to fetch the assembled file
        size: Size of the assembled file in bytes
    """

    final_key: str
    url: str
    size: int


@dataclass
class ChunkResult:
    """
    Result of accepting one chunk.

    ``assembly`` is only set when this request ran assembly inline.
    """

    chunk_number: int
    uploaded_chunks: int
    total_chunks: int
    status: str
    assembly: AssemblyResult | None = None


@dataclass
class SessionStatus:
    """
    Snapshot of a session's progress.

    Attributes:
        chunks: Uploaded chunk numbers, ascending
        missing_chunks: Chunk numbers still to send (only set by resume)
    """

    token: str
    status: str
    file_name: str
    mime_type: str
    media_type: str
    total_file_size: int
    chunk_size: int
    uploaded_chunks: int
    total_chunks: int
    progress_percent: int
    expires_at: datetime
    chunks: list[int] = field(default_factory=list)
    missing_chunks: list[int] | None = None
    final_key: str | None = None
    final_size: int | None = None
    failure_code: str = ""
    failure_reason: str = ""


@dataclass
class CancelResult:
    token: str
    status: str
    cleaned_chunks: int


# =============================================================================
# Helpers
# =============================================================================


def progress_percent(uploaded: int, total: int) -> int:
    """Whole percent complete, rounded down (2 of 3 -> 66)."""
    if total <= 0:
        return 0
    return (uploaded * 100) // total


def chunk_storage_key(session: UploadSession, chunk_number: int) -> str:
    """
    Blob store key for one delivery attempt of a chunk.

    Keys sort by chunk number within a session prefix. The random suffix
    gives every attempt its own blob, so a request that loses the race for
    a chunk slot can delete its blob without touching the winner's.
    """
    prefix = settings.CHUNKED_UPLOAD_CHUNK_PREFIX
    return f"{prefix}/{session.id}/{chunk_number:06d}.{uuid.uuid4().hex[:12]}.part"


def final_storage_key(session: UploadSession) -> str:
    """Blob store key for a session's assembled file."""
    prefix = settings.CHUNKED_UPLOAD_FINAL_PREFIX
    return f"{prefix}/{session.owner_id}/{uuid.uuid4()}_{safe_file_name(session.file_name)}"


def delete_session_chunks(session: UploadSession, blob_store: BlobStore) -> int:
    """
    Delete every chunk blob of a session, then its chunk records.

    Blobs go first: if one fails to delete, BlobStoreError propagates and
    all records are kept, so a later reclaim can retry.

    Returns:
        Number of chunk records deleted
    """
    chunks = list(
        UploadChunk.objects.for_session(session).values_list("id", "storage_ref")
    )
    for _, ref in chunks:
        blob_store.delete(ref)
    # Only the records whose blobs are gone; late arrivals stay for reclaim
    return UploadChunk.objects.delete_for_session(
        session, chunk_ids=[chunk_id for chunk_id, _ in chunks]
    )


# =============================================================================
# Base Service
# =============================================================================


class ChunkedUploadServiceBase(BaseService):
    """
    Base for services that operate on upload sessions through a blob store.

    The blob store is injected; when omitted the configured backend is used.
    """

    def __init__(self, blob_store: BlobStore | None = None) -> None:
        self.blob_store = blob_store or get_blob_store()

    @staticmethod
    def get_session(token: str, owner) -> UploadSession:
        """
        Fetch a session owned by ``owner``.

        Raises:
            NotFoundError: Unknown token, or a session owned by someone else
        """
        try:
            return UploadSession.objects.get_for_owner(token, owner)
        except UploadSession.DoesNotExist:
            raise NotFoundError(
                "Upload session not found",
                details={"token": token},
            ) from None
