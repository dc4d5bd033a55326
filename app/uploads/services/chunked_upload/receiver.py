"""
Chunk receiver: validates and durably records one inbound chunk.

Coordination between concurrent requests relies only on the database:
- the (session, chunk_number) unique constraint picks one winner per slot
- ConcurrentTransitionMixin turns UPLOADING -> COMPLETING into a
  compare-and-swap, so exactly one request runs assembly

No transaction wraps accept_chunk as a whole: each insert commits on its
own so that the request landing the last chunk sees every other chunk
when it counts.
"""

from __future__ import annotations

from django.conf import settings
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from core.exceptions import ConflictError, ValidationError
from uploads.exceptions import (
    BlobStoreError,
    ChecksumMismatchError,
    ExpiredError,
    SizeMismatchError,
    StorageError,
)
from uploads.models import UploadChunk, UploadSession
from uploads.services.chunked_upload.assembler import Assembler
from uploads.services.chunked_upload.base import (
    ChunkedUploadServiceBase,
    ChunkResult,
    chunk_storage_key,
)
from uploads.validators import checksums_match, compute_checksum


class ChunkReceiver(ChunkedUploadServiceBase):
    """
    Accepts chunks in any order and triggers assembly exactly once.

    Usage:
        receiver = ChunkReceiver()
        result = receiver.accept_chunk(token, request.user, 2, payload)
        if result.assembly:
            print(result.assembly.final_key)
    """

    def __init__(self, blob_store=None, assembler: Assembler | None = None) -> None:
        super().__init__(blob_store)
        self.assembler = assembler or Assembler(self.blob_store)

    def accept_chunk(
        self,
        token: str,
        owner,
        chunk_number: int,
        payload: bytes,
        declared_size: int | None = None,
        checksum: str | None = None,
        total_chunks: int | None = None,
        total_file_size: int | None = None,
    ) -> ChunkResult:
        """
        Validate, store and record one chunk.

        Args:
            token: Session token
            owner: Requesting user
            chunk_number: 0-based chunk position
            payload: Chunk bytes
            declared_size: Client-declared payload length (defaults to len(payload))
            checksum: Optional hex digest of the payload
            total_chunks: Optional echo of the session's chunk count
            total_file_size: Optional echo of the session's file size

        Returns:
            ChunkResult with progress counters. When this request completed
            the upload, ``assembly`` holds the result (synchronous mode) or
            ``status`` is COMPLETING (asynchronous mode).

        Raises:
            NotFoundError: Unknown or foreign token
            ExpiredError: Session expired
            ConflictError: Session not accepting chunks, or duplicate chunk
            ValidationError: Chunk number out of range, or echoed totals differ
            SizeMismatchError: Payload length wrong for the position
            ChecksumMismatchError: Payload hash differs from ``checksum``
            StorageError: Blob store write failed (nothing recorded)
        """
        session = self.get_session(token, owner)
        self._check_accepting(session)
        self._check_declared_totals(session, total_chunks, total_file_size)

        if not 0 <= chunk_number < session.total_chunks:
            raise ValidationError(
                f"Chunk number must be between 0 and {session.total_chunks - 1}",
                details={
                    "chunk_number": chunk_number,
                    "total_chunks": session.total_chunks,
                },
            )

        expected_size = session.expected_chunk_size(chunk_number)
        if declared_size is None:
            declared_size = len(payload)
        if declared_size != expected_size or len(payload) != expected_size:
            raise SizeMismatchError(
                f"Chunk {chunk_number} must be {expected_size} bytes",
                details={
                    "chunk_number": chunk_number,
                    "expected_size": expected_size,
                    "declared_size": declared_size,
                    "actual_size": len(payload),
                },
            )

        if UploadChunk.objects.filter(session=session, chunk_number=chunk_number).exists():
            raise ConflictError(
                f"Chunk {chunk_number} already uploaded",
                details={"chunk_number": chunk_number},
            )

        observed = compute_checksum(payload, session.checksum_algorithm)
        if not checksums_match(checksum, observed):
            raise ChecksumMismatchError(
                f"Checksum mismatch for chunk {chunk_number}",
                details={
                    "chunk_number": chunk_number,
                    "expected": checksum,
                    "actual": observed,
                    "algorithm": session.checksum_algorithm,
                },
            )

        key = chunk_storage_key(session, chunk_number)
        try:
            self.blob_store.write(key, payload)
        except BlobStoreError as e:
            raise StorageError(
                f"Failed to store chunk {chunk_number}",
                details={"chunk_number": chunk_number},
            ) from e

        _, created = UploadChunk.objects.create_if_absent(
            session=session,
            chunk_number=chunk_number,
            size=len(payload),
            storage_ref=key,
            checksum=observed,
        )
        if not created:
            self._discard_blob(session, key)
            raise ConflictError(
                f"Chunk {chunk_number} already uploaded",
                details={"chunk_number": chunk_number},
            )

        if session.status == UploadSession.Status.INITIATED:
            self._start_upload(session)

        uploaded = UploadChunk.objects.count_for_session(session)
        self.get_logger().info(
            "Chunk received",
            extra={
                "event_type": "upload.chunk_received",
                "session_id": str(session.id),
                "chunk_number": chunk_number,
                "uploaded_chunks": uploaded,
                "total_chunks": session.total_chunks,
            },
        )

        result = ChunkResult(
            chunk_number=chunk_number,
            uploaded_chunks=uploaded,
            total_chunks=session.total_chunks,
            status=UploadSession.Status.UPLOADING,
        )
        if uploaded == session.total_chunks:
            self._complete(session, result)
        return result

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def _check_accepting(session: UploadSession) -> None:
        if session.is_expired:
            raise ExpiredError(
                "Upload session has expired",
                details={"expires_at": session.expires_at.isoformat()},
            )
        if not session.is_open:
            raise ConflictError(
                f"Session is {session.status} and no longer accepts chunks",
                details={"current_status": session.status},
            )

    @staticmethod
    def _check_declared_totals(
        session: UploadSession,
        total_chunks: int | None,
        total_file_size: int | None,
    ) -> None:
        if total_chunks is not None and total_chunks != session.total_chunks:
            raise ValidationError(
                "total_chunks does not match the session",
                details={
                    "total_chunks": total_chunks,
                    "expected_total_chunks": session.total_chunks,
                },
            )
        if total_file_size is not None and total_file_size != session.total_file_size:
            raise ValidationError(
                "total_file_size does not match the session",
                details={
                    "total_file_size": total_file_size,
                    "expected_total_file_size": session.total_file_size,
                },
            )

    # =========================================================================
    # State Transitions
    # =========================================================================

    def _start_upload(self, session: UploadSession) -> None:
        """INITIATED -> UPLOADING; losing to a concurrent chunk is harmless."""
        try:
            session.start_upload()
            session.save(update_fields=["status", "updated_at"])
        except (ConcurrentTransition, TransitionNotAllowed):
            self.get_logger().debug(
                "Session already left INITIATED",
                extra={"session_id": str(session.id)},
            )

    def _complete(self, session: UploadSession, result: ChunkResult) -> None:
        """
        Claim assembly with the UPLOADING -> COMPLETING compare-and-swap.

        The session is re-fetched so the swap compares against the current
        status. Only the winner assembles; a loser leaves ``result`` as is.
        """
        current = UploadSession.objects.get(pk=session.pk)
        try:
            current.begin_assembly()
            current.save(update_fields=["status", "updated_at"])
        except (ConcurrentTransition, TransitionNotAllowed):
            self.get_logger().info(
                "Assembly already claimed by another request",
                extra={
                    "event_type": "upload.assembly_claim_lost",
                    "session_id": str(session.id),
                },
            )
            result.status = (
                UploadSession.objects.filter(pk=session.pk)
                .values_list("status", flat=True)
                .first()
            ) or result.status
            return

        result.status = UploadSession.Status.COMPLETING
        if settings.CHUNKED_UPLOAD_ASYNC_ASSEMBLY:
            from uploads.tasks import assemble_upload_session

            assemble_upload_session.delay(str(current.id))
            return

        result.assembly = self.assembler.assemble(current.id)
        result.status = UploadSession.Status.COMPLETED

    def _discard_blob(self, session: UploadSession, key: str) -> None:
        try:
            self.blob_store.delete(key)
        except BlobStoreError:
            self.get_logger().warning(
                "Failed to delete blob of rejected duplicate chunk",
                extra={"session_id": str(session.id), "key": key},
                exc_info=True,
            )
