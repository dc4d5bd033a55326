"""
Assembler: rebuilds the final file from a session's chunks.

Only ever invoked for a session that a caller moved to COMPLETING, either
inline by the ChunkReceiver or by the assemble_upload_session task.

Failure handling:
    Storage errors, size mismatches and checksum mismatches mark the session
    FAILED (recording failure_code/failure_reason), remove any partially
    written destination blob and keep every chunk. The error is then raised
    to the caller.
"""

from __future__ import annotations

from typing import NoReturn

from django_fsm import ConcurrentTransition, TransitionNotAllowed

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError
from uploads.exceptions import (
    BlobStoreError,
    ChecksumMismatchError,
    SizeMismatchError,
    StorageError,
)
from uploads.models import UploadChunk, UploadSession
from uploads.services.chunked_upload.base import (
    AssemblyResult,
    ChunkedUploadServiceBase,
    delete_session_chunks,
    final_storage_key,
)
from uploads.validators import checksums_match, new_hasher


class Assembler(ChunkedUploadServiceBase):
    """
    Streams chunks, in order, into one destination blob and finalizes the
    session.

    Usage:
        result = Assembler().assemble(session.id)
        result.final_key, result.url, result.size
    """

    def assemble(self, session_id) -> AssemblyResult:
        """
        Assemble a COMPLETING session.

        Args:
            session_id: Primary key of the session (not the client token)

        Returns:
            AssemblyResult with final_key, url and size

        Raises:
            NotFoundError: No such session
            ConflictError: Session not COMPLETING (stale trigger, nothing
                changes), or its chunk set has gaps (session FAILED)
            StorageError: Blob store failure (session FAILED)
            SizeMismatchError: Byte count differs from total_file_size
                (session FAILED)
            ChecksumMismatchError: Whole-file checksum differs (session FAILED)
        """
        try:
            session = UploadSession.objects.get(pk=session_id)
        except UploadSession.DoesNotExist:
            raise NotFoundError(
                "Upload session not found",
                details={"session_id": str(session_id)},
            ) from None

        if session.status != UploadSession.Status.COMPLETING:
            raise ConflictError(
                f"Cannot assemble session in {session.status} status",
                details={"current_status": session.status, "action": "assemble"},
            )

        logger = self.get_logger()
        chunks = list(UploadChunk.objects.for_session(session))
        numbers = [chunk.chunk_number for chunk in chunks]
        if numbers != list(range(session.total_chunks)):
            missing = sorted(set(range(session.total_chunks)) - set(numbers))
            self._fail(
                session,
                ConflictError(
                    "Chunk set is incomplete",
                    details={"missing_chunks": missing},
                ),
            )

        final_key = final_storage_key(session)
        hasher = new_hasher(session.checksum_algorithm)
        written = 0

        def stream():
            nonlocal written
            for chunk in chunks:
                for block in self.blob_store.read_stream(chunk.storage_ref):
                    written += len(block)
                    hasher.update(block)
                    yield block

        logger.info(
            "Assembly started",
            extra={
                "event_type": "upload.assembly_started",
                "session_id": str(session.id),
                "total_chunks": session.total_chunks,
            },
        )

        try:
            self.blob_store.write_final(final_key, stream())
        except BlobStoreError as e:
            self._discard(session, final_key)
            self._fail(session, StorageError(f"Failed to assemble file: {e}"), cause=e)

        if written != session.total_file_size:
            self._discard(session, final_key)
            self._fail(
                session,
                SizeMismatchError(
                    f"Assembled {written} bytes, expected {session.total_file_size}",
                    details={
                        "expected_size": session.total_file_size,
                        "actual_size": written,
                    },
                ),
            )

        observed = hasher.hexdigest()
        if not checksums_match(session.checksum, observed):
            self._discard(session, final_key)
            self._fail(
                session,
                ChecksumMismatchError(
                    "Assembled file checksum does not match",
                    details={
                        "expected": session.checksum,
                        "actual": observed,
                        "algorithm": session.checksum_algorithm,
                    },
                ),
            )

        try:
            url = self.blob_store.url(final_key)
        except BlobStoreError as e:
            self._discard(session, final_key)
            self._fail(session, StorageError(f"Failed to resolve file URL: {e}"), cause=e)

        try:
            session.complete(final_key, written)
            session.save()
        except ConcurrentTransition:
            # Stalled-assembly recovery failed the session while we worked
            self._discard(session, final_key)
            raise ConflictError(
                "Session status changed during assembly",
                details={"action": "assemble"},
            ) from None

        logger.info(
            "Assembly completed",
            extra={
                "event_type": "upload.assembly_completed",
                "session_id": str(session.id),
                "final_key": final_key,
                "size": written,
            },
        )

        try:
            delete_session_chunks(session, self.blob_store)
        except BlobStoreError:
            logger.warning(
                "Failed to delete chunks after assembly",
                extra={
                    "event_type": "upload.chunk_cleanup_failed",
                    "session_id": str(session.id),
                },
                exc_info=True,
            )

        return AssemblyResult(final_key=final_key, url=url, size=written)

    # =========================================================================
    # Failure Handling
    # =========================================================================

    def _fail(
        self,
        session: UploadSession,
        error: BaseApplicationError,
        cause: Exception | None = None,
    ) -> NoReturn:
        """Mark the session FAILED with the error's code, then raise it."""
        try:
            session.fail(error.error_code, error.message)
            session.save()
        except (ConcurrentTransition, TransitionNotAllowed):
            self.get_logger().warning(
                "Session left COMPLETING before it could be marked failed",
                extra={"session_id": str(session.id)},
            )
        else:
            self.get_logger().error(
                "Assembly failed",
                extra={
                    "event_type": "upload.assembly_failed",
                    "session_id": str(session.id),
                    "failure_code": error.error_code,
                    "failure_reason": error.message,
                },
            )
        raise error from cause

    def _discard(self, session: UploadSession, key: str) -> None:
        """Remove a partially written or rejected destination blob."""
        try:
            self.blob_store.delete(key)
        except BlobStoreError:
            self.get_logger().warning(
                "Failed to remove destination blob",
                extra={"session_id": str(session.id), "key": key},
                exc_info=True,
            )
