"""
Session lifecycle operations: init, status, resume, cancel.
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from core.exceptions import ConflictError, ValidationError
from uploads.exceptions import BlobStoreError
from uploads.models import UploadChunk, UploadSession
from uploads.services.chunked_upload.base import (
    CancelResult,
    ChunkedUploadServiceBase,
    InitResult,
    SessionStatus,
    delete_session_chunks,
    progress_percent,
)
from uploads.validators import (
    DEFAULT_CHECKSUM_ALGORITHM,
    compute_total_chunks,
    validate_checksum,
    validate_chunk_size,
    validate_media_type,
    validate_total_file_size,
)


class SessionManager(ChunkedUploadServiceBase):
    """
    Creates upload sessions and reports or cancels them.

    Every lookup is scoped to the calling owner; a session owned by someone
    else is reported exactly like an unknown token.
    """

    def init(
        self,
        owner,
        file_name: str,
        mime_type: str,
        total_file_size: int,
        chunk_size: int,
        media_type: str,
        checksum: str | None = None,
        checksum_algorithm: str = DEFAULT_CHECKSUM_ALGORITHM,
        total_chunks: int | None = None,
    ) -> InitResult:
        """
        Open a new upload session in INITIATED status.

        Args:
            owner: User opening the session
            file_name: Original filename
            mime_type: MIME type of the file
            total_file_size: File size in bytes
            chunk_size: Size of every chunk except possibly the last
            media_type: Category (image, video, document, audio)
            checksum: Optional expected hex digest of the whole file
            checksum_algorithm: md5 (default) or sha256
            total_chunks: Optional client-computed chunk count; must match

        Returns:
            InitResult with the token and chunk geometry

        Raises:
            ValidationError: Any parameter out of range or not allowed
        """
        if not file_name or len(file_name) > 255:
            raise ValidationError(
                "File name must be between 1 and 255 characters",
                details={"file_name": file_name},
            )
        validate_total_file_size(total_file_size)
        validate_media_type(media_type, mime_type)
        validate_chunk_size(chunk_size)
        checksum = validate_checksum(checksum, checksum_algorithm)

        computed_chunks = compute_total_chunks(total_file_size, chunk_size)
        if total_chunks is not None and total_chunks != computed_chunks:
            raise ValidationError(
                f"Declared total_chunks {total_chunks} does not match "
                f"file size and chunk size ({computed_chunks})",
                details={
                    "total_chunks": total_chunks,
                    "expected_total_chunks": computed_chunks,
                },
            )

        expires_at = timezone.now() + timedelta(
            hours=settings.CHUNKED_UPLOAD_SESSION_TTL_HOURS
        )
        session = UploadSession.objects.create_session(
            owner=owner,
            file_name=file_name,
            mime_type=mime_type,
            media_type=media_type,
            total_file_size=total_file_size,
            chunk_size=chunk_size,
            total_chunks=computed_chunks,
            checksum=checksum,
            checksum_algorithm=checksum_algorithm,
            expires_at=expires_at,
        )

        self.get_logger().info(
            "Upload session created",
            extra={
                "event_type": "upload.session_created",
                "session_id": str(session.id),
                "owner_id": owner.pk,
                "total_file_size": total_file_size,
                "total_chunks": computed_chunks,
            },
        )

        return InitResult(
            token=session.token,
            total_chunks=session.total_chunks,
            chunk_size=session.chunk_size,
            expires_at=session.expires_at,
        )

    def status(self, token: str, owner) -> SessionStatus:
        """
        Report a session's progress.

        Raises:
            NotFoundError: Unknown or foreign token
        """
        session = self.get_session(token, owner)
        return self._build_status(session)

    def resume(self, token: str, owner) -> SessionStatus:
        """
        Report progress plus the chunk numbers still missing. Read-only.

        Raises:
            NotFoundError: Unknown or foreign token
        """
        session = self.get_session(token, owner)
        result = self._build_status(session)
        uploaded = set(result.chunks)
        result.missing_chunks = [
            number for number in range(session.total_chunks) if number not in uploaded
        ]
        return result

    def cancel(self, token: str, owner) -> CancelResult:
        """
        Cancel an open session and reclaim its chunks.

        The status moves to CANCELLED first, with a compare-and-swap, so an
        assembly that started concurrently can never lose its chunks. Chunk
        blobs that fail to delete stay recorded and are reclaimed later by
        reclaim_orphaned_chunks.

        Raises:
            NotFoundError: Unknown or foreign token
            ConflictError: Session is COMPLETING or terminal, or changed
                status concurrently
        """
        session = self.get_session(token, owner)
        if not session.is_open:
            raise ConflictError(
                f"Cannot cancel session in {session.status} status",
                details={"current_status": session.status, "action": "cancel"},
            )

        try:
            session.cancel()
            session.save(update_fields=["status", "updated_at"])
        except (ConcurrentTransition, TransitionNotAllowed):
            raise ConflictError(
                "Session status changed concurrently; cancel rejected",
                details={"action": "cancel"},
            ) from None

        logger = self.get_logger()
        try:
            cleaned = delete_session_chunks(session, self.blob_store)
        except BlobStoreError:
            logger.warning(
                "Failed to delete chunks of cancelled session",
                extra={
                    "event_type": "upload.cancel_cleanup_failed",
                    "session_id": str(session.id),
                },
                exc_info=True,
            )
            cleaned = 0

        logger.info(
            "Upload session cancelled",
            extra={
                "event_type": "upload.session_cancelled",
                "session_id": str(session.id),
                "cleaned_chunks": cleaned,
            },
        )
        return CancelResult(
            token=session.token,
            status=session.status,
            cleaned_chunks=cleaned,
        )

    def _build_status(self, session: UploadSession) -> SessionStatus:
        if session.status == UploadSession.Status.COMPLETED:
            # Chunk records are deleted once the file is assembled
            chunks = list(range(session.total_chunks))
        else:
            chunks = UploadChunk.objects.uploaded_numbers(session)
        return SessionStatus(
            token=session.token,
            status=session.status,
            file_name=session.file_name,
            mime_type=session.mime_type,
            media_type=session.media_type,
            total_file_size=session.total_file_size,
            chunk_size=session.chunk_size,
            uploaded_chunks=len(chunks),
            total_chunks=session.total_chunks,
            progress_percent=progress_percent(len(chunks), session.total_chunks),
            expires_at=session.expires_at,
            chunks=chunks,
            final_key=session.final_key,
            final_size=session.final_size,
            failure_code=session.failure_code,
            failure_reason=session.failure_reason,
        )

