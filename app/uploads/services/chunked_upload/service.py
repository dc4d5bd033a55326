"""
ChunkedUploadService: the operation surface consumed by the HTTP layer.

Wires SessionManager, ChunkReceiver and Assembler to one blob store and
exposes the five client operations (init, chunk, status, resume, cancel)
plus assemble for the background task.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService
from uploads.services.blob_store import get_blob_store
from uploads.services.chunked_upload.assembler import Assembler
from uploads.services.chunked_upload.receiver import ChunkReceiver
from uploads.services.chunked_upload.session_manager import SessionManager

if TYPE_CHECKING:
    from uploads.services.blob_store import BlobStore
    from uploads.services.chunked_upload.base import (
        AssemblyResult,
        CancelResult,
        ChunkResult,
        InitResult,
        SessionStatus,
    )


class ChunkedUploadService(BaseService):
    """
    Facade over the chunked upload components.

    Usage:
        service = ChunkedUploadService()
        info = service.init(request.user, "video.mp4", "video/mp4", 300, 100, "video")
        service.chunk(info.token, request.user, 0, payload)
        service.resume(info.token, request.user).missing_chunks
    """

    def __init__(self, blob_store: BlobStore | None = None) -> None:
        self.blob_store = blob_store or get_blob_store()
        self.sessions = SessionManager(self.blob_store)
        self.assembler = Assembler(self.blob_store)
        self.receiver = ChunkReceiver(self.blob_store, assembler=self.assembler)

    def init(
        self,
        owner,
        file_name: str,
        mime_type: str,
        total_file_size: int,
        chunk_size: int,
        media_type: str,
        **options,
    ) -> InitResult:
        """Open a session; ``options`` are checksum, checksum_algorithm, total_chunks."""
        return self.sessions.init(
            owner,
            file_name=file_name,
            mime_type=mime_type,
            total_file_size=total_file_size,
            chunk_size=chunk_size,
            media_type=media_type,
            **options,
        )

    def chunk(
        self,
        token: str,
        owner,
        chunk_number: int,
        payload: bytes,
        **options,
    ) -> ChunkResult:
        """
        Accept one chunk.

        ``options`` are declared_size, checksum, total_chunks and
        total_file_size.
        """
        return self.receiver.accept_chunk(token, owner, chunk_number, payload, **options)

    def status(self, token: str, owner) -> SessionStatus:
        return self.sessions.status(token, owner)

    def resume(self, token: str, owner) -> SessionStatus:
        return self.sessions.resume(token, owner)

    def cancel(self, token: str, owner) -> CancelResult:
        return self.sessions.cancel(token, owner)

    def assemble(self, session_id) -> AssemblyResult:
        return self.assembler.assemble(session_id)
