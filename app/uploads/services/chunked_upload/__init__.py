"""
Chunked upload services.

Exports:
    ChunkedUploadService: Facade used by views and tasks
    SessionManager: init, status, resume, cancel
    ChunkReceiver: accept_chunk
    Assembler: assemble
    Result types: InitResult, ChunkResult, AssemblyResult, SessionStatus,
        CancelResult
"""

from uploads.services.chunked_upload.assembler import Assembler
from uploads.services.chunked_upload.base import (
    AssemblyResult,
    CancelResult,
    ChunkResult,
    InitResult,
    SessionStatus,
    delete_session_chunks,
)
from uploads.services.chunked_upload.receiver import ChunkReceiver
from uploads.services.chunked_upload.service import ChunkedUploadService
from uploads.services.chunked_upload.session_manager import SessionManager

__all__ = [
    "Assembler",
    "AssemblyResult",
    "CancelResult",
    "ChunkReceiver",
    "ChunkResult",
    "ChunkedUploadService",
    "InitResult",
    "SessionManager",
    "SessionStatus",
    "delete_session_chunks",
]
