"""
Helpers shared by upload tests.
"""

from __future__ import annotations

from uploads.models import UploadChunk, UploadSession
from uploads.validators import compute_checksum


def chunk_of(data: bytes, chunk_number: int, chunk_size: int = 100) -> bytes:
    """Slice one chunk out of a file's bytes."""
    return data[chunk_number * chunk_size : (chunk_number + 1) * chunk_size]


def store_chunks(session: UploadSession, data: bytes, blob_store, numbers=None) -> list[UploadChunk]:
    """
    Write chunk blobs and records for a session, bypassing the receiver.

    Args:
        numbers: Chunk numbers to store (default: all of them)
    """
    if numbers is None:
        numbers = range(session.total_chunks)
    chunks = []
    for number in numbers:
        payload = chunk_of(data, number, session.chunk_size)
        key = f"chunks/{session.id}/{number:06d}.test.part"
        blob_store.write(key, payload)
        chunks.append(
            UploadChunk.objects.create(
                session=session,
                chunk_number=number,
                size=len(payload),
                storage_ref=key,
                checksum=compute_checksum(payload, session.checksum_algorithm),
            )
        )
    return chunks
