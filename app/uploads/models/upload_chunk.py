"""
UploadChunk model: one durably received piece of an upload session.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from uploads.managers import UploadChunkManager


class UploadChunk(UUIDPrimaryKeyMixin, models.Model):
    """
    Record of a chunk payload stored in the blob store.

    At most one record exists per (session, chunk_number); the database
    constraint is what arbitrates concurrent deliveries of the same chunk.

    Attributes:
        session: Owning upload session
        chunk_number: 0-based position in the file
        size: Payload length in bytes
        storage_ref: Blob store key holding the payload
        checksum: Hex digest observed on receipt
        received_at: When the chunk was recorded
    """

    session = models.ForeignKey(
        "uploads.UploadSession",
        on_delete=models.CASCADE,
        related_name="chunks",
        help_text="Upload session this chunk belongs to",
    )
    chunk_number = models.PositiveIntegerField(
        help_text="0-based chunk position",
    )
    size = models.BigIntegerField(
        help_text="Chunk payload size in bytes",
    )
    storage_ref = models.CharField(
        max_length=500,
        help_text="Blob store key of the chunk payload",
    )
    checksum = models.CharField(
        max_length=128,
        help_text="Hex digest of the payload as received",
    )
    received_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the chunk was received",
    )

    objects = UploadChunkManager()

    class Meta:
        ordering = ["session", "chunk_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["session", "chunk_number"],
                name="uniq_upload_chunk_session_number",
            ),
        ]

    def __str__(self) -> str:
        return f"UploadChunk({self.session_id}, #{self.chunk_number})"
