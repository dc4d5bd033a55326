"""
UploadSession model for tracking chunked/resumable uploads.

Provides:
- Declared file metadata and chunk geometry
- Status lifecycle as a django-fsm state machine
- Compare-and-swap persistence of status via ConcurrentTransitionMixin
- Session expiration support

State Flow:
    INITIATED -> UPLOADING -> COMPLETING -> COMPLETED
    INITIATED/UPLOADING -> CANCELLED (explicit cancel)
    INITIATED/UPLOADING -> EXPIRED (sweeper)
    COMPLETING -> FAILED (assembly error or stalled assembly)

Terminal: COMPLETED, CANCELLED, FAILED, EXPIRED.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from uploads.managers import UploadSessionManager


class UploadSession(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    One in-progress or finished chunked upload.

    The opaque ``token`` is the handle exposed to clients; ``id`` stays
    internal and is used for storage keys.

    Attributes:
        owner: User who initiated the upload
        token: Unguessable, unique session handle
        file_name: Original filename of the file being uploaded
        mime_type: Declared MIME type
        media_type: Category (image, video, document, audio)
        total_file_size: Expected total size in bytes
        chunk_size: Size of every chunk except possibly the last
        total_chunks: ceil(total_file_size / chunk_size)
        checksum: Optional expected hash of the whole file
        checksum_algorithm: Hash used for chunk and file checksums
        status: Current FSM state
        expires_at: When an unfinished session becomes reclaimable

    Result fields (set when the session finishes):
        final_key: Blob store key of the assembled artifact
        final_size: Size of the assembled artifact in bytes
        completed_at: When assembly succeeded
        failure_code: Error code when status is FAILED
        failure_reason: Human-readable failure description

    Concurrency:
        Every ``save()`` after a transition becomes
        ``UPDATE ... WHERE id = ? AND status = <status as loaded>`` and
        raises ``django_fsm.ConcurrentTransition`` if another writer moved
        the status first. Always re-fetch with ``objects.get()`` rather than
        ``refresh_from_db()``: the mixin only records the loaded status on
        fetch and save.

    Usage:
        session = UploadSession.objects.get(pk=session_id)
        session.begin_assembly()  # UPLOADING -> COMPLETING
        session.save()            # raises ConcurrentTransition if raced
    """

    # =========================================================================
    # Enums
    # =========================================================================

    class Status(models.TextChoices):
        """Upload session status."""

        INITIATED = "initiated", "Initiated"
        UPLOADING = "uploading", "Uploading"
        COMPLETING = "completing", "Completing"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        CANCELLED = "cancelled", "Cancelled"
        EXPIRED = "expired", "Expired"

    class MediaType(models.TextChoices):
        """Media categories accepted for upload."""

        IMAGE = "image", "Image"
        VIDEO = "video", "Video"
        DOCUMENT = "document", "Document"
        AUDIO = "audio", "Audio"

    OPEN_STATUSES = [Status.INITIATED, Status.UPLOADING]
    TERMINAL_STATUSES = [
        Status.COMPLETED,
        Status.CANCELLED,
        Status.FAILED,
        Status.EXPIRED,
    ]

    # =========================================================================
    # Relationships
    # =========================================================================

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="upload_sessions",
        help_text="User who initiated the upload",
    )

    token = models.CharField(
        max_length=64,
        unique=True,
        help_text="Opaque session handle exposed to clients",
    )

    # =========================================================================
    # File Metadata
    # =========================================================================

    file_name = models.CharField(
        max_length=255,
        help_text="Original filename of the file being uploaded",
    )
    mime_type = models.CharField(
        max_length=100,
        help_text="MIME type of the file",
    )
    media_type = models.CharField(
        max_length=20,
        choices=MediaType.choices,
        help_text="Media type category (image, video, document, audio)",
    )
    total_file_size = models.BigIntegerField(
        help_text="Expected total file size in bytes",
    )
    chunk_size = models.PositiveIntegerField(
        help_text="Size of each chunk in bytes (the last one may be smaller)",
    )
    total_chunks = models.PositiveIntegerField(
        help_text="Number of chunks the file is split into",
    )
    checksum = models.CharField(
        max_length=128,
        blank=True,
        null=True,
        help_text="Expected hex digest of the whole file (optional)",
    )
    checksum_algorithm = models.CharField(
        max_length=10,
        default="md5",
        help_text="Hash algorithm for chunk and file checksums (md5, sha256)",
    )

    # =========================================================================
    # Status & Expiration
    # =========================================================================

    status = FSMField(
        default=Status.INITIATED,
        choices=Status.choices,
        db_index=True,
        help_text="Current session status (managed by FSM)",
    )
    expires_at = models.DateTimeField(
        help_text="When this session expires if not completed",
    )

    # =========================================================================
    # Result
    # =========================================================================

    final_key = models.CharField(
        max_length=500,
        blank=True,
        null=True,
        help_text="Blob store key of the assembled file",
    )
    final_size = models.BigIntegerField(
        null=True,
        blank=True,
        help_text="Size of the assembled file in bytes",
    )
    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When assembly completed",
    )
    failure_code = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Error code if the session failed",
    )
    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Detailed reason if the session failed",
    )

    objects = UploadSessionManager()

    # =========================================================================
    # Meta
    # =========================================================================

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["owner", "status"],
                name="idx_upload_session_owner_st",
            ),
            models.Index(
                fields=["status", "expires_at"],
                name="idx_upload_session_status_exp",
            ),
        ]

    def __str__(self) -> str:
        return f"UploadSession({self.file_name}, {self.status})"

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_open(self) -> bool:
        """True while the session accepts chunks."""
        return self.status in self.OPEN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    @property
    def is_past_expiry(self) -> bool:
        return self.expires_at < timezone.now()

    @property
    def is_expired(self) -> bool:
        """
        Expired by status, or open with expires_at already passed.

        The second case covers the window before the sweeper runs.
        """
        if self.status == self.Status.EXPIRED:
            return True
        return self.is_open and self.is_past_expiry

    def expected_chunk_size(self, chunk_number: int) -> int:
        """
        Expected payload length for a chunk position.

        Every chunk is ``chunk_size`` bytes except the last, which carries
        the remainder.
        """
        if chunk_number == self.total_chunks - 1:
            return self.total_file_size - self.chunk_size * (self.total_chunks - 1)
        return self.chunk_size

    # =========================================================================
    # State Transitions (django-fsm)
    # =========================================================================

    @transition(
        field=status,
        source=Status.INITIATED,
        target=Status.UPLOADING,
    )
    def start_upload(self):
        """
        Transition: INITIATED -> UPLOADING

        Applied when the first chunk is recorded.
        """

    @transition(
        field=status,
        source=Status.UPLOADING,
        target=Status.COMPLETING,
    )
    def begin_assembly(self):
        """
        Transition: UPLOADING -> COMPLETING

        Exactly one caller wins this transition per session; the winner
        runs assembly.
        """

    @transition(
        field=status,
        source=Status.COMPLETING,
        target=Status.COMPLETED,
    )
    def complete(self, final_key: str, final_size: int):
        """
        Transition: COMPLETING -> COMPLETED

        Args:
            final_key: Blob store key of the assembled file
            final_size: Size of the assembled file in bytes
        """
        self.final_key = final_key
        self.final_size = final_size
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=Status.COMPLETING,
        target=Status.FAILED,
    )
    def fail(self, code: str, reason: str = ""):
        """
        Transition: COMPLETING -> FAILED

        Args:
            code: Machine-readable failure code (e.g. SIZE_MISMATCH)
            reason: Human-readable description
        """
        self.failure_code = code
        self.failure_reason = reason

    @transition(
        field=status,
        source=[Status.INITIATED, Status.UPLOADING],
        target=Status.CANCELLED,
    )
    def cancel(self):
        """Transition: INITIATED/UPLOADING -> CANCELLED"""

    @transition(
        field=status,
        source=[Status.INITIATED, Status.UPLOADING],
        target=Status.EXPIRED,
    )
    def expire(self):
        """Transition: INITIATED/UPLOADING -> EXPIRED"""
