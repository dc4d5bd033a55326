"""
TemporaryArtifact model for time-boxed derived files.

Processing pipelines write transient outputs (processed media, thumbnails,
exports) that are only kept for a limited time unless promoted. The
expiry sweep reclaims them with the same loop it uses for abandoned
upload sessions.
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from uploads.managers import TemporaryArtifactQuerySet


def default_artifact_expiry():
    """Now plus TEMPORARY_ARTIFACT_DEFAULT_EXPIRY_DAYS."""
    return timezone.now() + timedelta(
        days=settings.TEMPORARY_ARTIFACT_DEFAULT_EXPIRY_DAYS
    )


class TemporaryArtifact(UUIDPrimaryKeyMixin, BaseModel):
    """
    A derived file that expires unless made permanent.

    Attributes:
        owner: User the artifact belongs to
        file_name: Display filename
        mime_type: MIME type of the stored blob
        size: Blob size in bytes
        storage_key: Blob store key
        kind: What produced the artifact (processed, thumbnail, export)
        status: TEMPORARY, PERMANENT or EXPIRED
        expires_at: When a TEMPORARY artifact becomes reclaimable
        deleted_at: When the sweeper removed the blob. Null on an EXPIRED
            artifact while the blob delete is still pending
    """

    class Status(models.TextChoices):
        TEMPORARY = "temporary", "Temporary"
        PERMANENT = "permanent", "Permanent"
        EXPIRED = "expired", "Expired"

    class Kind(models.TextChoices):
        PROCESSED = "processed", "Processed"
        THUMBNAIL = "thumbnail", "Thumbnail"
        EXPORT = "export", "Export"

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="temporary_artifacts",
        help_text="User who owns this artifact",
    )
    file_name = models.CharField(
        max_length=255,
        help_text="Filename of the artifact",
    )
    mime_type = models.CharField(
        max_length=100,
        help_text="MIME type of the artifact",
    )
    size = models.BigIntegerField(
        default=0,
        help_text="Artifact size in bytes",
    )
    storage_key = models.CharField(
        max_length=500,
        help_text="Blob store key of the artifact",
    )
    kind = models.CharField(
        max_length=20,
        choices=Kind.choices,
        default=Kind.PROCESSED,
        help_text="What produced this artifact",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.TEMPORARY,
        db_index=True,
        help_text="Retention status",
    )
    expires_at = models.DateTimeField(
        default=default_artifact_expiry,
        help_text="When a temporary artifact may be reclaimed",
    )
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the blob was deleted by the sweeper",
    )

    objects = TemporaryArtifactQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["status", "expires_at"],
                name="idx_temp_artifact_status_exp",
            ),
        ]

    def __str__(self) -> str:
        return f"TemporaryArtifact({self.file_name}, {self.status})"

    @property
    def is_temporary(self) -> bool:
        return self.status == self.Status.TEMPORARY

    def make_permanent(self) -> bool:
        """
        Exempt a TEMPORARY artifact from expiry.

        The update only applies while the row is still TEMPORARY, so an
        artifact the sweeper already claimed is never revived.

        Returns:
            True if the artifact was promoted, False otherwise.
        """
        promoted = TemporaryArtifact.objects.filter(
            pk=self.pk, status=self.Status.TEMPORARY
        ).update(status=self.Status.PERMANENT, updated_at=timezone.now())
        if not promoted:
            return False
        self.status = self.Status.PERMANENT
        return True

    def extend_expiry(self, days: int) -> None:
        """
        Push expires_at ``days`` further into the future and save.

        Only meaningful for TEMPORARY artifacts; others are left untouched.
        """
        if not self.is_temporary:
            return
        self.expires_at = self.expires_at + timedelta(days=days)
        self.save(update_fields=["expires_at", "updated_at"])

    def claim_expiry(self) -> bool:
        """Move TEMPORARY to EXPIRED unless another writer changed it first."""
        claimed = TemporaryArtifact.objects.filter(
            pk=self.pk, status=self.Status.TEMPORARY
        ).update(status=self.Status.EXPIRED, updated_at=timezone.now())
        if not claimed:
            return False
        self.status = self.Status.EXPIRED
        return True

    def mark_deleted(self) -> None:
        """Record that the blob of a claimed artifact is gone."""
        now = timezone.now()
        TemporaryArtifact.objects.filter(
            pk=self.pk, status=self.Status.EXPIRED
        ).update(deleted_at=now, updated_at=now)
        self.deleted_at = now
