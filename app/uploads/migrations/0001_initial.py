"""
Create upload session, chunk and temporary artifact tables.

Tables:
    - UploadSession: chunked upload sessions with FSM-managed status
    - UploadChunk: received chunks, unique per (session, chunk_number)
    - TemporaryArtifact: time-boxed derived files
"""

import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models

import uploads.models.temporary_artifact


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="UploadSession",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "token",
                    models.CharField(
                        help_text="Opaque session handle exposed to clients",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "file_name",
                    models.CharField(
                        help_text="Original filename of the file being uploaded",
                        max_length=255,
                    ),
                ),
                (
                    "mime_type",
                    models.CharField(
                        help_text="MIME type of the file", max_length=100
                    ),
                ),
                (
                    "media_type",
                    models.CharField(
                        choices=[
                            ("image", "Image"),
                            ("video", "Video"),
                            ("document", "Document"),
                            ("audio", "Audio"),
                        ],
                        help_text="Media type category (image, video, document, audio)",
                        max_length=20,
                    ),
                ),
                (
                    "total_file_size",
                    models.BigIntegerField(
                        help_text="Expected total file size in bytes"
                    ),
                ),
                (
                    "chunk_size",
                    models.PositiveIntegerField(
                        help_text="Size of each chunk in bytes (the last one may be smaller)"
                    ),
                ),
                (
                    "total_chunks",
                    models.PositiveIntegerField(
                        help_text="Number of chunks the file is split into"
                    ),
                ),
                (
                    "checksum",
                    models.CharField(
                        blank=True,
                        help_text="Expected hex digest of the whole file (optional)",
                        max_length=128,
                        null=True,
                    ),
                ),
                (
                    "checksum_algorithm",
                    models.CharField(
                        default="md5",
                        help_text="Hash algorithm for chunk and file checksums (md5, sha256)",
                        max_length=10,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("initiated", "Initiated"),
                            ("uploading", "Uploading"),
                            ("completing", "Completing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="initiated",
                        help_text="Current session status (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(
                        help_text="When this session expires if not completed"
                    ),
                ),
                (
                    "final_key",
                    models.CharField(
                        blank=True,
                        help_text="Blob store key of the assembled file",
                        max_length=500,
                        null=True,
                    ),
                ),
                (
                    "final_size",
                    models.BigIntegerField(
                        blank=True,
                        help_text="Size of the assembled file in bytes",
                        null=True,
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When assembly completed",
                        null=True,
                    ),
                ),
                (
                    "failure_code",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Error code if the session failed",
                        max_length=50,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Detailed reason if the session failed",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="User who initiated the upload",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="upload_sessions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["owner", "status"],
                        name="idx_upload_session_owner_st",
                    ),
                    models.Index(
                        fields=["status", "expires_at"],
                        name="idx_upload_session_status_exp",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UploadChunk",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "chunk_number",
                    models.PositiveIntegerField(help_text="0-based chunk position"),
                ),
                (
                    "size",
                    models.BigIntegerField(help_text="Chunk payload size in bytes"),
                ),
                (
                    "storage_ref",
                    models.CharField(
                        help_text="Blob store key of the chunk payload",
                        max_length=500,
                    ),
                ),
                (
                    "checksum",
                    models.CharField(
                        help_text="Hex digest of the payload as received",
                        max_length=128,
                    ),
                ),
                (
                    "received_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the chunk was received",
                    ),
                ),
                (
                    "session",
                    models.ForeignKey(
                        help_text="Upload session this chunk belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="chunks",
                        to="uploads.uploadsession",
                    ),
                ),
            ],
            options={
                "ordering": ["session", "chunk_number"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("session", "chunk_number"),
                        name="uniq_upload_chunk_session_number",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="TemporaryArtifact",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "file_name",
                    models.CharField(
                        help_text="Filename of the artifact", max_length=255
                    ),
                ),
                (
                    "mime_type",
                    models.CharField(
                        help_text="MIME type of the artifact", max_length=100
                    ),
                ),
                (
                    "size",
                    models.BigIntegerField(
                        default=0, help_text="Artifact size in bytes"
                    ),
                ),
                (
                    "storage_key",
                    models.CharField(
                        help_text="Blob store key of the artifact", max_length=500
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("processed", "Processed"),
                            ("thumbnail", "Thumbnail"),
                            ("export", "Export"),
                        ],
                        default="processed",
                        help_text="What produced this artifact",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("temporary", "Temporary"),
                            ("permanent", "Permanent"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="temporary",
                        help_text="Retention status",
                        max_length=20,
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(
                        default=uploads.models.temporary_artifact.default_artifact_expiry,
                        help_text="When a temporary artifact may be reclaimed",
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the blob was deleted by the sweeper",
                        null=True,
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        help_text="User who owns this artifact",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="temporary_artifacts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "expires_at"],
                        name="idx_temp_artifact_status_exp",
                    ),
                ],
            },
        ),
    ]
