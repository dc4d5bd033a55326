"""Django admin configuration for uploads app."""

from django.contrib import admin

from uploads.models import TemporaryArtifact, UploadChunk, UploadSession


class UploadChunkInline(admin.TabularInline):
    """Read-only list of received chunks on the session page."""

    model = UploadChunk
    extra = 0
    can_delete = False
    fields = ["chunk_number", "size", "checksum", "storage_ref", "received_at"]
    readonly_fields = fields
    ordering = ["chunk_number"]


@admin.register(UploadSession)
class UploadSessionAdmin(admin.ModelAdmin):
    """Admin configuration for UploadSession model."""

    list_display = [
        "id",
        "file_name",
        "media_type",
        "total_file_size",
        "total_chunks",
        "owner",
        "status",
        "expires_at",
        "created_at",
    ]
    list_filter = ["status", "media_type", "checksum_algorithm"]
    search_fields = ["file_name", "token", "owner__username", "owner__email"]
    # Status only changes through FSM transitions
    readonly_fields = [
        "id",
        "token",
        "status",
        "final_key",
        "final_size",
        "completed_at",
        "failure_code",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["owner"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [UploadChunkInline]


@admin.register(TemporaryArtifact)
class TemporaryArtifactAdmin(admin.ModelAdmin):
    """Admin configuration for TemporaryArtifact model."""

    list_display = [
        "id",
        "file_name",
        "kind",
        "size",
        "owner",
        "status",
        "expires_at",
        "deleted_at",
    ]
    list_filter = ["status", "kind"]
    search_fields = ["file_name", "storage_key", "owner__username"]
    readonly_fields = ["id", "deleted_at", "created_at", "updated_at"]
    raw_id_fields = ["owner"]
    ordering = ["-created_at"]
