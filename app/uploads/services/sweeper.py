"""
Reusable expiry sweep for time-boxed records that own blobs.

Upload sessions and temporary artifacts share one pattern: find candidates
past their deadline, re-read each one, confirm it is still eligible,
mark it expired, reclaim its blobs, and keep going past individual
failures. ExpiringBlobSweeper implements that loop once; the builder
functions below configure it for each record kind.

Usage:
    result = build_upload_session_sweeper().run()
    result.processed, result.errors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from core.services import BaseService
from uploads.models import TemporaryArtifact, UploadSession
from uploads.services.blob_store import get_blob_store
from uploads.services.chunked_upload.base import delete_session_chunks

if TYPE_CHECKING:
    from collections.abc import Callable

    from django.db.models import Model, QuerySet

    from uploads.services.blob_store import BlobStore


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class SweepResult:
    """
    Summary of one sweep run.

    Attributes:
        processed: Records marked by this run
        reclaimed: Sum of the reclaim callable's return values
            (e.g. chunks deleted)
        skipped: Candidates that were no longer eligible on re-read
        errors: One entry per record that failed
    """

    processed: int = 0
    reclaimed: int = 0
    skipped: int = 0
    errors: list[dict] = field(default_factory=list)


# =============================================================================
# Sweeper
# =============================================================================


class ExpiringBlobSweeper(BaseService):
    """
    Find, re-check, mark and reclaim expired records, one at a time.

    Each record is handled independently: an exception is logged and
    recorded in ``SweepResult.errors`` and the sweep continues.

    Args:
        name: Label used in log events
        candidates: Returns the queryset of records to consider
        is_eligible: Re-check applied to a freshly read record
        mark: Marks the record; returns False when it lost a concurrent
            update (the record is then skipped and nothing is reclaimed
            afterwards)
        reclaim: Deletes the record's blobs; returns a count or None.
            Optional. Runs only after a successful mark.
    """

    def __init__(
        self,
        name: str,
        candidates: Callable[[], QuerySet],
        is_eligible: Callable[[Model], bool],
        mark: Callable[[Model], bool] | None = None,
        reclaim: Callable[[Model], int | None] | None = None,
    ) -> None:
        self.name = name
        self.candidates = candidates
        self.is_eligible = is_eligible
        self.mark = mark
        self.reclaim = reclaim

    def run(self) -> SweepResult:
        result = SweepResult()
        queryset = self.candidates()
        model = queryset.model

        # Primary keys first; every record is re-read just before it is touched
        for pk in list(queryset.values_list("pk", flat=True)):
            try:
                item = model.objects.filter(pk=pk).first()
                if item is None or not self.is_eligible(item):
                    result.skipped += 1
                    continue
                self._process(item, result)
            except Exception as e:
                result.errors.append({"id": str(pk), "error": str(e)})
                self.get_logger().error(
                    "Failed to sweep record",
                    extra={
                        "event_type": f"{self.name}_error",
                        "record_id": str(pk),
                        "error": str(e),
                    },
                    exc_info=True,
                )

        self.get_logger().info(
            "Sweep finished",
            extra={
                "event_type": self.name,
                "processed": result.processed,
                "reclaimed": result.reclaimed,
                "skipped": result.skipped,
                "error_count": len(result.errors),
            },
        )
        return result

    def _process(self, item: Model, result: SweepResult) -> None:
        if not self._mark(item):
            result.skipped += 1
            return
        result.processed += 1
        self._reclaim(item, result)

    def _mark(self, item: Model) -> bool:
        if self.mark is None:
            return True
        return self.mark(item)

    def _reclaim(self, item: Model, result: SweepResult) -> None:
        if self.reclaim is None:
            return
        result.reclaimed += self.reclaim(item) or 0


# =============================================================================
# Transitions Shared By Session Sweeps
# =============================================================================


def _apply_transition(session: UploadSession, transition_name: str, *args) -> bool:
    """Apply a FSM transition and save it; False when another writer won."""
    try:
        getattr(session, transition_name)(*args)
        session.save()
    except (ConcurrentTransition, TransitionNotAllowed):
        return False
    return True


# =============================================================================
# Configured Sweepers
# =============================================================================


def build_upload_session_sweeper(blob_store: BlobStore | None = None) -> ExpiringBlobSweeper:
    """
    Expire open sessions past expires_at and delete their chunks.

    The session is moved to EXPIRED first with a compare-and-swap, so a
    session finishing concurrently is never expired. Chunks whose blobs
    fail to delete stay recorded for reclaim_orphaned_chunks.
    """
    store = blob_store or get_blob_store()
    return ExpiringBlobSweeper(
        name="upload_session_sweep",
        candidates=UploadSession.objects.expired_open,
        is_eligible=lambda session: session.is_open and session.is_past_expiry,
        mark=lambda session: _apply_transition(session, "expire"),
        reclaim=lambda session: delete_session_chunks(session, store),
    )


def build_temporary_artifact_sweeper(blob_store: BlobStore | None = None) -> ExpiringBlobSweeper:
    """
    Delete blobs of TEMPORARY artifacts past expires_at and mark them EXPIRED.

    The artifact is claimed (TEMPORARY to EXPIRED, conditionally) before its
    blob is touched, so one promoted concurrently keeps its blob. A claimed
    artifact whose blob delete fails keeps deleted_at empty and is retried
    on the next run. PERMANENT artifacts are never candidates.
    """
    store = blob_store or get_blob_store()

    def is_eligible(artifact: TemporaryArtifact) -> bool:
        if artifact.status == TemporaryArtifact.Status.EXPIRED:
            return artifact.deleted_at is None
        return artifact.is_temporary and artifact.expires_at < timezone.now()

    def mark(artifact: TemporaryArtifact) -> bool:
        # Claimed by an earlier run
        if artifact.status == TemporaryArtifact.Status.EXPIRED:
            return True
        return artifact.claim_expiry()

    def reclaim(artifact: TemporaryArtifact) -> int:
        store.delete(artifact.storage_key)
        artifact.mark_deleted()
        return 1

    return ExpiringBlobSweeper(
        name="temporary_artifact_sweep",
        candidates=TemporaryArtifact.objects.reclaimable,
        is_eligible=is_eligible,
        mark=mark,
        reclaim=reclaim,
    )


def build_stalled_assembly_sweeper() -> ExpiringBlobSweeper:
    """
    Fail sessions stuck in COMPLETING past the stalled-assembly threshold.

    Chunks are kept; they are reclaimed once the FAILED session's
    expires_at passes.
    """
    threshold = timedelta(minutes=settings.CHUNKED_UPLOAD_STALLED_ASSEMBLY_MINUTES)
    reason = f"Assembly did not finish within {threshold}"

    return ExpiringBlobSweeper(
        name="stalled_assembly_recovery",
        candidates=lambda: UploadSession.objects.stalled_assemblies(threshold),
        is_eligible=lambda session: session.status == UploadSession.Status.COMPLETING
        and session.updated_at < timezone.now() - threshold,
        mark=lambda session: _apply_transition(session, "fail", "STALLED", reason),
    )


def build_orphaned_chunk_sweeper(blob_store: BlobStore | None = None) -> ExpiringBlobSweeper:
    """Delete chunks still owned by terminal sessions; sessions are left as is."""
    store = blob_store or get_blob_store()
    return ExpiringBlobSweeper(
        name="orphaned_chunk_reclaim",
        candidates=UploadSession.objects.with_orphaned_chunks,
        is_eligible=lambda session: session.is_terminal,
        reclaim=lambda session: delete_session_chunks(session, store),
    )
