"""
Celery tasks for chunked uploads.

This module provides async tasks for:
- Assembling a completed upload off the request path
- Expiring abandoned upload sessions and deleting their chunks
- Expiring temporary artifacts and deleting their blobs
- Failing assemblies that stalled (worker crash mid-assembly)
- Reclaiming chunks left behind by cancelled, expired or failed sessions

The periodic tasks are scheduled in CELERY_BEAT_SCHEDULE (config.settings).
Each one processes records independently, so a single bad record never
aborts a sweep.

Usage:
    from uploads.tasks import assemble_upload_session

    # Queued by ChunkReceiver when CHUNKED_UPLOAD_ASYNC_ASSEMBLY is on
    assemble_upload_session.delay(str(session.id))

    # Run a sweep by hand
    sweep_expired_upload_sessions.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


# =============================================================================
# Assembly Task
# =============================================================================


@shared_task(acks_late=True)
def assemble_upload_session(session_id: str) -> dict:
    """
    Assemble a session that a chunk request moved to COMPLETING.

    Application errors are terminal: the Assembler has already marked the
    session FAILED (or left it untouched for a stale trigger), so they are
    logged and reported instead of retried.

    Args:
        session_id: UUID string of the UploadSession

    Returns:
        Dict with status and either the assembled file or the error.
    """
    from uploads.services.chunked_upload import Assembler

    try:
        result = Assembler().assemble(session_id)
    except BaseApplicationError as e:
        logger.error(
            "Async assembly failed",
            extra={
                "event_type": "upload.async_assembly_failed",
                "session_id": session_id,
                "error_code": e.error_code,
                "error": e.message,
            },
        )
        return {
            "session_id": session_id,
            "status": "failed",
            "error": e.to_dict(),
        }

    return {
        "session_id": session_id,
        "status": "completed",
        "final_key": result.final_key,
        "size": result.size,
    }


# =============================================================================
# Periodic Sweeps
# =============================================================================


@shared_task
def sweep_expired_upload_sessions() -> dict:
    """
    Periodic task to expire abandoned upload sessions.

    Finds INITIATED/UPLOADING sessions past expires_at, marks each one
    EXPIRED and deletes its chunks. Sessions that moved on concurrently
    (e.g. started assembly) are skipped.

    Returns:
        Dict with count of sessions expired and per-session errors.
    """
    from uploads.services.sweeper import build_upload_session_sweeper

    result = build_upload_session_sweeper().run()
    return {
        "expired_count": result.processed,
        "chunks_deleted": result.reclaimed,
        "skipped": result.skipped,
        "errors": result.errors,
    }


@shared_task
def sweep_expired_temporary_artifacts() -> dict:
    """
    Periodic task to delete expired temporary artifacts.

    Returns:
        Dict with count of artifacts expired and per-artifact errors.
    """
    from uploads.services.sweeper import build_temporary_artifact_sweeper

    result = build_temporary_artifact_sweeper().run()
    return {
        "expired_count": result.processed,
        "skipped": result.skipped,
        "errors": result.errors,
    }


@shared_task
def recover_stalled_assemblies() -> dict:
    """
    Periodic task to fail sessions stuck in COMPLETING.

    This handles cases where the worker crashed during assembly. The
    threshold is CHUNKED_UPLOAD_STALLED_ASSEMBLY_MINUTES.

    Returns:
        Dict with count of sessions marked FAILED.
    """
    from uploads.services.sweeper import build_stalled_assembly_sweeper

    result = build_stalled_assembly_sweeper().run()
    return {
        "failed_count": result.processed,
        "skipped": result.skipped,
        "errors": result.errors,
    }


@shared_task
def reclaim_orphaned_chunks() -> dict:
    """
    Periodic task to delete chunks still owned by terminal sessions.

    Picks up chunk blobs whose deletion failed during cancel or expiry,
    and chunks of FAILED sessions once their expires_at has passed.

    Returns:
        Dict with count of sessions cleaned and chunks deleted.
    """
    from uploads.services.sweeper import build_orphaned_chunk_sweeper

    result = build_orphaned_chunk_sweeper().run()
    return {
        "session_count": result.processed,
        "chunks_deleted": result.reclaimed,
        "errors": result.errors,
    }
