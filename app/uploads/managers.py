"""
Custom managers and querysets for upload models.

These form the session store used by the chunked upload services:

    UploadSession.objects.create_session(...)      create with a fresh token
    UploadSession.objects.get_for_owner(token, u)  owner-scoped lookup
    UploadChunk.objects.for_session(session)       chunks ordered by number
    UploadChunk.objects.create_if_absent(...)      insert guarded by the
                                                   (session, chunk_number)
                                                   unique constraint
    UploadChunk.objects.count_for_session(session)
    UploadChunk.objects.delete_for_session(session)

Conditional status updates are not here: they go through django-fsm
transitions on the model, persisted by ConcurrentTransitionMixin.
"""

from __future__ import annotations

import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError, models, transaction
from django.utils import timezone

if TYPE_CHECKING:
    from datetime import datetime

    from uploads.models import UploadChunk, UploadSession


# Token length in bytes before url-safe base64 encoding (43 characters)
TOKEN_BYTES = 32

# Attempts before giving up on generating a non-colliding token
TOKEN_ATTEMPTS = 5


# =============================================================================
# Upload Sessions
# =============================================================================


class UploadSessionQuerySet(models.QuerySet):
    """Chainable filters over upload sessions."""

    def owned_by(self, owner) -> UploadSessionQuerySet:
        return self.filter(owner=owner)

    def open(self) -> UploadSessionQuerySet:
        """Sessions still accepting chunks (INITIATED or UPLOADING)."""
        return self.filter(status__in=self.model.OPEN_STATUSES)

    def expired_open(self, now: datetime | None = None) -> UploadSessionQuerySet:
        """
        Open sessions whose expires_at has passed.

        Args:
            now: Reference time (defaults to timezone.now())
        """
        now = now or timezone.now()
        return self.open().filter(expires_at__lt=now)

    def stalled_assemblies(self, older_than: timedelta) -> UploadSessionQuerySet:
        """
        COMPLETING sessions not touched for longer than ``older_than``.

        updated_at is bumped by the transition that entered COMPLETING, so
        it marks when assembly started.
        """
        cutoff = timezone.now() - older_than
        return self.filter(
            status=self.model.Status.COMPLETING,
            updated_at__lt=cutoff,
        )

    def with_orphaned_chunks(self) -> UploadSessionQuerySet:
        """
        Terminal sessions that still own chunk records.

        CANCELLED and EXPIRED sessions never need their chunks again.
        FAILED sessions keep them for inspection until their expires_at
        passes.
        """
        Status = self.model.Status
        now = timezone.now()
        return (
            self.filter(
                models.Q(status__in=[Status.CANCELLED, Status.EXPIRED])
                | models.Q(status=Status.FAILED, expires_at__lt=now)
            )
            .filter(chunks__isnull=False)
            .distinct()
        )


class UploadSessionManager(models.Manager):
    """Manager exposing UploadSessionQuerySet plus creation/lookup helpers."""

    def get_queryset(self) -> UploadSessionQuerySet:
        return UploadSessionQuerySet(self.model, using=self._db)

    def owned_by(self, owner) -> UploadSessionQuerySet:
        return self.get_queryset().owned_by(owner)

    def open(self) -> UploadSessionQuerySet:
        return self.get_queryset().open()

    def expired_open(self, now: datetime | None = None) -> UploadSessionQuerySet:
        return self.get_queryset().expired_open(now)

    def stalled_assemblies(self, older_than: timedelta) -> UploadSessionQuerySet:
        return self.get_queryset().stalled_assemblies(older_than)

    def with_orphaned_chunks(self) -> UploadSessionQuerySet:
        return self.get_queryset().with_orphaned_chunks()

    def generate_token(self) -> str:
        """Return a cryptographically random, URL-safe session token."""
        return secrets.token_urlsafe(TOKEN_BYTES)

    def create_session(self, **fields) -> UploadSession:
        """
        Create a session in INITIATED status with a fresh unique token.

        Retries token generation on the (astronomically unlikely) event of
        a unique constraint collision.

        Args:
            **fields: Model field values other than token and status

        Returns:
            The persisted UploadSession
        """
        for _ in range(TOKEN_ATTEMPTS - 1):
            try:
                with transaction.atomic():
                    return self.create(token=self.generate_token(), **fields)
            except IntegrityError:
                continue
        return self.create(token=self.generate_token(), **fields)

    def get_for_owner(self, token: str, owner) -> UploadSession:
        """
        Fetch a session by token, scoped to its owner.

        Raises:
            UploadSession.DoesNotExist: Unknown token or foreign session
        """
        return self.get(token=token, owner=owner)


# =============================================================================
# Upload Chunks
# =============================================================================


class UploadChunkQuerySet(models.QuerySet):
    def for_session(self, session: UploadSession) -> UploadChunkQuerySet:
        """Chunks of a session ordered by chunk_number."""
        return self.filter(session=session).order_by("chunk_number")


class UploadChunkManager(models.Manager):
    """Manager for chunk records keyed by (session, chunk_number)."""

    def get_queryset(self) -> UploadChunkQuerySet:
        return UploadChunkQuerySet(self.model, using=self._db)

    def for_session(self, session: UploadSession) -> UploadChunkQuerySet:
        return self.get_queryset().for_session(session)

    def count_for_session(self, session: UploadSession) -> int:
        return self.filter(session=session).count()

    def uploaded_numbers(self, session: UploadSession) -> list[int]:
        """Sorted chunk numbers recorded for a session."""
        return list(
            self.for_session(session).values_list("chunk_number", flat=True)
        )

    def create_if_absent(
        self,
        session: UploadSession,
        chunk_number: int,
        size: int,
        storage_ref: str,
        checksum: str,
    ) -> tuple[UploadChunk, bool]:
        """
        Insert a chunk record unless one exists for (session, chunk_number).

        The unique constraint decides between concurrent inserts; the
        insert runs in a savepoint so a losing caller's outer transaction
        stays usable.

        Returns:
            (chunk, created): created is False when another record won,
            in which case chunk is the existing record.
        """
        try:
            with transaction.atomic():
                chunk = self.create(
                    session=session,
                    chunk_number=chunk_number,
                    size=size,
                    storage_ref=storage_ref,
                    checksum=checksum,
                )
            return chunk, True
        except IntegrityError:
            existing = self.get(session=session, chunk_number=chunk_number)
            return existing, False

    def delete_for_session(self, session: UploadSession, chunk_ids=None) -> int:
        """
        Delete chunk records of a session; returns the number removed.

        Args:
            chunk_ids: Restrict deletion to these records (default: all)
        """
        queryset = self.filter(session=session)
        if chunk_ids is not None:
            queryset = queryset.filter(id__in=chunk_ids)
        deleted, _ = queryset.delete()
        return deleted


# =============================================================================
# Temporary Artifacts
# =============================================================================


class TemporaryArtifactQuerySet(models.QuerySet):
    def owned_by(self, owner) -> TemporaryArtifactQuerySet:
        return self.filter(owner=owner)

    def expired(self, now: datetime | None = None) -> TemporaryArtifactQuerySet:
        """TEMPORARY artifacts past their expires_at. PERMANENT ones never match."""
        now = now or timezone.now()
        return self.filter(
            status=self.model.Status.TEMPORARY,
            expires_at__lt=now,
        )

    def reclaimable(self, now: datetime | None = None) -> TemporaryArtifactQuerySet:
        """
        Artifacts whose blob the sweeper should delete.

        Expired TEMPORARY artifacts, plus EXPIRED ones whose blob delete
        failed on an earlier run.
        """
        pending = self.filter(status=self.model.Status.EXPIRED, deleted_at__isnull=True)
        return self.expired(now) | pending
