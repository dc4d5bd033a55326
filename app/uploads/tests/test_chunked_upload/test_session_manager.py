"""
Tests for SessionManager: init, status, resume and cancel.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from core.exceptions import ConflictError, NotFoundError, ValidationError
from uploads.exceptions import BlobStoreError
from uploads.models import UploadChunk, UploadSession
from uploads.tests.factories import UploadSessionFactory
from uploads.tests.helpers import store_chunks

if TYPE_CHECKING:
    from django.contrib.auth.models import User

    from uploads.services.chunked_upload import SessionManager


pytestmark = pytest.mark.django_db


def init_kwargs(**overrides):
    kwargs = {
        "file_name": "video.mp4",
        "mime_type": "video/mp4",
        "total_file_size": 300,
        "chunk_size": 100,
        "media_type": "video",
    }
    kwargs.update(overrides)
    return kwargs


class TestInit:
    """Tests for SessionManager.init()."""

    def test_init_creates_initiated_session(
        self, session_manager: SessionManager, user: "User"
    ):
        with freeze_time("2024-01-01 12:00:00"):
            result = session_manager.init(user, **init_kwargs())

        assert result.total_chunks == 3
        assert result.chunk_size == 100
        assert result.expires_at == datetime(2024, 1, 2, 12, 0, tzinfo=dt_timezone.utc)
        session = UploadSession.objects.get(token=result.token)
        assert session.owner == user
        assert session.status == UploadSession.Status.INITIATED
        assert session.checksum is None
        assert session.checksum_algorithm == "md5"

    def test_total_chunks_rounds_up(self, session_manager, user):
        result = session_manager.init(user, **init_kwargs(total_file_size=301))

        assert result.total_chunks == 4

    def test_declared_total_chunks_must_match(self, session_manager, user):
        with pytest.raises(ValidationError) as exc_info:
            session_manager.init(user, **init_kwargs(total_chunks=2))

        assert exc_info.value.details["expected_total_chunks"] == 3
        assert not UploadSession.objects.exists()

    def test_declared_total_chunks_accepted(self, session_manager, user):
        result = session_manager.init(user, **init_kwargs(total_chunks=3))

        assert result.total_chunks == 3

    def test_checksum_is_normalized(self, session_manager, user, file_md5):
        result = session_manager.init(user, **init_kwargs(checksum=file_md5.upper()))

        assert UploadSession.objects.get(token=result.token).checksum == file_md5

    @pytest.mark.parametrize(
        "overrides",
        [
            {"total_file_size": 0},
            {"total_file_size": 11 * 1024 * 1024},
            {"chunk_size": 0},
            {"chunk_size": 2 * 1024 * 1024},
            {"media_type": "hologram"},
            {"mime_type": "application/x-msdownload"},
            {"file_name": ""},
            {"file_name": "x" * 256},
            {"checksum_algorithm": "crc32"},
            {"checksum": "not-a-digest"},
        ],
    )
    def test_invalid_parameters(self, session_manager, user, overrides):
        with pytest.raises(ValidationError):
            session_manager.init(user, **init_kwargs(**overrides))

        assert not UploadSession.objects.exists()

    def test_ttl_from_settings(self, session_manager, user, settings):
        settings.CHUNKED_UPLOAD_SESSION_TTL_HOURS = 2
        before = timezone.now()

        result = session_manager.init(user, **init_kwargs())

        assert before + timedelta(hours=2) <= result.expires_at
        assert result.expires_at <= timezone.now() + timedelta(hours=2)


class TestStatusAndResume:
    """Tests for SessionManager.status() and resume()."""

    def test_status_reports_progress(
        self, session_manager, uploading_session, file_data, blob_store
    ):
        store_chunks(uploading_session, file_data, blob_store, numbers=[0, 2])

        result = session_manager.status(uploading_session.token, uploading_session.owner)

        assert result.status == UploadSession.Status.UPLOADING
        assert result.uploaded_chunks == 2
        assert result.total_chunks == 3
        assert result.progress_percent == 66
        assert result.chunks == [0, 2]
        assert result.missing_chunks is None

    def test_resume_lists_missing_chunks(
        self, session_manager, uploading_session, file_data, blob_store
    ):
        store_chunks(uploading_session, file_data, blob_store, numbers=[1])

        result = session_manager.resume(uploading_session.token, uploading_session.owner)

        assert result.missing_chunks == [0, 2]
        assert result.chunks == [1]

    def test_resume_of_fresh_session(self, session_manager, upload_session):
        result = session_manager.resume(upload_session.token, upload_session.owner)

        assert result.missing_chunks == [0, 1, 2]
        assert result.progress_percent == 0

    def test_completed_session_reports_all_chunks(self, session_manager, user):
        session = UploadSessionFactory(
            owner=user,
            status=UploadSession.Status.COMPLETED,
            final_key="uploads/1/file.mp4",
            final_size=300,
        )

        result = session_manager.resume(session.token, user)

        assert result.progress_percent == 100
        assert result.missing_chunks == []
        assert result.final_key == "uploads/1/file.mp4"

    def test_failed_session_reports_failure(self, session_manager, user):
        session = UploadSessionFactory(
            owner=user,
            status=UploadSession.Status.FAILED,
            failure_code="CHECKSUM_MISMATCH",
            failure_reason="Assembled file checksum does not match",
        )

        result = session_manager.status(session.token, user)

        assert result.failure_code == "CHECKSUM_MISMATCH"

    def test_unknown_token(self, session_manager, user):
        with pytest.raises(NotFoundError):
            session_manager.status("no-such-token", user)

    def test_foreign_session_is_not_found(
        self, session_manager, upload_session, other_user
    ):
        with pytest.raises(NotFoundError):
            session_manager.resume(upload_session.token, other_user)


class TestCancel:
    """Tests for SessionManager.cancel()."""

    def test_cancel_deletes_chunks(
        self, session_manager, uploading_session, file_data, blob_store
    ):
        chunks = store_chunks(uploading_session, file_data, blob_store, numbers=[0, 1])

        result = session_manager.cancel(uploading_session.token, uploading_session.owner)

        assert result.status == UploadSession.Status.CANCELLED
        assert result.cleaned_chunks == 2
        assert not UploadChunk.objects.filter(session=uploading_session).exists()
        assert not any(blob_store.exists(chunk.storage_ref) for chunk in chunks)
        session = UploadSession.objects.get(pk=uploading_session.pk)
        assert session.status == UploadSession.Status.CANCELLED

    def test_cancel_initiated_session(self, session_manager, upload_session):
        result = session_manager.cancel(upload_session.token, upload_session.owner)

        assert result.status == UploadSession.Status.CANCELLED
        assert result.cleaned_chunks == 0

    @pytest.mark.parametrize(
        "status",
        [
            UploadSession.Status.COMPLETING,
            UploadSession.Status.COMPLETED,
            UploadSession.Status.CANCELLED,
            UploadSession.Status.FAILED,
            UploadSession.Status.EXPIRED,
        ],
    )
    def test_cancel_rejected_unless_open(self, session_manager, user, status):
        session = UploadSessionFactory(owner=user, status=status)

        with pytest.raises(ConflictError):
            session_manager.cancel(session.token, user)

        assert UploadSession.objects.get(pk=session.pk).status == status

    def test_cancel_loses_race_with_assembly(self, session_manager, uploading_session):
        """The status changes between the lookup and the compare-and-swap."""
        stale = UploadSession.objects.get(pk=uploading_session.pk)
        claimed = UploadSession.objects.get(pk=uploading_session.pk)
        claimed.begin_assembly()
        claimed.save()

        with patch.object(type(session_manager), "get_session", return_value=stale):
            with pytest.raises(ConflictError):
                session_manager.cancel(uploading_session.token, uploading_session.owner)

        assert (
            UploadSession.objects.get(pk=uploading_session.pk).status
            == UploadSession.Status.COMPLETING
        )

    def test_cleanup_failure_still_cancels(
        self, session_manager, uploading_session, file_data, blob_store
    ):
        store_chunks(uploading_session, file_data, blob_store, numbers=[0])

        with patch.object(blob_store, "delete", side_effect=BlobStoreError("denied")):
            result = session_manager.cancel(
                uploading_session.token, uploading_session.owner
            )

        assert result.status == UploadSession.Status.CANCELLED
        assert result.cleaned_chunks == 0
        # Records kept for reclaim_orphaned_chunks
        assert UploadChunk.objects.filter(session=uploading_session).count() == 1

    def test_cancel_foreign_session(self, session_manager, upload_session, other_user):
        with pytest.raises(NotFoundError):
            session_manager.cancel(upload_session.token, other_user)
