"""
Tests for ChunkReceiver.accept_chunk().

Covers validation order, out-of-order arrival, duplicate handling, storage
failures, and the hand-off to the Assembler (inline or via Celery).
"""

from __future__ import annotations

import hashlib
import itertools
import random
from unittest.mock import patch

import pytest

from core.exceptions import ConflictError, NotFoundError, ValidationError
from uploads.exceptions import (
    BlobStoreError,
    ChecksumMismatchError,
    ExpiredError,
    SizeMismatchError,
    StorageError,
)
from uploads.models import UploadChunk, UploadSession
from uploads.tests.factories import UploadSessionFactory
from uploads.tests.helpers import chunk_of

pytestmark = pytest.mark.django_db


def reload(session: UploadSession) -> UploadSession:
    return UploadSession.objects.get(pk=session.pk)


def arrival_orders() -> list:
    """Every order for files of one to three chunks, seeded shuffles for eleven."""
    cases = []
    for size in (50, 200, 250):
        total = (size + 99) // 100
        for order in itertools.permutations(range(total)):
            cases.append(
                pytest.param(size, order, id=f"{size}b-" + "-".join(map(str, order)))
            )
    for seed in range(4):
        order = list(range(11))
        random.Random(seed).shuffle(order)
        cases.append(pytest.param(1050, tuple(order), id=f"1050b-seed{seed}"))
    return cases


class TestAcceptChunk:
    """Happy-path behavior."""

    def test_first_chunk_starts_upload(self, receiver, upload_session, file_data):
        result = receiver.accept_chunk(
            upload_session.token, upload_session.owner, 0, chunk_of(file_data, 0)
        )

        assert result.chunk_number == 0
        assert result.uploaded_chunks == 1
        assert result.total_chunks == 3
        assert result.status == UploadSession.Status.UPLOADING
        assert result.assembly is None
        assert reload(upload_session).status == UploadSession.Status.UPLOADING

    def test_chunk_is_stored(self, receiver, upload_session, file_data, blob_store):
        receiver.accept_chunk(
            upload_session.token, upload_session.owner, 1, chunk_of(file_data, 1)
        )

        chunk = UploadChunk.objects.get(session=upload_session, chunk_number=1)
        assert chunk.size == 100
        assert chunk.checksum == hashlib.md5(chunk_of(file_data, 1)).hexdigest()
        assert chunk.storage_ref.startswith(f"chunks/{upload_session.id}/000001.")
        assert b"".join(blob_store.read_stream(chunk.storage_ref)) == chunk_of(file_data, 1)

    def test_out_of_order_upload_completes(
        self, receiver, upload_session, file_data, blob_store
    ):
        """Chunks 2, 0, 1 of a 300-byte file in 100-byte chunks."""
        token, owner = upload_session.token, upload_session.owner

        receiver.accept_chunk(token, owner, 2, chunk_of(file_data, 2))
        second = receiver.accept_chunk(token, owner, 0, chunk_of(file_data, 0))
        assert second.uploaded_chunks == 2

        last = receiver.accept_chunk(token, owner, 1, chunk_of(file_data, 1))

        assert last.status == UploadSession.Status.COMPLETED
        assert last.uploaded_chunks == 3
        assert last.assembly is not None
        assert last.assembly.size == 300
        assert b"".join(blob_store.read_stream(last.assembly.final_key)) == file_data
        session = reload(upload_session)
        assert session.status == UploadSession.Status.COMPLETED
        assert session.final_size == 300

    def test_last_chunk_may_be_short(self, receiver, user, blob_store):
        session = UploadSessionFactory(owner=user, total_file_size=250, chunk_size=100)
        data = b"x" * 250

        for number in range(3):
            result = receiver.accept_chunk(
                session.token, user, number, chunk_of(data, number)
            )

        assert result.assembly.size == 250

    def test_matching_checksum_and_echoed_totals_accepted(
        self, receiver, upload_session, file_data
    ):
        payload = chunk_of(file_data, 0)

        result = receiver.accept_chunk(
            upload_session.token,
            upload_session.owner,
            0,
            payload,
            declared_size=100,
            checksum=hashlib.md5(payload).hexdigest().upper(),
            total_chunks=3,
            total_file_size=300,
        )

        assert result.uploaded_chunks == 1

    def test_sha256_session(self, receiver, user, file_data):
        session = UploadSessionFactory(owner=user, checksum_algorithm="sha256")
        payload = chunk_of(file_data, 0)

        receiver.accept_chunk(
            session.token, user, 0, payload, checksum=hashlib.sha256(payload).hexdigest()
        )

        chunk = UploadChunk.objects.get(session=session)
        assert chunk.checksum == hashlib.sha256(payload).hexdigest()


class TestArrivalOrder:
    """Whatever order chunks arrive in, the assembled file is the original."""

    @pytest.mark.parametrize("size,order", arrival_orders())
    def test_round_trip(
        self, receiver, session_manager, user, blob_store, size, order
    ):
        data = bytes((i * 7) % 256 for i in range(size))
        session = UploadSessionFactory(owner=user, total_file_size=size, chunk_size=100)

        results = [
            receiver.accept_chunk(session.token, user, number, chunk_of(data, number))
            for number in order
        ]

        assemblies = [r.assembly for r in results if r.assembly is not None]
        assert len(assemblies) == 1
        assert results[-1].assembly is assemblies[0]
        assert assemblies[0].size == size
        assert b"".join(blob_store.read_stream(assemblies[0].final_key)) == data

        resumed = session_manager.resume(session.token, user)
        assert resumed.status == UploadSession.Status.COMPLETED
        assert resumed.missing_chunks == []


class TestAcceptChunkRejections:
    """Each rejection leaves no chunk record behind."""

    def test_unknown_token(self, receiver, user):
        with pytest.raises(NotFoundError):
            receiver.accept_chunk("no-such-token", user, 0, b"x" * 100)

    def test_foreign_session(self, receiver, upload_session, other_user, file_data):
        with pytest.raises(NotFoundError):
            receiver.accept_chunk(
                upload_session.token, other_user, 0, chunk_of(file_data, 0)
            )

    def test_expired_by_time(self, receiver, expired_session, file_data):
        with pytest.raises(ExpiredError):
            receiver.accept_chunk(
                expired_session.token, expired_session.owner, 0, chunk_of(file_data, 0)
            )

        assert not UploadChunk.objects.exists()

    def test_expired_by_status(self, receiver, user, file_data):
        session = UploadSessionFactory(owner=user, status=UploadSession.Status.EXPIRED)

        with pytest.raises(ExpiredError):
            receiver.accept_chunk(session.token, user, 0, chunk_of(file_data, 0))

    @pytest.mark.parametrize(
        "status",
        [
            UploadSession.Status.COMPLETING,
            UploadSession.Status.COMPLETED,
            UploadSession.Status.CANCELLED,
            UploadSession.Status.FAILED,
        ],
    )
    def test_session_not_accepting(self, receiver, user, file_data, status):
        session = UploadSessionFactory(owner=user, status=status)

        with pytest.raises(ConflictError):
            receiver.accept_chunk(session.token, user, 0, chunk_of(file_data, 0))

    @pytest.mark.parametrize("chunk_number", [-1, 3, 100])
    def test_chunk_number_out_of_range(
        self, receiver, upload_session, chunk_number
    ):
        with pytest.raises(ValidationError):
            receiver.accept_chunk(
                upload_session.token, upload_session.owner, chunk_number, b"x" * 100
            )

    def test_echoed_totals_must_match(self, receiver, upload_session, file_data):
        with pytest.raises(ValidationError):
            receiver.accept_chunk(
                upload_session.token,
                upload_session.owner,
                0,
                chunk_of(file_data, 0),
                total_chunks=4,
            )
        with pytest.raises(ValidationError):
            receiver.accept_chunk(
                upload_session.token,
                upload_session.owner,
                0,
                chunk_of(file_data, 0),
                total_file_size=301,
            )

    @pytest.mark.parametrize(
        "payload,declared_size",
        [
            (b"x" * 99, None),
            (b"x" * 101, None),
            (b"x" * 100, 99),
            (b"", None),
        ],
    )
    def test_size_mismatch(self, receiver, upload_session, payload, declared_size):
        with pytest.raises(SizeMismatchError):
            receiver.accept_chunk(
                upload_session.token,
                upload_session.owner,
                0,
                payload,
                declared_size=declared_size,
            )

        assert not UploadChunk.objects.exists()

    def test_short_last_chunk_must_be_exact(self, receiver, user):
        session = UploadSessionFactory(owner=user, total_file_size=250, chunk_size=100)

        with pytest.raises(SizeMismatchError) as exc_info:
            receiver.accept_chunk(session.token, user, 2, b"x" * 100)

        assert exc_info.value.details["expected_size"] == 50

    def test_checksum_mismatch_stores_nothing(
        self, receiver, upload_session, file_data, blob_root
    ):
        with pytest.raises(ChecksumMismatchError):
            receiver.accept_chunk(
                upload_session.token,
                upload_session.owner,
                0,
                chunk_of(file_data, 0),
                checksum=hashlib.md5(b"something else").hexdigest(),
            )

        assert not UploadChunk.objects.exists()
        assert not list(blob_root.rglob("*.part"))
        assert reload(upload_session).status == UploadSession.Status.INITIATED

    def test_duplicate_chunk_is_conflict(self, receiver, upload_session, file_data):
        token, owner = upload_session.token, upload_session.owner
        receiver.accept_chunk(token, owner, 0, chunk_of(file_data, 0))

        with pytest.raises(ConflictError):
            receiver.accept_chunk(token, owner, 0, chunk_of(file_data, 0))

        assert UploadChunk.objects.count_for_session(upload_session) == 1

    def test_storage_failure_records_nothing_and_retry_succeeds(
        self, receiver, upload_session, file_data, blob_store
    ):
        token, owner = upload_session.token, upload_session.owner

        with patch.object(blob_store, "write", side_effect=BlobStoreError("disk full")):
            with pytest.raises(StorageError) as exc_info:
                receiver.accept_chunk(token, owner, 0, chunk_of(file_data, 0))

        assert isinstance(exc_info.value.__cause__, BlobStoreError)
        assert not UploadChunk.objects.exists()

        result = receiver.accept_chunk(token, owner, 0, chunk_of(file_data, 0))
        assert result.uploaded_chunks == 1


class TestLostInsertRace:
    """The unique constraint decides between two writers of the same slot."""

    def test_loser_keeps_winner_blob(
        self, receiver, upload_session, file_data, blob_store
    ):
        token, owner = upload_session.token, upload_session.owner
        payload = chunk_of(file_data, 0)
        winner_key = f"chunks/{upload_session.id}/000000.winner.part"
        blob_store.write(winner_key, payload)

        def insert_winner_first(**kwargs):
            UploadChunk.objects.create(
                session=upload_session,
                chunk_number=0,
                size=100,
                storage_ref=winner_key,
                checksum=kwargs["checksum"],
            )
            return original_create_if_absent(**kwargs)

        original_create_if_absent = UploadChunk.objects.create_if_absent
        with patch.object(
            UploadChunk.objects, "create_if_absent", side_effect=insert_winner_first
        ):
            # Existence pre-check passes; the insert then loses
            with pytest.raises(ConflictError):
                receiver.accept_chunk(token, owner, 0, payload)

        assert blob_store.exists(winner_key)
        chunk_blobs = [
            ref
            for ref in UploadChunk.objects.filter(session=upload_session).values_list(
                "storage_ref", flat=True
            )
        ]
        assert chunk_blobs == [winner_key]


class TestAssemblyHandOff:
    def test_async_mode_queues_task(self, receiver, uploading_session, file_data, settings):
        settings.CHUNKED_UPLOAD_ASYNC_ASSEMBLY = True
        token, owner = uploading_session.token, uploading_session.owner
        receiver.accept_chunk(token, owner, 0, chunk_of(file_data, 0))
        receiver.accept_chunk(token, owner, 1, chunk_of(file_data, 1))

        with patch("uploads.tasks.assemble_upload_session.delay") as mock_delay:
            result = receiver.accept_chunk(token, owner, 2, chunk_of(file_data, 2))

        assert result.status == UploadSession.Status.COMPLETING
        assert result.assembly is None
        mock_delay.assert_called_once_with(str(uploading_session.id))
        assert reload(uploading_session).status == UploadSession.Status.COMPLETING

    def test_assembly_failure_propagates(
        self, receiver, upload_session, file_data, blob_store
    ):
        token, owner = upload_session.token, upload_session.owner
        receiver.accept_chunk(token, owner, 0, chunk_of(file_data, 0))
        receiver.accept_chunk(token, owner, 1, chunk_of(file_data, 1))

        with patch.object(
            blob_store, "write_final", side_effect=BlobStoreError("bucket gone")
        ):
            with pytest.raises(StorageError):
                receiver.accept_chunk(token, owner, 2, chunk_of(file_data, 2))

        session = reload(upload_session)
        assert session.status == UploadSession.Status.FAILED
        assert session.failure_code == "STORAGE_ERROR"
        assert UploadChunk.objects.count_for_session(session) == 3
