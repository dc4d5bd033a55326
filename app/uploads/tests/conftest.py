"""
Test fixtures for uploads app.

Provides fixtures for:
- Users and authenticated API clients
- A filesystem blob store rooted in a per-test temporary directory
- Chunked upload services bound to that blob store
- Upload sessions in various states
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from django.core.files.storage import FileSystemStorage
from rest_framework.test import APIClient

from uploads.models import UploadSession
from uploads.services.blob_store import StorageBlobStore
from uploads.services.chunked_upload import (
    Assembler,
    ChunkedUploadService,
    ChunkReceiver,
    SessionManager,
)
from uploads.tests.factories import UploadSessionFactory, UserFactory

if TYPE_CHECKING:
    from django.contrib.auth.models import User


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def chunked_upload_settings(settings, tmp_path: Path) -> None:
    """Small chunk limits and a temporary MEDIA_ROOT for every test."""
    settings.MEDIA_ROOT = str(tmp_path / "media")
    settings.CHUNKED_UPLOAD_MIN_CHUNK_SIZE = 1
    settings.CHUNKED_UPLOAD_MAX_CHUNK_SIZE = 1024 * 1024
    settings.CHUNKED_UPLOAD_MAX_FILE_SIZE = 10 * 1024 * 1024
    settings.CHUNKED_UPLOAD_ASYNC_ASSEMBLY = False
    settings.CHUNKED_UPLOAD_BLOB_BACKEND = "storage"


# =============================================================================
# User & API Client Fixtures
# =============================================================================


@pytest.fixture
def user(db) -> "User":
    return UserFactory()


@pytest.fixture
def other_user(db) -> "User":
    """A second user, for ownership checks."""
    return UserFactory()


@pytest.fixture
def api_client() -> APIClient:
    """Return unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user: "User") -> APIClient:
    """Return API client authenticated as ``user``."""
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# =============================================================================
# Blob Store & Service Fixtures
# =============================================================================


@pytest.fixture
def blob_root(tmp_path: Path) -> Path:
    root = tmp_path / "blobs"
    root.mkdir()
    return root


@pytest.fixture
def blob_store(blob_root: Path) -> StorageBlobStore:
    """Filesystem blob store isolated to this test."""
    return StorageBlobStore(
        FileSystemStorage(location=str(blob_root), base_url="/media/")
    )


@pytest.fixture
def session_manager(blob_store: StorageBlobStore) -> SessionManager:
    return SessionManager(blob_store)


@pytest.fixture
def assembler(blob_store: StorageBlobStore) -> Assembler:
    return Assembler(blob_store)


@pytest.fixture
def receiver(blob_store: StorageBlobStore, assembler: Assembler) -> ChunkReceiver:
    return ChunkReceiver(blob_store, assembler=assembler)


@pytest.fixture
def service(blob_store: StorageBlobStore) -> ChunkedUploadService:
    return ChunkedUploadService(blob_store)


# =============================================================================
# File Data Fixtures
# =============================================================================


@pytest.fixture
def file_data() -> bytes:
    """300 bytes with distinct content per 100-byte chunk."""
    return b"a" * 100 + b"b" * 100 + b"c" * 100


@pytest.fixture
def file_md5(file_data: bytes) -> str:
    return hashlib.md5(file_data).hexdigest()


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def upload_session(user: "User") -> UploadSession:
    """Fresh INITIATED session: 300 bytes in three 100-byte chunks."""
    return UploadSessionFactory(owner=user)


@pytest.fixture
def uploading_session(user: "User") -> UploadSession:
    return UploadSessionFactory(owner=user, status=UploadSession.Status.UPLOADING)


@pytest.fixture
def completing_session(user: "User") -> UploadSession:
    return UploadSessionFactory(owner=user, status=UploadSession.Status.COMPLETING)


@pytest.fixture
def expired_session(user: "User") -> UploadSession:
    """UPLOADING session whose expires_at has passed."""
    return UploadSessionFactory(
        owner=user,
        status=UploadSession.Status.UPLOADING,
        expired=True,
    )
