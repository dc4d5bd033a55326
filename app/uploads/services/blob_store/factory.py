"""
Factory function for blob store backend selection.

Provides a single function to get the blob store configured by
CHUNKED_UPLOAD_BLOB_BACKEND.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

if TYPE_CHECKING:
    from uploads.services.blob_store.base import BlobStore


def is_s3_backend() -> bool:
    """Check if the configured blob store backend is S3."""
    return settings.CHUNKED_UPLOAD_BLOB_BACKEND == "s3"


def get_blob_store() -> BlobStore:
    """
    Get the blob store for the configured backend.

    Returns S3BlobStore for "s3" and StorageBlobStore (Django default
    storage) for "storage".

    Raises:
        ImproperlyConfigured: Unknown backend name

    Usage:
        store = get_blob_store()
        store.write("chunks/<session>/000000.part", payload)
    """
    backend = settings.CHUNKED_UPLOAD_BLOB_BACKEND
    if is_s3_backend():
        from uploads.services.blob_store.s3 import S3BlobStore

        return S3BlobStore()

    if backend == "storage":
        from uploads.services.blob_store.storage import StorageBlobStore

        return StorageBlobStore()

    raise ImproperlyConfigured(
        f"Unknown CHUNKED_UPLOAD_BLOB_BACKEND '{backend}' (expected 'storage' or 's3')"
    )
