"""
Blob store package.

Exports:
    BlobStore: Abstract key -> bytes storage interface
    StorageBlobStore: Django Storage backed implementation
    get_blob_store: Backend selected by CHUNKED_UPLOAD_BLOB_BACKEND

S3BlobStore lives in uploads.services.blob_store.s3 and is imported
lazily by the factory.
"""

from uploads.services.blob_store.base import BlobStore
from uploads.services.blob_store.factory import get_blob_store, is_s3_backend
from uploads.services.blob_store.storage import StorageBlobStore

__all__ = [
    "BlobStore",
    "StorageBlobStore",
    "get_blob_store",
    "is_s3_backend",
]
