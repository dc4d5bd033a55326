"""
Uploads models package.

Exports:
    UploadSession: Tracks chunked/resumable uploads
    UploadChunk: One received chunk of a session
    TemporaryArtifact: Time-boxed derived files reclaimed by the sweeper
"""

from uploads.models.temporary_artifact import TemporaryArtifact
from uploads.models.upload_chunk import UploadChunk
from uploads.models.upload_session import UploadSession

__all__ = [
    "TemporaryArtifact",
    "UploadChunk",
    "UploadSession",
]
