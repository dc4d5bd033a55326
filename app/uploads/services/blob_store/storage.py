"""
Blob store backed by a Django Storage.

Works with any Storage implementation; by default the project's
default_storage (FileSystemStorage under MEDIA_ROOT).
"""

from __future__ import annotations

import logging
import tempfile
from typing import TYPE_CHECKING

from django.core.files import File
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from uploads.exceptions import BlobStoreError
from uploads.services.blob_store.base import DEFAULT_READ_SIZE, BlobStore

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from django.core.files.storage import Storage

logger = logging.getLogger(__name__)

# Assembled files above this size are spooled to disk instead of memory
SPOOL_MAX_MEMORY = 10 * 1024 * 1024


class StorageBlobStore(BlobStore):
    """
    BlobStore on top of django.core.files.storage.

    Django storages never overwrite: save() picks an alternative name when
    the key exists. write() deletes first and verifies the returned name so
    keys stay deterministic.
    """

    def __init__(self, storage: Storage | None = None) -> None:
        self.storage = storage or default_storage

    def _save(self, key: str, content: File) -> str:
        if self.storage.exists(key):
            self.storage.delete(key)
        name = self.storage.save(key, content)
        if name != key:
            # Another writer created the key between delete and save
            self.storage.delete(name)
            raise BlobStoreError(f"Storage renamed blob to {name}", key=key)
        return name

    def write(self, key: str, data: bytes) -> str:
        try:
            return self._save(key, ContentFile(data))
        except OSError as e:
            raise BlobStoreError(f"Failed to write blob: {e}", key=key) from e

    def read_stream(self, key: str, block_size: int = DEFAULT_READ_SIZE) -> Iterator[bytes]:
        try:
            with self.storage.open(key, "rb") as fh:
                while True:
                    block = fh.read(block_size)
                    if not block:
                        break
                    yield block
        except OSError as e:
            raise BlobStoreError(f"Failed to read blob: {e}", key=key) from e

    def delete(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise BlobStoreError(f"Failed to delete blob: {e}", key=key) from e

    def write_final(self, key: str, stream: Iterable[bytes]) -> str:
        """
        Spool the stream to a temporary file, then save it in one call.

        Nothing is written under ``key`` until the stream is exhausted, so
        a failing stream leaves no partial object behind. Errors raised by
        ``stream`` itself propagate unchanged.
        """
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_MEMORY) as spool:
            for block in stream:
                try:
                    spool.write(block)
                except OSError as e:
                    raise BlobStoreError(f"Failed to spool blob: {e}", key=key) from e
            try:
                spool.seek(0)
                return self._save(key, File(spool, name=key))
            except OSError as e:
                self.delete(key)
                raise BlobStoreError(f"Failed to write blob: {e}", key=key) from e

    def url(self, key: str) -> str:
        return self.storage.url(key)

    def exists(self, key: str) -> bool:
        try:
            return self.storage.exists(key)
        except OSError as e:
            raise BlobStoreError(f"Failed to stat blob: {e}", key=key) from e
