"""
Abstract blob store interface.

A blob store is durable key -> bytes storage for chunk payloads and
assembled files. The chunked upload services depend only on this
interface; the physical backend is chosen by get_blob_store().

Every implementation must:
- Raise BlobStoreError (never a backend-native error) for I/O failures
- Treat delete() of a missing key as success
- Make write() under an existing key replace the previous bytes
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


# Read size used when streaming blobs back
DEFAULT_READ_SIZE = 64 * 1024


class BlobStore(ABC):
    """
    Abstract base class for blob stores.

    Implementations provide backend-specific logic for:
    - Writing small payloads (chunks) in one call
    - Streaming payloads back without loading them whole
    - Writing a large object from a stream of byte blocks (assembly)
    - Producing a URL for an assembled object
    """

    @abstractmethod
    def write(self, key: str, data: bytes) -> str:
        """
        Store ``data`` under ``key``, replacing any existing blob.

        Returns:
            The key the data was stored under
        """

    @abstractmethod
    def read_stream(self, key: str, block_size: int = DEFAULT_READ_SIZE) -> Iterator[bytes]:
        """
        Yield the blob's bytes in blocks of at most ``block_size``.

        Errors (including a missing key) are raised as BlobStoreError
        while iterating.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the blob. A missing key is not an error."""

    @abstractmethod
    def write_final(self, key: str, stream: Iterable[bytes]) -> str:
        """
        Write an object from an iterable of byte blocks.

        On failure no partial object may remain under ``key``. Exceptions
        raised by ``stream`` itself propagate unchanged.

        Returns:
            The key the object was stored under
        """

    @abstractmethod
    def url(self, key: str) -> str:
        """Return a URL clients can use to fetch the blob."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check whether a blob is stored under ``key``."""
