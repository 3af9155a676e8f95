# backend/media_pipeline/services/storage/blob_store.py
"""
Blob Store - object storage collaborator interface.

The pipeline only needs get/put/exists/list/delete by key. S3BlobStore is
the production adapter; InMemoryBlobStore backs local runs and tests.
"""

import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ...exceptions import BlobNotFoundError, StorageError


def normalize_key(key: str) -> str:
    """
    Normalize and validate storage keys.

    Strips whitespace and leading '/', collapses '//' runs and rejects
    empty keys or path traversal.

    Raises:
        StorageError: If the key is empty or contains '..' segments
    """
    k = str(key or "").strip().lstrip("/")
    k = re.sub(r"/{2,}", "/", k)
    if not k:
        raise StorageError("Invalid storage key: empty")
    if ".." in k.split("/"):
        raise StorageError("Invalid storage key: path traversal detected")
    return k


@dataclass(frozen=True)
class StoredBlob:
    """Blob body plus the headers it was written with."""

    data: bytes
    content_type: str
    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None


class BlobStore(ABC):
    """Object storage addressed by key."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return blob bytes; raise BlobNotFoundError when missing."""

    @abstractmethod
    def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: Optional[str] = None,
        content_disposition: Optional[str] = None,
    ) -> None:
        """Write (or overwrite) a blob."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """True when the key resolves to a blob."""

    @abstractmethod
    def list(self, prefix: str) -> List[str]:
        """Keys under a prefix, sorted."""

    @abstractmethod
    def delete(self, keys: Iterable[str]) -> None:
        """Delete keys; missing keys are ignored."""


class InMemoryBlobStore(BlobStore):
    """Thread-safe dict-backed store."""

    def __init__(self):
        self._blobs: Dict[str, StoredBlob] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes:
        return self.get_blob(key).data

    def get_blob(self, key: str) -> StoredBlob:
        """Blob with its stored headers."""
        key = normalize_key(key)
        with self._lock:
            blob = self._blobs.get(key)
        if blob is None:
            raise BlobNotFoundError(key)
        return blob

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: Optional[str] = None,
        content_disposition: Optional[str] = None,
    ) -> None:
        key = normalize_key(key)
        blob = StoredBlob(
            data=bytes(data),
            content_type=content_type,
            cache_control=cache_control,
            content_disposition=content_disposition,
        )
        with self._lock:
            self._blobs[key] = blob

    def exists(self, key: str) -> bool:
        key = normalize_key(key)
        with self._lock:
            return key in self._blobs

    def list(self, prefix: str) -> List[str]:
        with self._lock:
            return sorted(k for k in self._blobs if k.startswith(prefix))

    def delete(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._blobs.pop(normalize_key(key), None)
