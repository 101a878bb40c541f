"""Content-addressed registry of payloads already submitted to Grafana."""

import hashlib
import threading
from collections import OrderedDict


def content_hash(payload: str | bytes) -> str:
    """SHA-1 hex digest of the payload bytes."""
    if isinstance(payload, str):
        # surrogatepass: a lone surrogate still hashes, the create call rejects it
        payload = payload.encode("utf-8", "surrogatepass")
    return hashlib.sha1(payload).hexdigest()


class ContentDedupStore:
    """
    Set of content hashes that have already produced a create call.

    Keyed by content only, so identical payloads coming from different
    entry keys or different objects are submitted once. By default nothing
    is ever evicted. With max_entries set, the least recently seen hash is
    dropped once the limit is reached, and a later delivery of that content
    is treated as new.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._hashes: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def check_and_mark(self, digest: str) -> bool:
        """
        Record a hash.

        Returns:
            True if the hash was already present (skip), False if it was
            inserted by this call (proceed with the create)
        """
        with self._lock:
            if digest in self._hashes:
                self._hashes.move_to_end(digest)
                return True
            self._hashes[digest] = None
            if self.max_entries is not None and len(self._hashes) > self.max_entries:
                self._hashes.popitem(last=False)
            return False

    def __contains__(self, digest: object) -> bool:
        with self._lock:
            return digest in self._hashes

    def __len__(self) -> int:
        with self._lock:
            return len(self._hashes)
