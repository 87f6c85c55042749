"""Shared state a pipeline may consult across runs.

Both stores are owned by whoever constructs the pipeline and are guarded by
a lock, since one pipeline instance can serve concurrent aggregate calls.
"""

import copy
import threading
import time
from collections import OrderedDict
from collections.abc import Iterable

from .logging import get_logger
from .models import EnrichedItem

logger = get_logger(__name__)


class QueryResultCache:
    """TTL cache of ranked results keyed by (query, sources)."""

    def __init__(self, ttl_seconds: float = 300.0, max_entries: int = 128):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple, tuple[float, list[EnrichedItem]]] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def make_key(query: str, sources: Iterable[str]) -> tuple:
        return (query.strip().lower(), tuple(sorted(sources)))

    def get(self, key: tuple) -> list[EnrichedItem] | None:
        """Return a deep copy of a fresh entry, or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, items = entry
            if time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[key]
                logger.debug("Cache entry expired", key=key)
                return None
            self._entries.move_to_end(key)
            return copy.deepcopy(items)

    def set(self, key: tuple, items: list[EnrichedItem]) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic(), copy.deepcopy(items))
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SignatureStore:
    """Signatures of items already delivered by earlier runs.

    Oldest signatures are evicted first once ``max_size`` is reached.
    Callers that read and then add must hold ``lock`` for the whole batch.
    """

    def __init__(self, max_size: int = 5000):
        self.max_size = max_size
        self.lock = threading.RLock()
        self._signatures: OrderedDict[str, set[str]] = OrderedDict()

    def items(self) -> list[tuple[str, set[str]]]:
        """Snapshot of (signature, word set) pairs."""
        with self.lock:
            return list(self._signatures.items())

    def add(self, signature: str, words: set[str]) -> None:
        with self.lock:
            self._signatures[signature] = words
            self._signatures.move_to_end(signature)
            while len(self._signatures) > self.max_size:
                self._signatures.popitem(last=False)

    def __contains__(self, signature: str) -> bool:
        with self.lock:
            return signature in self._signatures

    def __len__(self) -> int:
        with self.lock:
            return len(self._signatures)
