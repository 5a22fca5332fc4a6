"""
Bounded key/value caches for raw Nostr documents.

The client keeps three independent caches, one per document kind it deals
with: profile metadata (kind 0), contact lists (kind 3), and notes
(kind 1). They are injected into the [Client][nostrfeed.feed.client.Client]
rather than living at module level, so every client instance (and every
test) owns its own bounded state.

Each cache is a ``cachetools.LRUCache`` behind a lock: cachetools caches are
not thread-safe, and notes are written from listener callbacks that may run
on any thread.

Examples:
    ```python
    cache = DocumentStore(maxsize=2)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.get("a")      # 1 ("a" becomes most recently used)
    cache.put("c", 3)   # evicts "b"
    ```
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from cachetools import LRUCache


DEFAULT_MAXSIZE = 500


class DocumentStore:
    """Lock-guarded ``cachetools.LRUCache``.

    Args:
        maxsize: Maximum number of entries.

    Raises:
        ValueError: If ``maxsize`` is not positive.
    """

    def __init__(self, maxsize: int = DEFAULT_MAXSIZE) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self._cache: LRUCache[Any, Any] = LRUCache(maxsize=maxsize)
        self._lock = threading.Lock()

    @property
    def maxsize(self) -> int:
        return int(self._cache.maxsize)

    def get(self, key: Any, default: Any = None) -> Any:
        """Return the cached value and mark it most recently used."""
        with self._lock:
            return self._cache.get(key, default)

    def put(self, key: Any, value: Any) -> None:
        with self._lock:
            self._cache[key] = value

    def pop(self, key: Any) -> Any:
        with self._lock:
            return self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


@dataclass(slots=True)
class DocumentCache:
    """The three per-kind document caches owned by one client.

    Attributes:
        kind0: Profile metadata documents keyed by public key.
        kind3: Contact-list documents keyed by public key.
        kind1: Notes keyed by event id.
    """

    kind0: DocumentStore = field(default_factory=DocumentStore)
    kind3: DocumentStore = field(default_factory=DocumentStore)
    kind1: DocumentStore = field(default_factory=DocumentStore)

    @classmethod
    def with_capacity(cls, kind0: int, kind3: int, kind1: int) -> DocumentCache:
        return cls(
            kind0=DocumentStore(kind0), kind3=DocumentStore(kind3), kind1=DocumentStore(kind1)
        )
