"""Ordered, deduplicated home-feed event list.

Events from every relay subscription land in one list kept ascending by
``(created_at, id)``. The same note delivered by several relays is stored
once. Insertion may be called from any thread: a ``threading.Lock``
serializes the read-modify-write of the list, and listeners are notified
outside the lock so a listener may read the feed without deadlocking.
"""

from __future__ import annotations

import bisect
import threading
from operator import attrgetter
from typing import TYPE_CHECKING

from nostrfeed.core.logger import Logger
from nostrfeed.core.metrics import FeedMetrics


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from nostrfeed.core.cache import DocumentStore
    from nostrfeed.models.event import Event


class FeedMerger:
    """Ascending event list with id deduplication and change listeners.

    Args:
        cache: Optional kind-1 document cache that receives every inserted
            event, keyed by id.
        metrics: Optional metrics recorder.

    Examples:
        ```python
        merger = FeedMerger()
        merger.add_listener(lambda: print("changed"))
        merger.insert(event)   # True, prints "changed"
        merger.insert(event)   # False, duplicate
        ```
    """

    def __init__(
        self, cache: DocumentStore | None = None, metrics: FeedMetrics | None = None
    ) -> None:
        self._events: list[Event] = []
        self._by_id: dict[str, Event] = {}
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._cache = cache
        self._metrics = metrics or FeedMetrics()
        self._logger = Logger("merger")

    @property
    def events(self) -> list[Event]:
        """Snapshot of the feed, oldest first."""
        with self._lock:
            return list(self._events)

    @property
    def oldest(self) -> Event | None:
        with self._lock:
            return self._events[0] if self._events else None

    @property
    def listeners(self) -> list[Callable[[], None]]:
        return list(self._listeners)

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._by_id

    def get(self, event_id: str) -> Event | None:
        return self._by_id.get(event_id)

    def add_listener(self, listener: Callable[[], None]) -> bool:
        """Register *listener* once. Returns False if already registered."""
        if listener in self._listeners:
            return False
        self._listeners.append(listener)
        return True

    def remove_listener(self, listener: Callable[[], None]) -> bool:
        """Deregister *listener*. Returns False if it was not registered."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def insert(self, event: Event) -> bool:
        """Insert *event* in order and notify listeners.

        Returns:
            False if an event with the same id is already present.
        """
        if not self._insert(event):
            return False
        self._notify()
        return True

    def insert_many(self, events: Iterable[Event]) -> int:
        """Insert several events, notifying listeners once if any were new.

        Returns:
            The number of events actually inserted.
        """
        inserted = sum(1 for event in events if self._insert(event))
        if inserted:
            self._notify()
        return inserted

    def _insert(self, event: Event) -> bool:
        with self._lock:
            if event.id in self._by_id:
                self._metrics.event("duplicate")
                return False
            bisect.insort(self._events, event, key=attrgetter("sort_key"))
            self._by_id[event.id] = event
        if self._cache is not None:
            self._cache.put(event.id, event)
        self._metrics.event("inserted")
        self._metrics.gauge("feed_size", len(self._events))
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:  # Error boundary: one listener must not starve the rest
                self._logger.error("listener_failed", error=str(e), error_type=type(e).__name__)
