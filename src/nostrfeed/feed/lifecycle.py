"""Listener-driven lifecycle of the home feed.

Subscriptions exist only while someone is listening. The first listener
starts the [SubscriptionMultiplexer][nostrfeed.feed.multiplexer.SubscriptionMultiplexer]
for every followed key; when the last listener leaves, a grace period runs
before the subscriptions are torn down, and a second one before idle relay
connections are closed. A listener arriving during either grace period
cancels it, so a quick remove/add cycle never resubscribes.

```text
listeners: 1 -> 0 --listener_grace--> multiplexer.stop() --connection_grace--> close idle
                 ^ on_change() cancels          ^ on_change() cancels
```
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from nostrfeed.core.logger import Logger
from nostrfeed.core.metrics import FeedMetrics
from nostrfeed.core.timers import GracePeriod


if TYPE_CHECKING:
    from collections.abc import Callable

    from nostrfeed.models.event import Event

    from .merger import FeedMerger
    from .multiplexer import SubscriptionMultiplexer


DEFAULT_PAGE_SIZE = 50


class HomeFeed:
    """Public face of the home feed: pages of events and change listeners.

    Args:
        merger: The ordered event list.
        multiplexer: The per-relay subscriptions.
        follows: Returns the currently followed keys.
        listener_grace: Seconds between the last listener leaving and
            teardown.
        connection_grace: Seconds between teardown and closing idle
            connections.
        page_size: Default ``limit`` of
            [events()][nostrfeed.feed.lifecycle.HomeFeed.events].
        metrics: Optional metrics recorder.
    """

    def __init__(
        self,
        merger: FeedMerger,
        multiplexer: SubscriptionMultiplexer,
        follows: Callable[[], list[str]],
        *,
        listener_grace: float = 1.0,
        connection_grace: float = 1.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        metrics: FeedMetrics | None = None,
    ) -> None:
        self._merger = merger
        self._multiplexer = multiplexer
        self._follows = follows
        self._page_size = page_size
        self._metrics = metrics or FeedMetrics()
        self._teardown = GracePeriod("teardown", listener_grace)
        self._idle = GracePeriod("idle_connections", connection_grace)
        self._logger = Logger("home_feed")

    @property
    def listeners(self) -> list[Callable[[], None]]:
        return self._merger.listeners

    @property
    def teardown_pending(self) -> bool:
        """Whether the subscriptions are waiting out the listener grace period."""
        return self._teardown.pending

    @property
    def idle_close_pending(self) -> bool:
        return self._idle.pending

    async def on_change(self, listener: Callable[[], None]) -> None:
        """Register *listener*, starting the subscriptions if needed.

        The listener is called with no arguments after every change to the
        feed. Registering the same callable twice has no effect. A teardown
        that has already begun is awaited before the subscriptions restart.
        """
        if self._teardown.cancel():
            self._logger.debug("teardown_cancelled")

        if self._merger.add_listener(listener):
            self._metrics.gauge("listeners", len(self._merger.listeners))
            self._logger.debug("listener_added", listeners=len(self._merger.listeners))

        # A teardown or idle close already past its grace period finishes first.
        if self._teardown.running:
            self._logger.debug("teardown_in_progress")
            await self._teardown.wait()
        self._idle.cancel()
        if self._idle.running:
            await self._idle.wait()

        if not self._multiplexer.active:
            await self._multiplexer.start(self._follows())

    def remove_listener(self, listener: Callable[[], None]) -> None:
        """Deregister *listener*; the last removal schedules teardown.

        Unknown listeners are ignored.
        """
        if not self._merger.remove_listener(listener):
            return
        remaining = len(self._merger.listeners)
        self._metrics.gauge("listeners", remaining)
        self._logger.debug("listener_removed", listeners=remaining)
        if remaining == 0:
            self._teardown.schedule(self._expire)

    async def events(self, offset: int = 0, limit: int | None = None) -> list[Event]:
        """Return one page of the feed, counted back from the newest event.

        *offset* skips that many of the newest events and the page holds the
        next *limit* events before them, returned oldest first. Inserting
        older notes therefore never shifts a page already read, so
        ``events(0, n)`` followed by ``events(n, n)`` walks back in time.

        When the page reaches past what is loaded and relays are subscribed,
        older notes are fetched first (``until`` the oldest loaded timestamp,
        as many as are missing).
        """
        offset = max(offset, 0)
        limit = self._page_size if limit is None else max(limit, 0)
        wanted = offset + limit
        loaded = len(self._merger)

        if limit and wanted > loaded and self._multiplexer.subscribed():
            oldest = self._merger.oldest
            until = oldest.created_at if oldest is not None else int(time.time())
            older = await self._multiplexer.fetch_older(until, wanted - loaded)
            inserted = self._merger.insert_many(older)
            self._logger.debug("feed_paginated", until=until, fetched=len(older), inserted=inserted)

        events = self._merger.events
        end = max(len(events) - offset, 0)
        return events[max(end - limit, 0) : end]

    async def close(self) -> None:
        """Cancel pending grace periods."""
        self._teardown.cancel()
        self._idle.cancel()

    async def _expire(self) -> None:
        if self._merger.listeners:
            return
        self._logger.info("home_feed_teardown")
        await self._multiplexer.stop()
        self._idle.schedule(self._close_idle)

    async def _close_idle(self) -> None:
        if self._merger.listeners or self._multiplexer.active:
            return
        await self._multiplexer.close_idle_connections()
