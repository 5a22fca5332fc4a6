"""Per-relay home-feed subscriptions.

The [SubscriptionMultiplexer][nostrfeed.feed.multiplexer.SubscriptionMultiplexer]
keeps, for every relay URL, the set of followed keys whose notes are read
from that relay and at most one live subscription carrying exactly that
author set. Following a key widens the filter of the relays selected for it;
unfollowing narrows it again and closes subscriptions whose author set
becomes empty.

Each relay is an independent [RelayFeed][nostrfeed.feed.multiplexer.RelayFeed]
with its own ``asyncio.Lock``: connect-and-subscribe is one logical step, and
concurrent follows landing on the same relay are serialized so neither can
lose the other's author.

Relay state machine:

```text
UNCONNECTED --(lock, connect)--> CONNECTING --(subscribe ok)--> SUBSCRIBED
     ^                               |                              |
     +-------(connect/subscribe fails)                              |
     +---------------(author set empties / stop())------------------+
```

See Also:
    [ConnectionTable][nostrfeed.feed.connections.ConnectionTable]: The shared
        connection per URL used by every relay feed.
    [select_relays()][nostrfeed.feed.scorer.select_relays]: Produces the
        relay set for each followed key.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from nostrfeed.core.exceptions import (
    FilterUpdateError,
    NostrFeedError,
    RelayConnectionError,
    SubscriptionError,
)
from nostrfeed.core.logger import Logger
from nostrfeed.core.metrics import FeedMetrics
from nostrfeed.models.constants import EventKind
from nostrfeed.models.filter import SubscriptionFilter


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from nostrfeed.models.event import Event
    from nostrfeed.utils.protocol import RelaySubscription

    from .connections import ConnectionTable


DEFAULT_SUBSCRIPTION_ID = "home"
DEFAULT_FETCH_TIMEOUT = 10.0


class RelayState(StrEnum):
    """Lifecycle of one relay's home-feed subscription."""

    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"


@dataclass(slots=True)
class RelayFeed:
    """One relay's author set, subscription and lock."""

    url: str
    authors: set[str] = field(default_factory=set)
    state: RelayState = RelayState.UNCONNECTED
    subscription: RelaySubscription | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class SubscriptionMultiplexer:
    """Maintains one author-filtered subscription per relay.

    Args:
        connections: Shared connection table.
        selector: Maps a followed key to its (deduplicated) relay URLs.
        on_event: Called with ``(event, relay_url)`` for every event a
            subscription delivers.
        subscription_id: Id used for every home-feed ``REQ``.
        kinds: Event kinds carried by the home feed.
        skip_verification: Passed through to each subscription.
        fetch_timeout: Timeout for stored-event queries.
        metrics: Optional metrics recorder.

    Note:
        While inactive (no listeners), follows only update author sets; the
        subscriptions are materialized by [start()][nostrfeed.feed.multiplexer.SubscriptionMultiplexer.start].
    """

    def __init__(
        self,
        connections: ConnectionTable,
        selector: Callable[[str], list[str]],
        on_event: Callable[[Event, str], None],
        *,
        subscription_id: str = DEFAULT_SUBSCRIPTION_ID,
        kinds: Iterable[int] = (EventKind.TEXT_NOTE,),
        skip_verification: bool = True,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        metrics: FeedMetrics | None = None,
    ) -> None:
        self._connections = connections
        self._select = selector
        self._on_event = on_event
        self._subscription_id = subscription_id
        self._kinds = frozenset(int(k) for k in kinds)
        self._skip_verification = skip_verification
        self._fetch_timeout = fetch_timeout
        self._metrics = metrics or FeedMetrics()
        self._feeds: dict[str, RelayFeed] = {}
        # Selection last applied per followed key.
        self._selected: dict[str, frozenset[str]] = {}
        self._active = False
        self._logger = Logger("multiplexer")

    # -------------------------------------------------------------------------
    # Read accessors
    # -------------------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self._active

    @property
    def connections(self) -> ConnectionTable:
        return self._connections

    def snapshot(self) -> dict[str, list[str]]:
        """Return ``{url: sorted authors}`` for relays with a non-empty author set."""
        return {url: sorted(feed.authors) for url, feed in self._feeds.items() if feed.authors}

    def states(self) -> dict[str, RelayState]:
        return {url: feed.state for url, feed in self._feeds.items()}

    def subscribed(self) -> list[str]:
        return [url for url, feed in self._feeds.items() if feed.state is RelayState.SUBSCRIBED]

    def home_filter(self, authors: Iterable[str]) -> SubscriptionFilter:
        return SubscriptionFilter(kinds=self._kinds, authors=frozenset(authors))

    # -------------------------------------------------------------------------
    # Follow updates
    # -------------------------------------------------------------------------

    async def add_follow(self, pubkey: str) -> list[str]:
        """Add *pubkey* to the subscriptions of its selected relays.

        Relays are processed concurrently. A relay that cannot be reached is
        left out; the others proceed.

        Returns:
            The relay URLs now carrying *pubkey*.
        """
        urls = self._select(pubkey)
        self._selected[pubkey] = frozenset(urls)
        results = await asyncio.gather(*(self._add_to_relay(url, pubkey) for url in urls))
        carrying = [url for url, ok in zip(urls, results, strict=True) if ok]
        self._logger.debug(
            "follow_multiplexed", pubkey=pubkey, selected=len(urls), relays=len(carrying)
        )
        return carrying

    async def remove_follow(self, pubkey: str) -> None:
        """Remove *pubkey* from every relay, closing emptied subscriptions."""
        self._selected.pop(pubkey, None)
        feeds = [feed for feed in self._feeds.values() if pubkey in feed.authors]
        await asyncio.gather(*(self._remove_from_relay(feed, pubkey) for feed in feeds))
        self._update_gauges()

    def selection_changed(self, pubkey: str) -> bool:
        """Whether the followed *pubkey*'s selection differs from the one applied."""
        applied = self._selected.get(pubkey)
        return applied is not None and frozenset(self._select(pubkey)) != applied

    async def reselect(self, pubkey: str) -> None:
        """Move a followed *pubkey* onto its current selection.

        The key leaves every relay no longer selected for it (closing
        subscriptions that empty) and joins the newly selected ones. Unknown
        keys and unchanged selections are no-ops.
        """
        if not self.selection_changed(pubkey):
            return
        urls = self._select(pubkey)
        self._selected[pubkey] = frozenset(urls)
        stale = [
            feed
            for feed in self._feeds.values()
            if pubkey in feed.authors and feed.url not in self._selected[pubkey]
        ]
        fresh = [url for url in urls if pubkey not in self._feed(url).authors]
        await asyncio.gather(
            *(self._remove_from_relay(feed, pubkey) for feed in stale),
            *(self._add_to_relay(url, pubkey) for url in fresh),
        )
        self._update_gauges()
        self._logger.debug(
            "follow_reselected", pubkey=pubkey, dropped=len(stale), added=len(fresh)
        )

    async def _add_to_relay(self, url: str, pubkey: str) -> bool:
        feed = self._feed(url)
        async with feed.lock:
            if not self._active:
                feed.authors.add(pubkey)
                return True

            if feed.state is RelayState.SUBSCRIBED:
                if pubkey in feed.authors:
                    return True
                feed.authors.add(pubkey)
                await self._replace_filters(feed)
                return True

            known = pubkey in feed.authors
            feed.authors.add(pubkey)
            if await self._materialize(feed):
                return True
            if not known:
                feed.authors.discard(pubkey)
            return False

    async def _remove_from_relay(self, feed: RelayFeed, pubkey: str) -> None:
        async with feed.lock:
            if pubkey not in feed.authors:
                return
            feed.authors.discard(pubkey)
            if feed.state is not RelayState.SUBSCRIBED:
                return
            if feed.authors:
                await self._replace_filters(feed)
            else:
                await self._unsubscribe(feed)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self, pubkeys: Iterable[str]) -> None:
        """Mark active and subscribe every relay selected for *pubkeys*.

        Author sets are rebuilt from the current selection of each key, so
        relays that lost a key while inactive no longer carry it. Calling
        ``start()`` while already active is a no-op.
        """
        if self._active:
            return
        self._active = True
        self._selected = {pubkey: frozenset(self._select(pubkey)) for pubkey in pubkeys}
        for feed in self._feeds.values():
            feed.authors.clear()
        for pubkey, urls in self._selected.items():
            for url in urls:
                self._feed(url).authors.add(pubkey)

        feeds = [feed for feed in self._feeds.values() if feed.authors]
        self._logger.info("multiplexer_starting", relays=len(feeds))
        await asyncio.gather(*(self._ensure_subscribed(feed) for feed in feeds))
        self._update_gauges()

    async def stop(self) -> None:
        """Close every subscription, keeping author sets and connections."""
        self._active = False
        feeds = list(self._feeds.values())
        await asyncio.gather(*(self._stop_feed(feed) for feed in feeds))
        self._update_gauges()
        self._logger.info("multiplexer_stopped", relays=len(feeds))

    async def close_idle_connections(self) -> list[str]:
        """Close connections whose relay has no open subscription.

        Relays with a connect in flight are left alone.

        Returns:
            The URLs that were closed.
        """
        closed: list[str] = []
        for url in self._connections.urls:
            feed = self._feeds.get(url)
            busy = feed is not None and (
                feed.state is not RelayState.UNCONNECTED or feed.lock.locked()
            )
            if busy or self._connections.connecting(url):
                continue
            if await self._connections.close(url):
                closed.append(url)
        if closed:
            self._logger.info("idle_connections_closed", count=len(closed))
        return closed

    async def close(self) -> None:
        """Stop and close every connection."""
        await self.stop()
        await self._connections.close_all()
        self._feeds.clear()
        self._selected.clear()

    async def _ensure_subscribed(self, feed: RelayFeed) -> None:
        async with feed.lock:
            if not self._active or not feed.authors or feed.state is RelayState.SUBSCRIBED:
                return
            await self._materialize(feed)

    async def _stop_feed(self, feed: RelayFeed) -> None:
        async with feed.lock:
            if feed.state is RelayState.SUBSCRIBED:
                await self._unsubscribe(feed)

    # -------------------------------------------------------------------------
    # Relay operations (caller holds feed.lock)
    # -------------------------------------------------------------------------

    async def _materialize(self, feed: RelayFeed) -> bool:
        """Connect (or reuse the connection) and subscribe with the author set."""
        feed.state = RelayState.CONNECTING
        try:
            connection = await self._connections.get(feed.url)
            subscription = await connection.subscribe(
                [self.home_filter(feed.authors)],
                subscription_id=self._subscription_id,
                skip_verification=self._skip_verification,
            )
        except RelayConnectionError:
            # Already logged by the connection table.
            feed.state = RelayState.UNCONNECTED
            return False
        except SubscriptionError as e:
            feed.state = RelayState.UNCONNECTED
            self._metrics.operation("subscribe", "failure")
            self._logger.warning("relay_subscribe_failed", url=feed.url, error=str(e))
            return False
        except BaseException:
            # Cancellation or an unmapped error: never leave the relay CONNECTING.
            feed.state = RelayState.UNCONNECTED
            raise

        url = feed.url

        def deliver(event: Event) -> None:
            if feed.subscription is subscription:
                self._on_event(event, url)

        subscription.on_event(deliver)
        feed.subscription = subscription
        feed.state = RelayState.SUBSCRIBED
        self._metrics.operation("subscribe", "success")
        self._logger.info("relay_subscribed", url=url, authors=len(feed.authors))
        return True

    async def _replace_filters(self, feed: RelayFeed) -> None:
        assert feed.subscription is not None  # noqa: S101  # guaranteed by SUBSCRIBED
        try:
            await feed.subscription.replace_filters([self.home_filter(feed.authors)])
        except FilterUpdateError as e:
            self._metrics.operation("replace_filters", "failure")
            self._logger.warning(
                "relay_filter_drift", url=feed.url, authors=len(feed.authors), error=str(e)
            )
            return
        self._metrics.operation("replace_filters", "success")
        self._logger.debug("relay_filter_updated", url=feed.url, authors=len(feed.authors))

    async def _unsubscribe(self, feed: RelayFeed) -> None:
        subscription = feed.subscription
        feed.subscription = None
        feed.state = RelayState.UNCONNECTED
        if subscription is None:
            return
        try:
            await subscription.close()
        except NostrFeedError as e:
            self._logger.debug("relay_unsubscribe_failed", url=feed.url, error=str(e))
        self._logger.info("relay_unsubscribed", url=feed.url)

    # -------------------------------------------------------------------------
    # Stored-event queries
    # -------------------------------------------------------------------------

    async def fetch_older(self, until: int, limit: int) -> list[Event]:
        """Query every subscribed relay for its authors' notes before *until*.

        Relays that fail are skipped. Events may repeat across relays.
        """
        queries = [
            (feed.url, [self.home_filter(feed.authors).page(until, limit)])
            for feed in self._feeds.values()
            if feed.state is RelayState.SUBSCRIBED and feed.authors
        ]
        results = await asyncio.gather(
            *(self._fetch_from(url, filters, connect=False) for url, filters in queries)
        )
        return [event for events in results for event in events]

    async def fetch(self, urls: Iterable[str], filters: Sequence[SubscriptionFilter]) -> list[Event]:
        """Query *urls* for stored events, connecting where needed.

        Relays that fail are skipped. Events may repeat across relays.
        """
        results = await asyncio.gather(
            *(self._fetch_from(url, filters, connect=True) for url in dict.fromkeys(urls))
        )
        return [event for events in results for event in events]

    async def _fetch_from(
        self, url: str, filters: Sequence[SubscriptionFilter], *, connect: bool
    ) -> list[Event]:
        try:
            if connect:
                connection = await self._connections.get(url)
            else:
                connection = self._connections.peek(url)
                if connection is None:
                    return []
            events = await connection.fetch_events(filters, self._fetch_timeout)
        except (RelayConnectionError, SubscriptionError) as e:
            self._metrics.operation("fetch", "failure")
            self._logger.warning("relay_fetch_failed", url=url, error=str(e))
            return []
        self._metrics.operation("fetch", "success")
        self._logger.debug("relay_fetched", url=url, events=len(events))
        return events

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _feed(self, url: str) -> RelayFeed:
        feed = self._feeds.get(url)
        if feed is None:
            feed = RelayFeed(url)
            self._feeds[url] = feed
        return feed

    def _update_gauges(self) -> None:
        self._metrics.gauge("subscriptions", len(self.subscribed()))
