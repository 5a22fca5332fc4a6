"""The nostrfeed client facade.

[Client][nostrfeed.feed.client.Client] owns every table of the engine (follow
set, evidence records, fallback pool, connections, home feed, document
caches) and wires the components together:

* ``follows.add()`` resolves an identifier through the
  [ProfileRegistry][nostrfeed.feed.registry.ProfileRegistry], then hands the
  key to the [SubscriptionMultiplexer][nostrfeed.feed.multiplexer.SubscriptionMultiplexer].
* Every event a subscription delivers is inserted into the
  [FeedMerger][nostrfeed.feed.merger.FeedMerger] and feeds evidence back
  into the registry: the delivering relay becomes ``seen`` for the author,
  and ``p``-tag relays become ``hinted`` for the referenced keys.
* New evidence or a fallback-pool change that moves a followed key's
  selection moves the key onto its new relays in a background task
  (``settle()`` waits for them).
* ``home_feed`` is the listener-driven
  [HomeFeed][nostrfeed.feed.lifecycle.HomeFeed].

Examples:
    ```python
    async with Client.from_yaml("config.yaml") as client:
        await client.follows.add("npub1...", "wss://relay.example.com")
        await client.home_feed.on_change(lambda: print("feed changed"))
        notes = await client.home_feed.events(limit=20)
    ```
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Self

from pydantic import ValidationError

from nostrfeed.core.cache import DocumentCache
from nostrfeed.core.exceptions import ConfigurationError
from nostrfeed.core.logger import Logger
from nostrfeed.core.metrics import FeedMetrics
from nostrfeed.core.yaml import load_yaml
from nostrfeed.models.constants import EventKind
from nostrfeed.models.filter import SubscriptionFilter
from nostrfeed.models.relay import normalize_relay_url
from nostrfeed.nips.tags import extract_relay_hints
from nostrfeed.utils.protocol import NostrSdkConnector

from .configs import ClientConfig
from .connections import ConnectionTable
from .lifecycle import HomeFeed
from .merger import FeedMerger
from .multiplexer import SubscriptionMultiplexer
from .registry import ProfileRegistry
from .scorer import event_age, select_relays, unique_relays


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Iterator
    from pathlib import Path
    from types import TracebackType

    from nostrfeed.core.cache import DocumentStore
    from nostrfeed.models.event import Event
    from nostrfeed.models.evidence import ProfilePointer
    from nostrfeed.utils.protocol import RelayConnector


FALLBACK = "fallback"


class Follows:
    """``client.follows``: add, remove and list followed keys."""

    def __init__(self, client: Client) -> None:
        self._client = client

    async def add(self, identifier: str, *relays: str) -> str:
        """Follow *identifier*, reading it from *relays* first.

        Returns:
            The followed key as lowercase hex.

        Raises:
            ResolutionError: If the identifier cannot be resolved.
        """
        pubkey = await self._client.registry.resolve_and_follow(identifier, *relays)
        await self._client.multiplexer.add_follow(pubkey)
        return pubkey

    async def remove(self, pubkey: str) -> None:
        """Unfollow *pubkey*; relays still serving other keys are untouched."""
        self._client.registry.unfollow(pubkey)
        await self._client.multiplexer.remove_follow(pubkey)

    def list(self) -> list[str]:
        return self._client.registry.follows


class FallbackPool:
    """``client.relays.fallback``: the ordered pool used to pad selections.

    URLs are normalized on the way in. Every mutation calls *on_change* so
    followed keys move onto their new selection.
    """

    def __init__(self, urls: Iterable[str], on_change: Callable[[], None] | None = None) -> None:
        self._urls = dict.fromkeys(normalize_relay_url(url) for url in urls)
        self._on_change = on_change

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._urls))

    def __len__(self) -> int:
        return len(self._urls)

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def add(self, url: str) -> None:
        """Append *url* to the pool.

        Raises:
            ValueError: If *url* is not a valid relay URL.
        """
        url = normalize_relay_url(url)
        if url not in self._urls:
            self._urls[url] = None
            self._changed()

    def remove(self, url: str) -> None:
        url = normalize_relay_url(url)
        if url in self._urls:
            del self._urls[url]
            self._changed()

    def clear(self) -> None:
        if self._urls:
            self._urls.clear()
            self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


class Relays:
    """``client.relays``: the relay map and the fallback pool."""

    def __init__(self, client: Client) -> None:
        self._client = client

    @property
    def fallback(self) -> FallbackPool:
        return self._client.fallback_pool

    def get(self) -> dict[str, dict[str, Any]]:
        """Return ``{url: {"writes": bool, "reads": [pubkey | "fallback"]}}``.

        ``reads`` lists ``"fallback"`` for fallback relays, then every
        followed key whose selection includes the relay.
        """
        client = self._client
        relays: dict[str, dict[str, Any]] = {}

        def entry(url: str) -> dict[str, Any]:
            return relays.setdefault(url, {"writes": False, "reads": []})

        for url in client.fallback_pool:
            entry(url)["reads"].append(FALLBACK)
        for url in client.config.write:
            entry(url)["writes"] = True
        for pubkey in client.registry.follows:
            for url in client.selection(pubkey):
                entry(url)["reads"].append(pubkey)
        return relays


class Client:
    """Relay-selecting home-feed client.

    Args:
        config: Client configuration.
        connector: Relay connector; defaults to
            [NostrSdkConnector][nostrfeed.utils.protocol.NostrSdkConnector].
        resolver: Identifier resolver; defaults to
            [resolve_profile()][nostrfeed.nips.resolve_profile].
        cache: Document caches; sized from ``config.cache`` by default.
        seen_scorer: ``(event, relay_url, now) -> score`` used for seen and
            hinted evidence (lower is better); defaults to the event's age.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        connector: RelayConnector | None = None,
        resolver: Callable[[str], Awaitable[ProfilePointer]] | None = None,
        cache: DocumentCache | None = None,
        seen_scorer: Callable[[Event, str, float], float] | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._logger = Logger("client")
        self._metrics = FeedMetrics(self.config.metrics)
        self._score = seen_scorer or event_age
        self._kinds = frozenset(self.config.subscription.kinds)
        self._reselections: set[asyncio.Task[None]] = set()

        if connector is None:
            connector = NostrSdkConnector(
                self.config.keys.keys if self.config.keys is not None else None,
                patience=self.config.patience,
                proxy_url=self.config.proxy_url,
            )
        self.cache = cache or DocumentCache.with_capacity(
            self.config.cache.kind0, self.config.cache.kind3, self.config.cache.kind1
        )

        self.registry = ProfileRegistry(resolver)
        self.fallback_pool = FallbackPool(self.config.fallback, self._fallback_changed)
        self.connections = ConnectionTable(connector, self._metrics)
        self.merger = FeedMerger(self.cache.kind1, self._metrics)
        self.multiplexer = SubscriptionMultiplexer(
            self.connections,
            self.selection,
            self._handle_event,
            subscription_id=self.config.subscription.id,
            kinds=self._kinds,
            skip_verification=self.config.subscription.skip_verification,
            fetch_timeout=self.config.lifecycle.fetch_timeout,
            metrics=self._metrics,
        )
        self.home_feed = HomeFeed(
            self.merger,
            self.multiplexer,
            lambda: self.registry.follows,
            listener_grace=self.config.lifecycle.listener_grace,
            connection_grace=self.config.lifecycle.connection_grace,
            page_size=self.config.lifecycle.page_size,
            metrics=self._metrics,
        )
        self.follows = Follows(self)
        self.relays = Relays(self)

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> Self:
        """Create a client from a YAML configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML or the configuration is invalid.
        """
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Create a client from a configuration dictionary.

        Raises:
            ConfigurationError: If the configuration is invalid (including a
                missing private key environment variable).
        """
        try:
            config = ClientConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid client configuration: {e}") from e
        return cls(config, **kwargs)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def public_key(self) -> str | None:
        """Hex public key derived from the private key, or the configured one."""
        return self.config.public_key

    @property
    def limit(self) -> int:
        return self.config.selection.max_relays_per_profile

    def note(self, event_id: str) -> Event | None:
        """Return a cached note by id."""
        cached = self.cache.kind1.get(event_id)
        return cached if cached is not None else self.merger.get(event_id)

    async def metadata(self, pubkey: str) -> Event | None:
        """Return the newest kind-0 profile metadata of *pubkey*.

        Served from the kind-0 cache when present, otherwise fetched from
        the relays selected for *pubkey*.
        """
        return await self._fetch_document(pubkey, EventKind.SET_METADATA, self.cache.kind0)

    async def contacts(self, pubkey: str) -> Event | None:
        """Return the newest kind-3 contact list of *pubkey*.

        Relay hints carried by its ``p`` tags are recorded as evidence for
        the listed keys.
        """
        return await self._fetch_document(pubkey, EventKind.CONTACTS, self.cache.kind3)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel timers, close every subscription and connection."""
        for task in self._reselections:
            task.cancel()
        await asyncio.gather(*self._reselections, return_exceptions=True)
        await self.home_feed.close()
        await self.multiplexer.close()
        self._logger.info("client_closed")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def selection(self, pubkey: str) -> list[str]:
        """Deduplicated relays currently selected for *pubkey*."""
        evidence = self.registry.evidence_for(pubkey)
        return unique_relays(select_relays(evidence, self.fallback_pool, self.limit))

    def _handle_event(self, event: Event, relay_url: str) -> None:
        if event.kind not in self._kinds:
            self._logger.debug("event_unexpected_kind", url=relay_url, kind=event.kind)
            return
        self.merger.insert(event)
        self._record_evidence(event, relay_url)

    def _record_evidence(self, event: Event, relay_url: str | None) -> None:
        now = time.time()
        changed: list[str] = []
        if relay_url is not None and self.registry.record_seen(
            event.pubkey, relay_url, self._score(event, relay_url, now)
        ):
            changed.append(event.pubkey)
        for pubkey, url in extract_relay_hints(event):
            if self.registry.add_hint(pubkey, url, self._score(event, url, now)):
                changed.append(pubkey)
        self._reselect(changed)

    def _fallback_changed(self) -> None:
        self._reselect(self.registry.follows)

    def _reselect(self, pubkeys: Iterable[str]) -> None:
        """Schedule reselection for followed keys whose selection moved."""
        moved = [pk for pk in dict.fromkeys(pubkeys) if self.multiplexer.selection_changed(pk)]
        if not moved:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: start() rebuilds author sets from the current selection.
            self._logger.debug("reselect_deferred", pubkeys=len(moved))
            return
        task = loop.create_task(self._apply_reselect(moved))
        self._reselections.add(task)
        task.add_done_callback(self._reselect_done)

    def _reselect_done(self, task: asyncio.Task[None]) -> None:
        self._reselections.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._logger.warning("reselect_failed", error=str(task.exception()))

    async def _apply_reselect(self, pubkeys: list[str]) -> None:
        await asyncio.gather(*(self.multiplexer.reselect(pk) for pk in pubkeys))
        self._logger.debug("reselected", pubkeys=len(pubkeys))

    async def settle(self) -> None:
        """Wait until scheduled reselections have been applied.

        Failed reselections are logged, not raised.
        """
        while self._reselections:
            await asyncio.gather(*self._reselections, return_exceptions=True)

    async def _fetch_document(self, pubkey: str, kind: int, cache: DocumentStore) -> Event | None:
        cached = cache.get(pubkey)
        if cached is not None:
            return cached

        urls = self.selection(pubkey)
        query = SubscriptionFilter(kinds=frozenset({int(kind)}), authors=frozenset({pubkey}))
        events = [e for e in await self.multiplexer.fetch(urls, [query]) if e.pubkey == pubkey]
        if not events:
            self._logger.debug("document_not_found", pubkey=pubkey, kind=int(kind))
            return None

        newest = max(events, key=lambda e: e.sort_key)
        cache.put(pubkey, newest)
        if kind == EventKind.CONTACTS:
            self._record_evidence(newest, None)
        return newest
