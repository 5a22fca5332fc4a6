"""
Pytest configuration and shared fixtures for nostrfeed tests.

Provides:
- An in-memory relay connector (connections, subscriptions, stored events)
- Event and public-key factories
- A resolver stub that maps identifiers to profile pointers
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import pytest

from nostrfeed.core.exceptions import (
    FilterUpdateError,
    RelayConnectionError,
    ResolutionError,
    SubscriptionError,
)
from nostrfeed.models import Event, ProfilePointer, SubscriptionFilter


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Sample Data
# ============================================================================


def pubkey_for(n: int) -> str:
    """Deterministic 64-char hex public key."""
    return f"{n:064x}"


PK_A = pubkey_for(0xA)
PK_B = pubkey_for(0xB)
PK_C = pubkey_for(0xC)


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Factory building valid events with deterministic ids."""
    counter = iter(range(1, 1_000_000))

    def factory(
        event_id: str | None = None,
        *,
        created_at: int = 1_700_000_000,
        pubkey: str = PK_A,
        kind: int = 1,
        tags: Any = (),
        content: str = "gm",
    ) -> Event:
        if event_id is None:
            event_id = f"{next(counter):064x}"
        elif len(event_id) != 64:
            event_id = event_id * (64 // len(event_id))
        return Event(
            id=event_id,
            pubkey=pubkey,
            created_at=created_at,
            kind=kind,
            tags=tags,
            content=content,
        )

    return factory


# ============================================================================
# In-memory relay protocol
# ============================================================================


def _matches(event: Event, subscription_filter: SubscriptionFilter) -> bool:
    if event.kind not in subscription_filter.kinds:
        return False
    if event.pubkey not in subscription_filter.authors:
        return False
    return subscription_filter.until is None or event.created_at <= subscription_filter.until


class FakeSubscription:
    """Records filter history and lets tests push events."""

    def __init__(
        self,
        relay: FakeConnection,
        subscription_id: str,
        filters: list[SubscriptionFilter],
        skip_verification: bool,
    ) -> None:
        self.relay = relay
        self._id = subscription_id
        self.filters = filters
        self.history = [filters]
        self.skip_verification = skip_verification
        self.handler: Callable[[Event], None] | None = None
        self.closed = False

    @property
    def id(self) -> str:
        return self._id

    @property
    def authors(self) -> set[str]:
        return set().union(*(f.authors for f in self.filters))

    def on_event(self, handler: Callable[[Event], None]) -> None:
        self.handler = handler

    async def replace_filters(self, filters: list[SubscriptionFilter]) -> None:
        if self.relay.connector.fail_replace:
            raise FilterUpdateError(f"replace rejected by {self.relay.url}")
        self.filters = list(filters)
        self.history.append(self.filters)

    async def close(self) -> None:
        self.closed = True

    def emit(self, event: Event) -> None:
        if self.handler is not None and not self.closed:
            self.handler(event)


class FakeConnection:
    """One in-memory relay connection."""

    def __init__(self, connector: FakeConnector, url: str) -> None:
        self.connector = connector
        self._url = url
        self.subscriptions: list[FakeSubscription] = []
        self.fetches: list[list[SubscriptionFilter]] = []
        self.closed = False

    @property
    def url(self) -> str:
        return self._url

    async def subscribe(
        self,
        filters: list[SubscriptionFilter],
        *,
        subscription_id: str,
        skip_verification: bool = True,
    ) -> FakeSubscription:
        if self._url in self.connector.refuse_subscribe:
            raise SubscriptionError(f"REQ refused by {self._url}")
        subscription = FakeSubscription(self, subscription_id, list(filters), skip_verification)
        self.subscriptions.append(subscription)
        return subscription

    async def fetch_events(
        self, filters: list[SubscriptionFilter], timeout: float = 10.0
    ) -> list[Event]:
        self.fetches.append(list(filters))
        if self._url in self.connector.failing_fetch:
            raise RelayConnectionError(f"fetch failed: {self._url}", self._url)
        found: list[Event] = []
        for subscription_filter in filters:
            matched = [
                e for e in self.connector.stored.get(self._url, []) if _matches(e, subscription_filter)
            ]
            matched.sort(key=lambda e: e.sort_key, reverse=True)
            if subscription_filter.limit is not None:
                matched = matched[: subscription_filter.limit]
            found.extend(matched)
        return found

    async def close(self) -> None:
        self.closed = True

    @property
    def open_subscriptions(self) -> list[FakeSubscription]:
        return [s for s in self.subscriptions if not s.closed]


class FakeConnector:
    """In-memory ``RelayConnector`` with failure injection.

    Attributes:
        connections: Every connection opened, by URL (latest wins).
        connect_calls: URLs in the order connects were attempted.
        failing: URLs whose connect raises ``RelayConnectionError``.
        refuse_subscribe: URLs whose ``subscribe`` raises ``SubscriptionError``.
        failing_fetch: URLs whose ``fetch_events`` raises.
        fail_replace: Make every ``replace_filters`` raise ``FilterUpdateError``.
        stored: Events each relay returns from ``fetch_events``.
        delay: Seconds each connect takes.
    """

    def __init__(self) -> None:
        self.connections: dict[str, FakeConnection] = {}
        self.connect_calls: list[str] = []
        self.failing: set[str] = set()
        self.refuse_subscribe: set[str] = set()
        self.failing_fetch: set[str] = set()
        self.fail_replace = False
        self.stored: dict[str, list[Event]] = {}
        self.delay = 0.0

    async def __call__(self, url: str) -> FakeConnection:
        self.connect_calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if url in self.failing:
            raise RelayConnectionError(f"Connection failed: {url}", url)
        connection = FakeConnection(self, url)
        self.connections[url] = connection
        return connection

    def subscription(self, url: str) -> FakeSubscription | None:
        """The open subscription on *url*, if any."""
        connection = self.connections.get(url)
        if connection is None:
            return None
        open_subs = connection.open_subscriptions
        return open_subs[-1] if open_subs else None

    def emit(self, url: str, event: Event) -> None:
        subscription = self.subscription(url)
        assert subscription is not None, f"no open subscription on {url}"
        subscription.emit(event)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


# ============================================================================
# Resolver stub
# ============================================================================


class StubResolver:
    """Maps identifiers to pointers; unknown identifiers fail to resolve."""

    def __init__(self) -> None:
        self.pointers: dict[str, ProfilePointer] = {}
        self.calls: list[str] = []

    def add(self, identifier: str, pubkey: str, *relays: str) -> None:
        self.pointers[identifier] = ProfilePointer(pubkey=pubkey, relays=relays)

    async def __call__(self, identifier: str) -> ProfilePointer:
        self.calls.append(identifier)
        if identifier in self.pointers:
            return self.pointers[identifier]
        if len(identifier) == 64:
            return ProfilePointer(pubkey=identifier.lower())
        raise ResolutionError(f"cannot resolve {identifier!r} as a nostr profile")


@pytest.fixture
def resolver() -> StubResolver:
    return StubResolver()
