"""Relay protocol boundary for nostrfeed.

Defines the narrow interface the feed engine consumes from a relay
protocol library (connector, connection, subscription) and provides the
production implementation on top of the ``nostr-sdk`` Python bindings.

Attributes:
    RelayConnector: ``async (url) -> RelayConnection`` factory protocol.
    RelayConnection: One live connection to one relay URL.
    RelaySubscription: One live ``REQ`` on a connection, with filter
        replacement semantics (re-``REQ`` with the same subscription id).
    NostrSdkConnector: nostr-sdk backed connector, one ``nostr_sdk.Client``
        per relay URL.
    build_nostr_filter: Convert a
        [SubscriptionFilter][nostrfeed.models.filter.SubscriptionFilter]
        into a ``nostr_sdk.Filter``.

Note:
    nostr-sdk delivers notifications through a ``HandleNotification``
    callback that may run outside the asyncio loop that owns the feed.
    [_NotificationRouter][nostrfeed.utils.protocol._NotificationRouter]
    snapshots the event and hops onto the owning loop with
    ``call_soon_threadsafe`` before any handler runs, so feed state is only
    ever touched from one loop.

    Overlay networks (Tor, I2P, Lokinet) use ``ConnectionMode.PROXY`` with a
    SOCKS5 proxy and require ``proxy_url``.

Examples:
    ```python
    connector = NostrSdkConnector(patience=2.0)
    connection = await connector("wss://relay.damus.io")
    sub = await connection.subscribe(
        [SubscriptionFilter.home({pubkey})], subscription_id="home", skip_verification=True
    )
    sub.on_event(print)
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from datetime import timedelta
from ipaddress import AddressValueError, IPv4Address, IPv6Address
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlparse

from nostr_sdk import (
    Client,
    ClientBuilder,
    ClientOptions,
    Connection,
    ConnectionMode,
    ConnectionTarget,
    Filter,
    HandleNotification,
    Kind,
    NostrSdkError,
    NostrSigner,
    PublicKey,
    RelayUrl,
    Timestamp,
)

from nostrfeed.core.exceptions import (
    FilterUpdateError,
    RelayConnectionError,
    RelaySSLError,
    RelayTimeoutError,
    SubscriptionError,
)
from nostrfeed.models.event import Event
from nostrfeed.models.relay import Relay


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from nostr_sdk import Event as NostrEvent
    from nostr_sdk import Keys

    from nostrfeed.models.filter import SubscriptionFilter


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 10.0

# Multi-word patterns for SSL/TLS certificate errors in nostr-sdk messages.
_SSL_ERROR_PATTERNS: tuple[str, ...] = (
    "ssl certificate",
    "certificate verify",
    "certificate has expired",
    "self signed certificate",
    "self-signed certificate",
    "unable to get local issuer",
    "x509",
    "tlsv1 alert",
    "ssl handshake",
    "tls handshake failed",
    "ssl error",
    "tls error",
    "cert verify failed",
)


def _is_ssl_error(error_message: str) -> bool:
    """Check if an error message indicates an SSL/TLS certificate error."""
    error_lower = error_message.lower()
    return any(pattern in error_lower for pattern in _SSL_ERROR_PATTERNS)


# ---------------------------------------------------------------------------
# Interface consumed by the feed engine
# ---------------------------------------------------------------------------


class RelaySubscription(Protocol):
    """A live subscription on one relay connection."""

    @property
    def id(self) -> str: ...

    def on_event(self, handler: Callable[[Event], None]) -> None:
        """Register the single handler receiving every matching event."""
        ...

    async def replace_filters(self, filters: Sequence[SubscriptionFilter]) -> None:
        """Replace the live filters, keeping the subscription id.

        Raises:
            FilterUpdateError: If the relay-side update fails.
        """
        ...

    async def close(self) -> None:
        """Close the subscription (best-effort)."""
        ...


class RelayConnection(Protocol):
    """A live connection to exactly one relay URL."""

    @property
    def url(self) -> str: ...

    async def subscribe(
        self,
        filters: Sequence[SubscriptionFilter],
        *,
        subscription_id: str,
        skip_verification: bool = True,
    ) -> RelaySubscription:
        """Open a subscription.

        Raises:
            SubscriptionError: If the relay refuses the subscription.
        """
        ...

    async def fetch_events(
        self, filters: Sequence[SubscriptionFilter], timeout: float = DEFAULT_TIMEOUT
    ) -> list[Event]:
        """Fetch stored events matching *filters* until EOSE or timeout."""
        ...

    async def close(self) -> None: ...


class RelayConnector(Protocol):
    """Factory opening one [RelayConnection][nostrfeed.utils.protocol.RelayConnection].

    Raises:
        RelayConnectionError: If the relay cannot be reached.
    """

    def __call__(self, url: str) -> Awaitable[RelayConnection]: ...


# ---------------------------------------------------------------------------
# nostr-sdk implementation
# ---------------------------------------------------------------------------


def build_nostr_filter(subscription_filter: SubscriptionFilter) -> Filter:
    """Convert a [SubscriptionFilter][nostrfeed.models.filter.SubscriptionFilter] to ``nostr_sdk.Filter``."""
    nostr_filter = (
        Filter()
        .kinds([Kind(k) for k in sorted(subscription_filter.kinds)])
        .authors([PublicKey.parse(a) for a in sorted(subscription_filter.authors)])
    )
    if subscription_filter.until is not None:
        nostr_filter = nostr_filter.until(Timestamp.from_secs(subscription_filter.until))
    if subscription_filter.limit is not None:
        nostr_filter = nostr_filter.limit(subscription_filter.limit)
    return nostr_filter


def _snapshot(nostr_event: NostrEvent, *, verify: bool) -> Event | None:
    """Convert an SDK event, dropping unverifiable or invalid ones."""
    try:
        if verify and not nostr_event.verify():
            return None
        return Event.from_nostr(nostr_event)
    except (ValueError, TypeError, OverflowError) as e:
        logger.debug("event_rejected error=%s", e)
        return None


class _NotificationRouter(HandleNotification):
    """Route SDK notifications to subscriptions by id on the owning loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self._loop = loop
        self._subscriptions: dict[str, NostrSdkSubscription] = {}

    def register(self, subscription: NostrSdkSubscription) -> None:
        self._subscriptions[subscription.id] = subscription

    def unregister(self, subscription_id: str) -> None:
        self._subscriptions.pop(subscription_id, None)

    async def handle(self, relay_url, subscription_id: str, event: NostrEvent) -> bool:  # type: ignore[no-untyped-def]
        subscription = self._subscriptions.get(str(subscription_id))
        if subscription is None:
            return False
        snapshot = _snapshot(event, verify=not subscription.skip_verification)
        if snapshot is not None:
            self._loop.call_soon_threadsafe(subscription.dispatch, snapshot)
        return False

    async def handle_msg(self, relay_url, msg) -> bool:  # type: ignore[no-untyped-def]
        return False


class NostrSdkSubscription:
    """nostr-sdk backed [RelaySubscription][nostrfeed.utils.protocol.RelaySubscription]."""

    def __init__(
        self,
        connection: NostrSdkConnection,
        subscription_id: str,
        *,
        skip_verification: bool,
    ) -> None:
        self._connection = connection
        self._id = subscription_id
        self.skip_verification = skip_verification
        self._handler: Callable[[Event], None] | None = None

    @property
    def id(self) -> str:
        return self._id

    def on_event(self, handler: Callable[[Event], None]) -> None:
        self._handler = handler

    def dispatch(self, event: Event) -> None:
        if self._handler is not None:
            self._handler(event)

    async def open(self, filters: Sequence[SubscriptionFilter]) -> None:
        await self._send(filters)

    async def replace_filters(self, filters: Sequence[SubscriptionFilter]) -> None:
        try:
            await self._send(filters)
        except SubscriptionError as e:
            raise FilterUpdateError(str(e)) from e

    async def close(self) -> None:
        self._connection.router.unregister(self._id)
        # nostr-sdk Rust FFI can raise arbitrary exception types during unsubscribe.
        with contextlib.suppress(Exception):
            await self._connection.client.unsubscribe(self._id)

    async def _send(self, filters: Sequence[SubscriptionFilter]) -> None:
        if len(filters) != 1:
            raise SubscriptionError(f"expected exactly one filter, got {len(filters)}")
        try:
            await self._connection.client.subscribe_with_id(
                self._id, build_nostr_filter(filters[0])
            )
        except (OSError, TimeoutError, NostrSdkError, ValueError) as e:
            raise SubscriptionError(f"REQ {self._id} failed on {self._connection.url}: {e}") from e


class NostrSdkConnection:
    """nostr-sdk backed [RelayConnection][nostrfeed.utils.protocol.RelayConnection]."""

    def __init__(self, url: str, client: Client) -> None:
        self._url = url
        self.client = client
        self.router = _NotificationRouter(asyncio.get_running_loop())
        self._notifications: asyncio.Task[None] | None = None

    @property
    def url(self) -> str:
        return self._url

    def start(self) -> None:
        """Start routing notifications (the SDK call runs until shutdown)."""
        result = self.client.handle_notifications(self.router)
        if asyncio.iscoroutine(result):
            self._notifications = asyncio.get_running_loop().create_task(result)

    async def subscribe(
        self,
        filters: Sequence[SubscriptionFilter],
        *,
        subscription_id: str,
        skip_verification: bool = True,
    ) -> NostrSdkSubscription:
        subscription = NostrSdkSubscription(
            self, subscription_id, skip_verification=skip_verification
        )
        self.router.register(subscription)
        try:
            await subscription.open(filters)
        except SubscriptionError:
            self.router.unregister(subscription_id)
            raise
        return subscription

    async def fetch_events(
        self, filters: Sequence[SubscriptionFilter], timeout: float = DEFAULT_TIMEOUT  # noqa: ASYNC109
    ) -> list[Event]:
        events: list[Event] = []
        for subscription_filter in filters:
            try:
                found = await self.client.fetch_events(
                    build_nostr_filter(subscription_filter), timedelta(seconds=timeout)
                )
            except (OSError, TimeoutError, NostrSdkError) as e:
                raise RelayConnectionError(f"fetch failed: {self._url} ({e})", self._url) from e
            for nostr_event in found.to_vec():
                snapshot = _snapshot(nostr_event, verify=True)
                if snapshot is not None:
                    events.append(snapshot)
        return events

    async def close(self) -> None:
        if self._notifications is not None:
            self._notifications.cancel()
        await _shutdown(self.client)


async def create_client(keys: Keys | None = None, proxy_url: str | None = None) -> Client:
    """Create a nostr-sdk client with an optional signer and SOCKS5 proxy.

    Note:
        When a ``proxy_url`` hostname is not already an IP address, it is
        resolved with ``asyncio.to_thread(socket.gethostbyname)`` because
        nostr-sdk requires a numeric IP for the proxy connection.
    """
    builder = ClientBuilder()

    if keys is not None:
        builder = builder.signer(NostrSigner.keys(keys))

    if proxy_url is not None:
        parsed = urlparse(proxy_url)
        proxy_host = parsed.hostname or "127.0.0.1"
        proxy_port = parsed.port or 9050

        bare_host = proxy_host.strip("[]")
        try:
            IPv4Address(bare_host)
        except (AddressValueError, ValueError):
            try:
                IPv6Address(bare_host)
                proxy_host = bare_host
            except (AddressValueError, ValueError):
                proxy_host = await asyncio.to_thread(socket.gethostbyname, proxy_host)

        proxy_mode = ConnectionMode.PROXY(proxy_host, proxy_port)
        conn = Connection().mode(proxy_mode).target(ConnectionTarget.ONION)
        builder = builder.opts(ClientOptions().connection(conn))

    return builder.build()


async def _shutdown(client: Client) -> None:
    # nostr-sdk Rust FFI can raise arbitrary exception types during shutdown.
    with contextlib.suppress(Exception):
        await client.shutdown()


async def connect_relay(
    relay: Relay,
    keys: Keys | None = None,
    proxy_url: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
) -> Client:
    """Connect a nostr-sdk client to a single relay.

    Raises:
        RelayConnectionError: If the overlay relay has no proxy or the
            connection fails.
        RelaySSLError: If the failure is a TLS certificate problem.
        RelayTimeoutError: If the relay does not answer within *timeout*.
    """
    if relay.is_overlay and proxy_url is None:
        raise RelayConnectionError(
            f"proxy_url required for {relay.network} relay: {relay.url}", relay.url
        )

    logger.debug("relay_connecting relay=%s timeout_s=%s", relay.url, timeout)

    try:
        client = await create_client(keys, proxy_url if relay.is_overlay else None)
    except (OSError, NostrSdkError) as e:
        raise RelayConnectionError(f"Client setup failed: {relay.url} ({e})", relay.url) from e

    try:
        relay_url = RelayUrl.parse(relay.url)
        await client.add_relay(relay_url)
        output = await client.try_connect(timedelta(seconds=timeout))
    except TimeoutError as e:
        await _shutdown(client)
        raise RelayTimeoutError(f"Connection timeout: {relay.url}", relay.url) from e
    except (OSError, NostrSdkError) as e:
        await _shutdown(client)
        error_message = str(e)
    else:
        if relay_url in output.success:
            logger.debug("relay_connected relay=%s", relay.url)
            return client
        await _shutdown(client)
        error_message = str(output.failed.get(relay_url, "Unknown error"))

    logger.debug("relay_connect_failed relay=%s error=%s", relay.url, error_message)

    if _is_ssl_error(error_message):
        raise RelaySSLError(f"SSL failure: {relay.url} ({error_message})", relay.url)
    if "timeout" in error_message.lower():
        raise RelayTimeoutError(f"Connection timeout: {relay.url}", relay.url)
    raise RelayConnectionError(f"Connection failed: {relay.url} ({error_message})", relay.url)


class NostrSdkConnector:
    """Production [RelayConnector][nostrfeed.utils.protocol.RelayConnector].

    Args:
        keys: Optional signing keys (used for NIP-42 auth by the SDK).
        patience: Seconds to wait for each relay handshake.
        proxy_url: SOCKS5 proxy for overlay-network relays.
    """

    def __init__(
        self,
        keys: Keys | None = None,
        *,
        patience: float = 2.0,
        proxy_url: str | None = None,
    ) -> None:
        self._keys = keys
        self._patience = patience
        self._proxy_url = proxy_url

    async def __call__(self, url: str) -> NostrSdkConnection:
        try:
            relay = Relay(url)
        except (TypeError, ValueError) as e:
            raise RelayConnectionError(f"Invalid relay URL {url!r}: {e}", url) from e

        client = await connect_relay(relay, self._keys, self._proxy_url, timeout=self._patience)
        connection = NostrSdkConnection(url, client)
        connection.start()
        return connection
