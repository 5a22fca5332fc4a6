"""
Relay URLs: canonical keys and network classification.

Relay URLs reach the client from many places: follow arguments, ``nprofile``
and NIP-05 relay lists, ``p``-tag hints on notes, the configured fallback and
write relays. [normalize_relay_url()][nostrfeed.models.relay.normalize_relay_url]
reduces each of them to one canonical string before it is stored, so
``wss://Relay.Example.com:443/`` and ``wss://relay.example.com`` share one
evidence entry, one connection and one home subscription.

[Relay][nostrfeed.models.relay.Relay] is the stricter view used at the
connection boundary: it classifies the host (clearnet, Tor, I2P, Lokinet),
rejects local and private addresses and picks the scheme per network.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from ipaddress import ip_address

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from .constants import NetworkType


_DEFAULT_PORTS = {"ws": 80, "wss": 443}
_OVERLAY_SUFFIXES = {
    ".onion": NetworkType.TOR,
    ".i2p": NetworkType.I2P,
    ".loki": NetworkType.LOKI,
}
_VALIDATOR = (
    Validator()
    .require_presence_of("scheme", "host")
    .allow_schemes("ws", "wss")
    .check_validity_of("scheme", "host", "port", "path")
)


def _split(url: str) -> tuple[str, str, int | None, str]:
    """Parse *url* into ``(scheme, host, port, path)`` after RFC 3986 normalization."""
    if "\x00" in url:
        raise ValueError("Relay URL contains null bytes")
    uri = uri_reference(url.strip()).normalize()
    try:
        _VALIDATOR.validate(uri)
    except UnpermittedComponentError:
        raise ValueError(f"Invalid scheme in {url!r}: must be ws or wss") from None
    except ValidationError as e:
        raise ValueError(f"Invalid relay URL {url!r}: {e}") from None
    if uri.query:
        raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
    if uri.fragment:
        raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

    port = int(uri.port) if uri.port else None
    if port == _DEFAULT_PORTS[uri.scheme]:
        port = None
    path = re.sub("/{2,}", "/", uri.path or "").rstrip("/")
    return uri.scheme, uri.host, port, path


def _join(scheme: str, host: str, port: int | None, path: str) -> str:
    netloc = host if port is None else f"{host}:{port}"
    return f"{scheme}://{netloc}{path}"


def normalize_relay_url(url: str) -> str:
    """Return the canonical form of a ``ws``/``wss`` relay URL.

    Lowercases scheme and host, drops the scheme's default port, collapses
    repeated slashes and strips the trailing slash. The scheme itself is
    kept as given.

    Raises:
        ValueError: If *url* is not a ``ws``/``wss`` URL with a host, or
            carries a query, a fragment or null bytes.
    """
    return _join(*_split(url))


def detect_network(host: str) -> NetworkType:
    """Classify a host (brackets allowed around IPv6 literals)."""
    bare = host.lower().strip("[]")
    if not bare:
        return NetworkType.UNKNOWN
    for suffix, network in _OVERLAY_SUFFIXES.items():
        if bare.endswith(suffix):
            return network
    if bare in ("localhost", "localhost.localdomain"):
        return NetworkType.LOCAL
    try:
        ip = ip_address(bare)
    except ValueError:
        labels = bare.split(".")
        if len(labels) < 2 or any(
            not label or label.startswith("-") or label.endswith("-") for label in labels
        ):
            return NetworkType.UNKNOWN
        return NetworkType.CLEARNET
    return NetworkType.CLEARNET if ip.is_global else NetworkType.LOCAL


@dataclass(frozen=True, slots=True)
class Relay:
    """A relay URL validated for connecting.

    Attributes:
        url: Canonical URL; clearnet relays use ``wss``, overlay relays ``ws``.
        network: Detected network type.
        scheme: ``ws`` or ``wss``.
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Non-default port, or ``None``.
        path: Path without trailing slash, or ``None``.

    Raises:
        TypeError: If *raw_url* is not a string.
        ValueError: If the URL is malformed, local, or its host cannot be
            classified.

    Examples:
        ```python
        Relay("wss://relay.damus.io/").url   # 'wss://relay.damus.io'
        Relay("wss://abc123.onion").url      # 'ws://abc123.onion'
        ```
    """

    raw_url: str = field(repr=False)

    url: str = field(init=False)
    network: NetworkType = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)

    def __post_init__(self) -> None:
        if not isinstance(self.raw_url, str):
            raise TypeError(f"raw_url must be a str, got {type(self.raw_url).__name__}")

        _, host, port, path = _split(self.raw_url)
        network = detect_network(host)
        if network == NetworkType.LOCAL:
            raise ValueError("Local addresses not allowed")
        if network == NetworkType.UNKNOWN:
            raise ValueError(f"Invalid host: '{host}'")

        # Clearnet requires TLS; overlay networks encrypt on their own.
        scheme = "wss" if network == NetworkType.CLEARNET else "ws"

        object.__setattr__(self, "url", _join(scheme, host, port, path))
        object.__setattr__(self, "network", network)
        object.__setattr__(self, "scheme", scheme)
        object.__setattr__(self, "host", host.strip("[]"))
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "path", path or None)

    @property
    def is_overlay(self) -> bool:
        """Whether the relay needs a SOCKS5 proxy (Tor, I2P or Lokinet)."""
        return self.network in (NetworkType.TOR, NetworkType.I2P, NetworkType.LOKI)
