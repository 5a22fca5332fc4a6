"""nostrfeed exception hierarchy.

Typed exceptions for every error category the engine distinguishes, so
callers can tell a fatal resolution failure from a relay that simply could
not be reached, and so ``CancelledError`` is never swallowed by a broad
catch.

Exception hierarchy:

```text
NostrFeedError (base -- never raised directly)
├── ConfigurationError       -- config validation, missing keys, bad YAML
├── ResolutionError          -- identifier cannot be mapped to a public key
├── RelayConnectionError     -- relay unreachable (non-fatal to the engine)
│   ├── RelayTimeoutError    -- connection or response timed out
│   └── RelaySSLError        -- certificate issues
└── SubscriptionError        -- relay-side subscription failures
    └── FilterUpdateError    -- replacing a live filter failed (local state kept)
```

See Also:
    [ProfileRegistry][nostrfeed.feed.registry.ProfileRegistry]: Raises
        [ResolutionError][nostrfeed.core.exceptions.ResolutionError] when a
        follow cannot be resolved.
    [SubscriptionMultiplexer][nostrfeed.feed.multiplexer.SubscriptionMultiplexer]:
        Catches [RelayConnectionError][nostrfeed.core.exceptions.RelayConnectionError]
        and [FilterUpdateError][nostrfeed.core.exceptions.FilterUpdateError]
        per relay without failing the whole follow.
"""

from __future__ import annotations


class NostrFeedError(Exception):
    """Base exception for all nostrfeed errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NostrFeedError):
    """Invalid or missing configuration (YAML, env vars, CLI flags)."""


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class ResolutionError(NostrFeedError):
    """An identifier could not be resolved to a public key.

    Raised for malformed hex/bech32 strings, unsupported NIP-19 prefixes,
    and NIP-05 lookups that fail or return no matching name. The follow
    is not registered.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class RelayConnectionError(NostrFeedError):
    """A relay connection attempt failed.

    Not fatal: the relay is excluded from the follow's active relay set
    and the remaining selected relays proceed independently. Retries are
    left to the connector.
    """

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class RelayTimeoutError(RelayConnectionError):
    """Connection or response timed out."""


class RelaySSLError(RelayConnectionError):
    """TLS/SSL certificate or handshake failure."""


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


class SubscriptionError(NostrFeedError):
    """A relay rejected or failed a subscription operation."""


class FilterUpdateError(SubscriptionError):
    """Replacing the filters of a live subscription failed.

    Local author-set bookkeeping is still applied; the relay-side drift is
    corrected by the next full resubscribe.
    """
