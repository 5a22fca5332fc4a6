"""Shared constants for the models layer.

Defines enumerations and other constants that are used across multiple
model modules. Placing them here avoids circular dependencies between
the models and utils layers.

See Also:
    [nostrfeed.models.relay][]: Uses [NetworkType][nostrfeed.models.constants.NetworkType]
        to classify relay URLs during construction.
    [nostrfeed.feed.multiplexer][]: Subscribes to
        [EventKind.TEXT_NOTE][nostrfeed.models.constants.EventKind] for the home feed.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class NetworkType(StrEnum):
    """Network type enum for relay classification.

    Each relay URL is classified into exactly one network type during
    [Relay][nostrfeed.models.relay.Relay] construction. The scheme is then
    enforced per network: clearnet requires ``wss://`` (TLS), while overlay
    networks use ``ws://`` (encryption handled by the overlay).

    Attributes:
        CLEARNET: Public internet relay using ``wss://`` (TLS required).
        TOR: Tor hidden service identified by a ``.onion`` hostname.
        I2P: I2P eepsite identified by a ``.i2p`` hostname.
        LOKI: Lokinet service identified by a ``.loki`` hostname.
        LOCAL: Private or reserved IP address (rejected during validation).
        UNKNOWN: Hostname that could not be classified (rejected during validation).

    Warning:
        ``LOCAL`` and ``UNKNOWN`` network types cause [Relay][nostrfeed.models.relay.Relay]
        construction to raise ``ValueError``. They exist for internal detection logic
        and are never exposed on a successfully constructed instance.
    """

    CLEARNET = "clearnet"
    TOR = "tor"
    I2P = "i2p"
    LOKI = "loki"
    LOCAL = "local"
    UNKNOWN = "unknown"


class EventKind(IntEnum):
    """Well-known Nostr event kinds handled by the client.

    Attributes:
        SET_METADATA: Kind 0 -- user profile metadata (NIP-01).
        TEXT_NOTE: Kind 1 -- short text note, the only kind carried by
            the home feed (NIP-01).
        CONTACTS: Kind 3 -- contact list with relay hints (NIP-02).
    """

    SET_METADATA = 0
    TEXT_NOTE = 1
    CONTACTS = 3


EVENT_KIND_MAX = 65_535
