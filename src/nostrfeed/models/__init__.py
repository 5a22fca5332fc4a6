"""Pure frozen dataclasses with zero I/O for relays, events, filters, and evidence.

The models layer is the foundation of the diamond DAG. It has **no dependencies**
on any other nostrfeed package. All validation happens in ``__post_init__``
so invalid instances never escape the constructor.

Attributes:
    normalize_relay_url: Canonical key for any ws/wss relay URL.
    Relay: Validated Nostr relay URL with RFC 3986 parsing and automatic
        [NetworkType][nostrfeed.models.constants.NetworkType] detection.
    Event: Immutable Nostr event snapshot ordered by ``(created_at, id)``.
    SubscriptionFilter: Author/kind filter with optional ``until``/``limit``.
    ProfileRelays: Per-profile evidence record (manual, explicit, hinted, seen).
    RelayEntry: Scored relay URL used by the hinted and seen tiers.
    ProfilePointer: Resolved public key plus advertised relays.
    EventKind: Well-known event kinds.
    NetworkType: Relay network classification.

See Also:
    [nostrfeed.feed][]: The orchestration layer that consumes these models.
"""

from .constants import EVENT_KIND_MAX, EventKind, NetworkType
from .event import Event
from .evidence import ProfilePointer, ProfileRelays, RelayEntry
from .filter import SubscriptionFilter
from .relay import Relay, normalize_relay_url


__all__ = [
    "EVENT_KIND_MAX",
    "Event",
    "EventKind",
    "NetworkType",
    "ProfilePointer",
    "ProfileRelays",
    "Relay",
    "RelayEntry",
    "SubscriptionFilter",
    "normalize_relay_url",
]
