"""Feed layer: relay selection, subscriptions, ordering and the client facade.

Top of the diamond DAG; depends on [nostrfeed.core][nostrfeed.core],
[nostrfeed.nips][nostrfeed.nips], [nostrfeed.utils][nostrfeed.utils] and
[nostrfeed.models][nostrfeed.models].

Attributes:
    Client: Facade owning every table of the engine.
    ClientConfig: Pydantic configuration of the client.
    select_relays: Rank-interleaved relay selection for one profile.
    ProfileRegistry: Follow set plus per-profile evidence.
    SubscriptionMultiplexer: One author-filtered subscription per relay.
    FeedMerger: Ordered, deduplicated event list with change listeners.
    HomeFeed: Listener-driven subscription lifecycle and paging.
"""

from .client import Client
from .configs import ClientConfig
from .connections import ConnectionTable
from .lifecycle import HomeFeed
from .merger import FeedMerger
from .multiplexer import RelayFeed, RelayState, SubscriptionMultiplexer
from .registry import ProfileRegistry
from .scorer import event_age, select_relays, unique_relays


__all__ = [
    "Client",
    "ClientConfig",
    "ConnectionTable",
    "FeedMerger",
    "HomeFeed",
    "ProfileRegistry",
    "RelayFeed",
    "RelayState",
    "SubscriptionMultiplexer",
    "event_age",
    "select_relays",
    "unique_relays",
]
