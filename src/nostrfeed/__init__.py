r"""nostrfeed -- relay-selecting home-feed client for Nostr.

Follows public keys, picks for each one the relays most likely to carry its
notes, keeps one author-filtered subscription per relay, and merges the
results into a single ordered, deduplicated home feed that only stays
subscribed while someone is listening.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
               feed            Relay selection, subscriptions, client facade
             /   |   \
          core  nips  utils    Infrastructure, identifiers, protocol and helpers
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Attributes:
    models: Pure dataclasses. Zero I/O.
    core: Exceptions, logging, metrics, YAML, caches, grace timers.
    nips: NIP-05 / NIP-19 identifier resolution, ``p``-tag relay hints.
    utils: Key handling, bounded HTTP, the nostr-sdk relay protocol wrapper.
    feed: Scorer, registry, multiplexer, merger, lifecycle and ``Client``.

Note:
    Top-level imports (``from nostrfeed import Client``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrfeed")

__all__ = [
    "Client",
    "ClientConfig",
    "Event",
    "HomeFeed",
    "Logger",
    "NostrFeedError",
    "ProfileRelays",
    "Relay",
    "RelayEntry",
    "resolve_profile",
    "select_relays",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Client": ("nostrfeed.feed", "Client"),
    "ClientConfig": ("nostrfeed.feed", "ClientConfig"),
    "HomeFeed": ("nostrfeed.feed", "HomeFeed"),
    "select_relays": ("nostrfeed.feed", "select_relays"),
    "Logger": ("nostrfeed.core", "Logger"),
    "NostrFeedError": ("nostrfeed.core", "NostrFeedError"),
    "Event": ("nostrfeed.models", "Event"),
    "ProfileRelays": ("nostrfeed.models", "ProfileRelays"),
    "Relay": ("nostrfeed.models", "Relay"),
    "RelayEntry": ("nostrfeed.models", "RelayEntry"),
    "resolve_profile": ("nostrfeed.nips", "resolve_profile"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nostrfeed' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
