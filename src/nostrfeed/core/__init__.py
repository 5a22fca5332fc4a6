"""Core layer: infrastructure shared by every nostrfeed component.

Sits in the middle of the diamond DAG -- depends only on
``nostrfeed.models`` and is depended upon by ``nostrfeed.feed``.

Attributes:
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][nostrfeed.core.logger.Logger].
    exceptions: Typed error hierarchy rooted at
        [NostrFeedError][nostrfeed.core.exceptions.NostrFeedError].
    DocumentStore / DocumentCache: Injected bounded caches for kind 0/3/1
        documents. See [nostrfeed.core.cache][].
    GracePeriod: Cancellable delayed action used by the listener
        lifecycle. See [GracePeriod][nostrfeed.core.timers.GracePeriod].
    FeedMetrics / MetricsServer: Prometheus recording and exposition.
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .cache import DocumentCache, DocumentStore
from .exceptions import (
    ConfigurationError,
    FilterUpdateError,
    NostrFeedError,
    RelayConnectionError,
    RelaySSLError,
    RelayTimeoutError,
    ResolutionError,
    SubscriptionError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import FeedMetrics, MetricsConfig, MetricsServer
from .timers import GracePeriod
from .yaml import load_yaml


__all__ = [
    "ConfigurationError",
    "DocumentCache",
    "DocumentStore",
    "FeedMetrics",
    "FilterUpdateError",
    "GracePeriod",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NostrFeedError",
    "RelayConnectionError",
    "RelaySSLError",
    "RelayTimeoutError",
    "ResolutionError",
    "StructuredFormatter",
    "SubscriptionError",
    "format_kv_pairs",
    "load_yaml",
]
