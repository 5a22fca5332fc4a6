"""
Prometheus metrics collection and HTTP exposition.

Defines module-level metric objects (singletons, thread-safe) shared by the
feed components. Recording goes through
[FeedMetrics][nostrfeed.core.metrics.FeedMetrics], which is a no-op unless
``MetricsConfig.enabled`` is set, so embedding the client in another
application never pollutes its registry with samples it did not ask for.

The ``MetricsServer`` provides an async HTTP endpoint (via aiohttp) for
Prometheus scraping, started by the CLI when metrics are enabled.

Architecture:
    FEED_EVENTS:     Counter of events offered to the merger, by outcome
                     (``inserted`` / ``duplicate``).
    RELAY_OPERATIONS: Counter of relay operations, by operation and outcome.
    RELAY_GAUGE:     Point-in-time values (``connections``, ``subscriptions``,
                     ``listeners``, ``feed_size``).
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for metrics recording and the Prometheus endpoint.

    Set ``host`` to ``"0.0.0.0"`` in container environments to allow
    external scraping. The endpoint is only started when ``enabled``
    is True.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Metric objects
# ---------------------------------------------------------------------------

FEED_EVENTS = Counter(
    "nostrfeed_events",
    "Events offered to the home feed, by outcome",
    ["outcome"],
)

RELAY_OPERATIONS = Counter(
    "nostrfeed_relay_operations",
    "Relay connection and subscription operations, by outcome",
    ["operation", "outcome"],
)

RELAY_GAUGE = Gauge(
    "nostrfeed_gauge",
    "Client gauge values (point-in-time state)",
    ["name"],
)


class FeedMetrics:
    """Gatekeeper for metric recording, disabled unless configured."""

    def __init__(self, config: MetricsConfig | None = None) -> None:
        self._config = config or MetricsConfig()

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def event(self, outcome: str) -> None:
        if self._config.enabled:
            FEED_EVENTS.labels(outcome=outcome).inc()

    def operation(self, operation: str, outcome: str) -> None:
        if self._config.enabled:
            RELAY_OPERATIONS.labels(operation=operation, outcome=outcome).inc()

    def gauge(self, name: str, value: float) -> None:
        if self._config.enabled:
            RELAY_GAUGE.labels(name=name).set(value)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible /metrics endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... client runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for scrape requests (no-op when disabled).

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Stop the HTTP server. Safe to call if it was never started."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        """Serve the latest Prometheus metrics in exposition format."""
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )
