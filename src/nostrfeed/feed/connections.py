"""Shared relay connection table.

One live connection per relay URL, shared by every subscription and query
the client makes. Connecting is guarded by a per-URL lock, so concurrent
callers asking for the same relay join the in-flight attempt instead of
opening a second socket.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from nostrfeed.core.exceptions import RelayConnectionError
from nostrfeed.core.logger import Logger
from nostrfeed.core.metrics import FeedMetrics


if TYPE_CHECKING:
    from nostrfeed.utils.protocol import RelayConnection, RelayConnector


class ConnectionTable:
    """Deduplicated relay connections keyed by URL.

    Args:
        connector: Factory opening one connection per URL.
        metrics: Optional metrics recorder.
    """

    def __init__(self, connector: RelayConnector, metrics: FeedMetrics | None = None) -> None:
        self._connector = connector
        self._metrics = metrics or FeedMetrics()
        self._connections: dict[str, RelayConnection] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._logger = Logger("connections")

    @property
    def urls(self) -> list[str]:
        return list(self._connections)

    def __contains__(self, url: object) -> bool:
        return url in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def peek(self, url: str) -> RelayConnection | None:
        """Return the open connection for *url* without connecting."""
        return self._connections.get(url)

    def connecting(self, url: str) -> bool:
        """Whether a connect for *url* is in flight."""
        lock = self._locks.get(url)
        return lock is not None and lock.locked()

    async def get(self, url: str) -> RelayConnection:
        """Return the connection for *url*, connecting if needed.

        Raises:
            RelayConnectionError: If the relay cannot be reached.
        """
        connection = self._connections.get(url)
        if connection is not None:
            return connection

        lock = self._locks.setdefault(url, asyncio.Lock())
        async with lock:
            connection = self._connections.get(url)
            if connection is not None:
                return connection

            self._logger.debug("relay_connecting", url=url)
            try:
                connection = await self._connector(url)
            except RelayConnectionError as e:
                self._metrics.operation("connect", "failure")
                self._logger.warning(
                    "relay_connect_failed", url=url, error=str(e), error_type=type(e).__name__
                )
                raise
            self._connections[url] = connection
            self._metrics.operation("connect", "success")
            self._metrics.gauge("connections", len(self._connections))
            self._logger.info("relay_connected", url=url)
            return connection

    async def close(self, url: str) -> bool:
        """Close and forget the connection for *url*. Returns False if none."""
        connection = self._connections.pop(url, None)
        if connection is None:
            return False
        await connection.close()
        self._metrics.gauge("connections", len(self._connections))
        self._logger.info("relay_disconnected", url=url)
        return True

    async def close_all(self) -> None:
        await asyncio.gather(*(self.close(url) for url in list(self._connections)))
