"""HTTP utilities for nostrfeed.

Provides bounded JSON fetching so a hostile NIP-05 server cannot exhaust
memory with an oversized ``nostr.json`` document.

Note:
    This module sits in the ``utils`` layer and depends only on stdlib and
    ``aiohttp``. It is importable from ``nips`` without violating the
    diamond DAG.

See Also:
    [nostrfeed.nips.nip05][]: NIP-05 resolution built on
        [fetch_json][nostrfeed.utils.http.fetch_json].
"""

from __future__ import annotations

import json
from typing import Any

import aiohttp


DEFAULT_MAX_SIZE = 64 * 1024


async def read_bounded(response: aiohttp.ClientResponse, max_size: int) -> bytes:
    """Read an entire response body with size enforcement.

    Accumulates chunks until EOF or the size limit is exceeded, which also
    handles chunked transfer-encoding correctly.

    Raises:
        ValueError: If the response body exceeds *max_size*.
    """
    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await response.content.read(max_size + 1 - total)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise ValueError(f"Response body too large: >{max_size} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


async def fetch_json(
    url: str,
    *,
    params: dict[str, str] | None = None,
    timeout: float = 10.0,  # noqa: ASYNC109
    max_size: int = DEFAULT_MAX_SIZE,
) -> Any:
    """GET *url* and parse the bounded body as JSON.

    Redirects are not followed (NIP-05 forbids them).

    Raises:
        aiohttp.ClientError: On transport errors or non-2xx status.
        TimeoutError: If the request exceeds *timeout*.
        ValueError: If the body is too large or not valid JSON.
    """
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with (
        aiohttp.ClientSession(timeout=client_timeout) as session,
        session.get(url, params=params, allow_redirects=False) as response,
    ):
        response.raise_for_status()
        body = await read_bounded(response, max_size)
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON from {url}: {e}") from e
