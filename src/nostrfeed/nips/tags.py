"""NIP-01 / NIP-02 relay hints carried by ``p`` tags.

A ``p`` tag may name a recommended relay for the referenced key in its third
position (``["p", <pubkey>, <relay-url>, ...]``). Contact lists (kind 3) and
replies both carry them; the client feeds them into the ``hinted`` tier of
the referenced profile's evidence record.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from nostrfeed.models.event import Event


_HEX_KEY = re.compile(r"^[0-9a-f]{64}$")
_RELAY_SCHEMES = ("wss://", "ws://")


def extract_relay_hints(event: Event) -> list[tuple[str, str]]:
    """Return ``(pubkey, relay_url)`` pairs from the event's ``p`` tags.

    Tags without a relay, with a non-websocket relay, or with a malformed
    key are skipped. Pairs are deduplicated in tag order.
    """
    hints: list[tuple[str, str]] = []
    for tag in event.tags:
        if len(tag) < 3 or tag[0] != "p":
            continue
        pubkey, url = tag[1].lower(), tag[2].strip()
        if not _HEX_KEY.match(pubkey) or not url.lower().startswith(_RELAY_SCHEMES):
            continue
        if (pubkey, url) not in hints:
            hints.append((pubkey, url))
    return hints
