"""Relay selection for followed profiles.

Chooses, for one profile's evidence record, the relays the home feed should
read that profile's notes from. Selection interleaves the trust tiers rank by
rank (``manual[i]``, ``explicit[i]``, ``implied[i]``), so every tier is
represented before any tier contributes its second choice, then pads from
the fallback pool.

Note:
    The output may contain the same URL twice when it appears in more than
    one tier. Callers that turn the selection into a connection set pass it
    through [unique_relays()][nostrfeed.feed.scorer.unique_relays].

Examples:
    ```python
    evidence = ProfileRelays(manual=["r1"])
    select_relays(evidence, ["r2", "r3"])   # ['r1', 'r2', 'r3']
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterable

    from nostrfeed.models.event import Event
    from nostrfeed.models.evidence import ProfileRelays


DEFAULT_LIMIT = 5


def select_relays(
    evidence: ProfileRelays, fallback: Iterable[str], limit: int = DEFAULT_LIMIT
) -> list[str]:
    """Return up to *limit* relay URLs for one profile, best first.

    Args:
        evidence: The profile's evidence record.
        fallback: Fallback pool, consumed in its iteration order.
        limit: Maximum number of URLs returned.
    """
    if limit <= 0:
        return []

    implied = evidence.implied()
    urls: list[str] = []

    for i in range(limit):
        if i < len(evidence.manual):
            urls.append(evidence.manual[i])
        if i < len(evidence.explicit):
            urls.append(evidence.explicit[i])
        if i < len(implied):
            urls.append(implied[i].url)
        if len(urls) > limit:
            return urls[:limit]

    for url in fallback:
        if len(urls) >= limit:
            break
        urls.append(url)

    return urls


def unique_relays(urls: Iterable[str]) -> list[str]:
    """Deduplicate *urls* keeping first-occurrence order."""
    return list(dict.fromkeys(urls))


def event_age(event: Event, relay_url: str, now: float) -> float:
    """Default evidence score: seconds since *event* was created, floored at 0.

    Used for both ``seen`` entries (the relay delivered the event) and
    ``hinted`` entries (the event named the relay in a ``p`` tag).
    """
    return max(0.0, now - event.created_at)
