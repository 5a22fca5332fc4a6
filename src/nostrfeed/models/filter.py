"""
Relay subscription filter.

A protocol-neutral description of a NIP-01 ``REQ`` filter restricted to the
fields the home feed needs. The protocol layer converts it into a
``nostr_sdk.Filter`` via
[build_nostr_filter()][nostrfeed.utils.protocol.build_nostr_filter].
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ._validation import validate_hex, validate_timestamp
from .constants import EVENT_KIND_MAX, EventKind


@dataclass(frozen=True, slots=True)
class SubscriptionFilter:
    """Immutable author/kind filter with optional pagination bounds.

    Attributes:
        kinds: Event kinds to match.
        authors: Hex public keys to match.
        until: Only events created at or before this timestamp.
        limit: Maximum number of stored events the relay should return.

    Examples:
        ```python
        f = SubscriptionFilter.home({"ab" * 32})
        f.kinds     # frozenset({1})
        f.with_authors({"ab" * 32, "cd" * 32})
        ```
    """

    kinds: frozenset[int]
    authors: frozenset[str]
    until: int | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kinds", frozenset(self.kinds))
        object.__setattr__(self, "authors", frozenset(self.authors))
        for kind in self.kinds:
            validate_timestamp(kind, "kinds")
            if kind > EVENT_KIND_MAX:
                raise ValueError(f"Event kind {kind} out of valid range (0-{EVENT_KIND_MAX})")
        for author in self.authors:
            validate_hex(author, "authors", 64)
        if self.until is not None:
            validate_timestamp(self.until, "until")
        if self.limit is not None:
            validate_timestamp(self.limit, "limit")

    @classmethod
    def home(cls, authors: Any, kinds: Any = (EventKind.TEXT_NOTE,)) -> SubscriptionFilter:
        """Home-feed filter: short text notes authored by *authors*."""
        return cls(kinds=frozenset(int(k) for k in kinds), authors=frozenset(authors))

    def with_authors(self, authors: Any) -> SubscriptionFilter:
        return SubscriptionFilter(
            kinds=self.kinds, authors=frozenset(authors), until=self.until, limit=self.limit
        )

    def page(self, until: int, limit: int) -> SubscriptionFilter:
        """Copy bounded to events created at or before *until*."""
        return SubscriptionFilter(kinds=self.kinds, authors=self.authors, until=until, limit=limit)

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON filter object (sorted for stable output)."""
        data: dict[str, Any] = {"kinds": sorted(self.kinds), "authors": sorted(self.authors)}
        if self.until is not None:
            data["until"] = self.until
        if self.limit is not None:
            data["limit"] = self.limit
        return data
