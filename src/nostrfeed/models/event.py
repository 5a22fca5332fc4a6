"""
Immutable Nostr event snapshot used throughout the home feed.

Copies the fields of a ``nostr_sdk.Event`` into a frozen dataclass so the
feed can be sorted, deduplicated, and shared across threads without holding
on to Rust-backed FFI objects. Events are constructed either from the SDK
object via [from_nostr()][nostrfeed.models.event.Event.from_nostr] or from a
NIP-01 JSON object via [from_dict()][nostrfeed.models.event.Event.from_dict].

See Also:
    [nostrfeed.feed.merger][]: Orders events by
        [sort_key][nostrfeed.models.event.Event.sort_key].
    [nostrfeed.utils.protocol][]: Converts SDK notifications into this model.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ._validation import (
    validate_hex,
    validate_instance,
    validate_str_no_null,
    validate_timestamp,
)
from .constants import EVENT_KIND_MAX


if TYPE_CHECKING:
    from nostr_sdk import Event as NostrEvent


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event.

    Validation is performed eagerly at construction time: ``id`` and
    ``pubkey`` must be 64-character lowercase hex, ``created_at`` a
    non-negative integer, ``kind`` within ``0..65535``, and content and tag
    values must not contain null bytes.

    Attributes:
        id: Content-addressed event identifier (hex).
        pubkey: Author public key (hex).
        created_at: Unix timestamp of event creation.
        kind: Integer event kind (1 for short text notes).
        tags: Tag arrays, converted to nested tuples.
        content: Raw event content.
        sig: Schnorr signature (hex), empty when unknown.

    Examples:
        ```python
        event = Event.from_dict({"id": "ab" * 32, "pubkey": "cd" * 32,
                                 "created_at": 1700000000, "kind": 1,
                                 "tags": [], "content": "gm", "sig": ""})
        event.sort_key   # (1700000000, 'abab...')
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...] = ()
    content: str = ""
    sig: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        validate_hex(self.id, "id", 64)
        validate_hex(self.pubkey, "pubkey", 64)
        validate_timestamp(self.created_at, "created_at")
        validate_timestamp(self.kind, "kind")
        if self.kind > EVENT_KIND_MAX:
            raise ValueError(f"kind {self.kind} out of valid range (0-{EVENT_KIND_MAX})")
        validate_str_no_null(self.content, "content")
        validate_str_no_null(self.sig, "sig")

        tags = tuple(tuple(tag) for tag in self.tags)
        for tag in tags:
            for value in tag:
                validate_str_no_null(value, "tags")
        object.__setattr__(self, "tags", tags)

    @property
    def sort_key(self) -> tuple[int, str]:
        """Total order for the home feed: timestamp, then identifier."""
        return (self.created_at, self.id)

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 JSON object for this event."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        """Build an event from a NIP-01 JSON object.

        Raises:
            KeyError: If a required field is missing.
            TypeError: If a field has the wrong type.
            ValueError: If a field fails validation.
        """
        return cls(
            id=data["id"],
            pubkey=data["pubkey"],
            created_at=data["created_at"],
            kind=data["kind"],
            tags=tuple(tuple(tag) for tag in data.get("tags", ())),
            content=data.get("content", ""),
            sig=data.get("sig", ""),
        )

    @classmethod
    def from_nostr(cls, inner: NostrEvent) -> Event:
        """Snapshot a ``nostr_sdk.Event`` into an [Event][nostrfeed.models.event.Event]."""
        from nostr_sdk import Event as NostrEvent  # noqa: PLC0415

        validate_instance(inner, NostrEvent, "inner")
        return cls(
            id=inner.id().to_hex(),
            pubkey=inner.author().to_hex(),
            created_at=inner.created_at().as_secs(),
            kind=inner.kind().as_u16(),
            tags=tuple(tuple(tag.as_vec()) for tag in inner.tags().to_vec()),
            content=inner.content(),
            sig=inner.signature(),
        )
