"""
Per-profile relay evidence records.

A [ProfileRelays][nostrfeed.models.evidence.ProfileRelays] record accumulates
every signal the client has about where a followed public key publishes.
It is the sole input (besides the fallback pool) to
[select_relays()][nostrfeed.feed.scorer.select_relays].

Trust tiers, highest first:

* ``manual`` -- relays supplied by the library user when following.
* ``explicit`` -- relays declared by the profile pointer itself
  (NIP-19 ``nprofile`` relays, NIP-05 ``relays`` map).
* ``hinted`` + ``seen`` -- scored [RelayEntry][nostrfeed.models.evidence.RelayEntry]
  pairs pooled together and ranked ascending by score.

Note:
    Scores are distances, not weights: lower means better. The client
    scores evidence by its age in seconds, so a relay that delivered the
    key's events a minute ago ranks above one hinted last week.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ._validation import validate_hex, validate_score, validate_str_not_empty


@dataclass(frozen=True, slots=True)
class ProfilePointer:
    """A public key plus the relays its encoding or directory advertised.

    Produced by [resolve_profile()][nostrfeed.nips.resolve_profile].

    Attributes:
        pubkey: Lowercase 64-char hex public key.
        relays: Relay URLs, in the order they were advertised.
    """

    pubkey: str
    relays: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        validate_hex(self.pubkey, "pubkey", 64)
        object.__setattr__(self, "relays", tuple(self.relays))
        for url in self.relays:
            validate_str_not_empty(url, "relays")


@dataclass(frozen=True, slots=True)
class RelayEntry:
    """A relay URL paired with a ranking score (lower ranks first)."""

    url: str
    score: float

    def __post_init__(self) -> None:
        validate_str_not_empty(self.url, "url")
        validate_score(self.score, "score")


@dataclass(slots=True)
class ProfileRelays:
    """Mutable evidence record for one followed public key.

    Owned by [ProfileRegistry][nostrfeed.feed.registry.ProfileRegistry];
    the mutators below keep the record's invariants (deduplicated
    ``manual``/``explicit``, one best-score entry per URL in ``hinted`` and
    ``seen``).
    """

    manual: list[str] = field(default_factory=list)
    explicit: list[str] = field(default_factory=list)
    hinted: list[RelayEntry] = field(default_factory=list)
    seen: list[RelayEntry] = field(default_factory=list)

    def add_manual(self, url: str) -> bool:
        """Append a manual relay unless already present."""
        if url in self.manual:
            return False
        self.manual.append(url)
        return True

    def add_explicit(self, url: str) -> bool:
        """Append an explicit relay unless already present."""
        if url in self.explicit:
            return False
        self.explicit.append(url)
        return True

    def add_hint(self, entry: RelayEntry) -> bool:
        """Keep one ``hinted`` entry per URL, replacing it only with a lower score."""
        return _keep_best(self.hinted, entry)

    def record_seen(self, entry: RelayEntry) -> bool:
        """Keep one ``seen`` entry per URL, replacing it only with a lower score."""
        return _keep_best(self.seen, entry)

    def implied(self) -> list[RelayEntry]:
        """Return ``hinted + seen`` sorted ascending by score (stable)."""
        return sorted([*self.hinted, *self.seen], key=lambda entry: entry.score)

    def is_empty(self) -> bool:
        return not (self.manual or self.explicit or self.hinted or self.seen)


def _keep_best(entries: list[RelayEntry], entry: RelayEntry) -> bool:
    for i, current in enumerate(entries):
        if current.url == entry.url:
            if entry.score >= current.score:
                return False
            entries[i] = entry
            return True
    entries.append(entry)
    return True
