"""Followed profiles and their relay evidence.

[ProfileRegistry][nostrfeed.feed.registry.ProfileRegistry] owns two tables:
the set of followed public keys and the evidence record
([ProfileRelays][nostrfeed.models.evidence.ProfileRelays]) for every profile
the client has learned anything about. Evidence outlives a follow: keys that
are unfollowed (or were only ever mentioned in a ``p`` tag) keep their record
so a later follow starts from what is already known.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nostrfeed.core.exceptions import ResolutionError
from nostrfeed.core.logger import Logger
from nostrfeed.models.evidence import ProfileRelays, RelayEntry
from nostrfeed.models.relay import normalize_relay_url
from nostrfeed.nips import resolve_profile


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from nostrfeed.models.evidence import ProfilePointer


class ProfileRegistry:
    """Follow set plus per-profile evidence records.

    Args:
        resolver: Coroutine mapping an identifier to a
            [ProfilePointer][nostrfeed.models.evidence.ProfilePointer].
            Defaults to [resolve_profile()][nostrfeed.nips.resolve_profile].

    Note:
        All mutators run on the event loop thread; no locking is needed
        because none of them awaits between reading and writing a record.
    """

    def __init__(self, resolver: Callable[[str], Awaitable[ProfilePointer]] | None = None) -> None:
        self._resolver = resolver or resolve_profile
        self._follows: dict[str, None] = {}
        self._profiles: dict[str, ProfileRelays] = {}
        self._logger = Logger("registry")

    @property
    def follows(self) -> list[str]:
        """Followed keys in follow order."""
        return list(self._follows)

    @property
    def profiles(self) -> dict[str, ProfileRelays]:
        """Shallow copy of the evidence table."""
        return dict(self._profiles)

    def is_following(self, pubkey: str) -> bool:
        return pubkey in self._follows

    async def resolve_and_follow(self, identifier: str, *manual_relays: str) -> str:
        """Resolve *identifier*, merge its evidence and follow it.

        Caller-supplied relays go to the ``manual`` tier; relays carried by
        the identifier itself (``nprofile`` or NIP-05) go to ``explicit``.
        Both are normalized and deduplicated; malformed URLs are skipped.

        Returns:
            The followed key as lowercase hex.

        Raises:
            ResolutionError: If the identifier cannot be resolved. Nothing
                is recorded in that case.
        """
        try:
            pointer = await self._resolver(identifier)
        except ResolutionError:
            self._logger.warning("follow_unresolved", identifier=identifier)
            raise
        except (ValueError, TypeError) as e:
            self._logger.warning("follow_unresolved", identifier=identifier, error=str(e))
            raise ResolutionError(f"cannot resolve {identifier!r}: {e}") from e

        evidence = self._record(pointer.pubkey)
        for url in self._canonical(manual_relays, pointer.pubkey):
            evidence.add_manual(url)
        for url in self._canonical(pointer.relays, pointer.pubkey):
            evidence.add_explicit(url)

        self._follows[pointer.pubkey] = None
        self._logger.info(
            "follow_added",
            pubkey=pointer.pubkey,
            manual=len(evidence.manual),
            explicit=len(evidence.explicit),
        )
        return pointer.pubkey

    def unfollow(self, pubkey: str) -> bool:
        """Remove *pubkey* from the follow set, keeping its evidence."""
        if pubkey not in self._follows:
            return False
        del self._follows[pubkey]
        self._logger.info("follow_removed", pubkey=pubkey)
        return True

    def evidence_for(self, pubkey: str) -> ProfileRelays:
        """Return the evidence record for *pubkey*, or an empty one if unknown."""
        return self._profiles.get(pubkey) or ProfileRelays()

    def _record(self, pubkey: str) -> ProfileRelays:
        evidence = self._profiles.get(pubkey)
        if evidence is None:
            evidence = ProfileRelays()
            self._profiles[pubkey] = evidence
        return evidence

    def _canonical(self, urls: Iterable[str], pubkey: str) -> list[str]:
        canonical: list[str] = []
        for url in urls:
            try:
                canonical.append(normalize_relay_url(url))
            except ValueError as e:
                self._logger.warning("relay_url_skipped", pubkey=pubkey, url=url, error=str(e))
        return canonical

    def add_hint(self, pubkey: str, url: str, score: float) -> bool:
        """Record that some event hinted *url* for *pubkey*.

        Malformed hint URLs are ignored; hints come from arbitrary events.
        """
        try:
            url = normalize_relay_url(url)
        except ValueError as e:
            self._logger.debug("hint_ignored", pubkey=pubkey, url=url, error=str(e))
            return False
        added = self._record(pubkey).add_hint(RelayEntry(url, score))
        if added:
            self._logger.debug("hint_added", pubkey=pubkey, url=url, score=score)
        return added

    def record_seen(self, pubkey: str, url: str, score: float) -> bool:
        """Record that *url* delivered an event authored by *pubkey*."""
        return self._record(pubkey).record_seen(RelayEntry(normalize_relay_url(url), score))
