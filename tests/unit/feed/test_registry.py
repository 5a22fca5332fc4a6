"""
Unit tests for feed.registry module.

Tests:
- resolve_and_follow() evidence merging (manual, explicit) and dedup
- Resolution failures leave no trace
- unfollow() keeps evidence
- add_hint() and record_seen() best-score replacement per URL
- Relay URLs normalized on entry, malformed ones skipped
"""

import pytest

from nostrfeed.core.exceptions import ResolutionError
from nostrfeed.feed.registry import ProfileRegistry
from nostrfeed.models import RelayEntry
from tests.conftest import PK_A, PK_B


@pytest.fixture
def registry(resolver) -> ProfileRegistry:
    return ProfileRegistry(resolver)


class TestResolveAndFollow:
    """resolve_and_follow() behavior."""

    @pytest.mark.asyncio
    async def test_returns_hex_key_and_follows(self, registry, resolver):
        resolver.add("alice@example.com", PK_A)
        pubkey = await registry.resolve_and_follow("alice@example.com")
        assert pubkey == PK_A
        assert registry.is_following(PK_A)
        assert registry.follows == [PK_A]

    @pytest.mark.asyncio
    async def test_manual_relays_seeded(self, registry):
        await registry.resolve_and_follow(PK_A, "wss://m1", "wss://m2")
        assert registry.evidence_for(PK_A).manual == ["wss://m1", "wss://m2"]

    @pytest.mark.asyncio
    async def test_pointer_relays_become_explicit(self, registry, resolver):
        resolver.add("nprofile1x", PK_A, "wss://e1", "wss://e2")
        await registry.resolve_and_follow("nprofile1x")
        evidence = registry.evidence_for(PK_A)
        assert evidence.explicit == ["wss://e1", "wss://e2"]
        assert evidence.manual == []

    @pytest.mark.asyncio
    async def test_repeated_follow_dedupes_relays(self, registry, resolver):
        resolver.add("nprofile1x", PK_A, "wss://e1")
        await registry.resolve_and_follow("nprofile1x", "wss://m1")
        await registry.resolve_and_follow("nprofile1x", "wss://m1", "wss://m2")
        evidence = registry.evidence_for(PK_A)
        assert evidence.manual == ["wss://m1", "wss://m2"]
        assert evidence.explicit == ["wss://e1"]
        assert registry.follows == [PK_A]

    @pytest.mark.asyncio
    async def test_unresolvable_raises_and_records_nothing(self, registry):
        with pytest.raises(ResolutionError):
            await registry.resolve_and_follow("not-a-profile", "wss://m1")
        assert registry.follows == []
        assert registry.profiles == {}

    @pytest.mark.asyncio
    async def test_value_error_wrapped(self):
        async def broken(identifier: str):
            raise ValueError("bad bech32")

        registry = ProfileRegistry(broken)
        with pytest.raises(ResolutionError, match="bad bech32"):
            await registry.resolve_and_follow("npub1broken")

    @pytest.mark.asyncio
    async def test_existing_evidence_preserved(self, registry):
        registry.add_hint(PK_A, "wss://h1", 10)
        await registry.resolve_and_follow(PK_A, "wss://m1")
        evidence = registry.evidence_for(PK_A)
        assert evidence.hinted == [RelayEntry("wss://h1", 10)]
        assert evidence.manual == ["wss://m1"]

    @pytest.mark.asyncio
    async def test_relay_urls_normalized(self, registry, resolver):
        resolver.add("nprofile1x", PK_A, "wss://E1/", "https://e2")
        await registry.resolve_and_follow("nprofile1x", "wss://m1/", "wss://M1:443", "m2")
        evidence = registry.evidence_for(PK_A)
        assert evidence.manual == ["wss://m1"]
        assert evidence.explicit == ["wss://e1"]


class TestUnfollow:
    """unfollow() behavior."""

    @pytest.mark.asyncio
    async def test_keeps_evidence(self, registry):
        await registry.resolve_and_follow(PK_A, "wss://m1")
        assert registry.unfollow(PK_A) is True
        assert not registry.is_following(PK_A)
        assert registry.evidence_for(PK_A).manual == ["wss://m1"]

    def test_unknown_is_noop(self, registry):
        assert registry.unfollow(PK_B) is False


class TestEvidence:
    """Hint and seen bookkeeping."""

    def test_unknown_profile_empty_record(self, registry):
        evidence = registry.evidence_for(PK_B)
        assert evidence.is_empty()
        assert PK_B not in registry.profiles

    def test_add_hint_idempotent(self, registry):
        assert registry.add_hint(PK_A, "wss://h", 5) is True
        assert registry.add_hint(PK_A, "wss://h", 5) is False
        assert registry.evidence_for(PK_A).hinted == [RelayEntry("wss://h", 5)]

    def test_add_hint_keeps_best_score(self, registry):
        registry.add_hint(PK_A, "wss://h", 5)
        assert registry.add_hint(PK_A, "wss://h", 7) is False
        assert registry.add_hint(PK_A, "wss://h", 2) is True
        assert registry.evidence_for(PK_A).hinted == [RelayEntry("wss://h", 2)]

    def test_record_seen_keeps_best_score(self, registry):
        assert registry.record_seen(PK_A, "wss://s", 50) is True
        assert registry.record_seen(PK_A, "wss://s", 80) is False
        assert registry.record_seen(PK_A, "wss://s", 20) is True
        assert registry.evidence_for(PK_A).seen == [RelayEntry("wss://s", 20)]

    def test_hint_url_normalized(self, registry):
        registry.add_hint(PK_A, "wss://h/", 5)
        assert registry.add_hint(PK_A, "WSS://H", 5) is False
        assert registry.evidence_for(PK_A).hinted == [RelayEntry("wss://h", 5)]

    def test_malformed_hint_ignored(self, registry):
        assert registry.add_hint(PK_A, "wss://h?x=1", 5) is False
        assert PK_A not in registry.profiles

    def test_record_seen_equal_score_noop(self, registry):
        registry.record_seen(PK_A, "wss://s", 50)
        assert registry.record_seen(PK_A, "wss://s", 50) is False

    def test_evidence_does_not_follow(self, registry):
        registry.record_seen(PK_A, "wss://s", 1)
        assert not registry.is_following(PK_A)
