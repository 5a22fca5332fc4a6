"""
Unit tests for nips.nip05 module.

Tests:
- parse_identifier() splitting and the ``_`` root name
- parse_document() extraction of key and advertised relays
- query_profile() request shape and error mapping
"""

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from nostrfeed.core.exceptions import ResolutionError
from nostrfeed.nips.nip05 import parse_document, parse_identifier, query_profile
from tests.conftest import PK_A, PK_B


class TestParseIdentifier:
    def test_name_and_domain(self):
        assert parse_identifier("Bob@Example.COM") == ("bob", "example.com")

    def test_bare_domain(self):
        assert parse_identifier("example.com") == ("_", "example.com")

    def test_subdomain(self):
        assert parse_identifier("a.b+c@nostr.example.org") == ("a.b+c", "nostr.example.org")

    @pytest.mark.parametrize("identifier", ["bob@", "@example.com", "bob@localhost", "no spaces@x.y"])
    def test_invalid(self, identifier):
        assert parse_identifier(identifier) is None


class TestParseDocument:
    def test_key_and_relays(self):
        document = {
            "names": {"bob": PK_A},
            "relays": {PK_A: ["wss://r1.example.com", 7, "", "wss://r2.example.com"]},
        }
        pointer = parse_document(document, "bob")
        assert pointer.pubkey == PK_A
        assert pointer.relays == ("wss://r1.example.com", "wss://r2.example.com")

    def test_uppercase_key_normalized(self):
        document = {"names": {"bob": PK_A.upper()}, "relays": {PK_A: ["wss://r"]}}
        pointer = parse_document(document, "bob")
        assert pointer.pubkey == PK_A
        assert pointer.relays == ("wss://r",)

    def test_no_relays(self):
        assert parse_document({"names": {"_": PK_B}}, "_").relays == ()

    @pytest.mark.parametrize(
        "document",
        [
            None,
            [],
            {"names": []},
            {"names": {"alice": PK_A}},
            {"names": {"bob": "short"}},
            {"names": {"bob": 42}},
        ],
    )
    def test_missing_or_malformed(self, document):
        assert parse_document(document, "bob") is None

    def test_malformed_relay_map(self):
        assert parse_document({"names": {"bob": PK_A}, "relays": "x"}, "bob").relays == ()


class TestQueryProfile:
    @pytest.mark.asyncio
    async def test_request(self):
        fetch = AsyncMock(return_value={"names": {"bob": PK_A}})
        with patch("nostrfeed.nips.nip05.fetch_json", fetch):
            pointer = await query_profile("bob@example.com", timeout=3)
        assert pointer.pubkey == PK_A
        fetch.assert_awaited_once_with(
            "https://example.com/.well-known/nostr.json", params={"name": "bob"}, timeout=3
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [aiohttp.ClientError("down"), TimeoutError(), ValueError("Invalid JSON")]
    )
    async def test_fetch_errors(self, error):
        with patch("nostrfeed.nips.nip05.fetch_json", AsyncMock(side_effect=error)):
            with pytest.raises(ResolutionError, match="NIP-05 lookup failed"):
                await query_profile("bob@example.com")

    @pytest.mark.asyncio
    async def test_name_not_listed(self):
        fetch = AsyncMock(return_value={"names": {}})
        with patch("nostrfeed.nips.nip05.fetch_json", fetch):
            with pytest.raises(ResolutionError, match="not found at example.com"):
                await query_profile("bob@example.com")

    @pytest.mark.asyncio
    async def test_malformed_identifier(self):
        with pytest.raises(ResolutionError):
            await query_profile("not an identifier")
