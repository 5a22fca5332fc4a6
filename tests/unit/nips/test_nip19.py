"""
Unit tests for nips.nip19 module.

Tests:
- is_nip19_profile() recognition of hex, npub, nprofile and nostr: URIs
- decode_profile() for each form, including relay hints
- Malformed encodings raise ResolutionError
"""

from unittest.mock import MagicMock, patch

import pytest
from nostr_sdk import Keys

from nostrfeed.core.exceptions import ResolutionError
from nostrfeed.nips.nip19 import decode_profile, is_nip19_profile


@pytest.fixture
def public_key():
    return Keys.generate().public_key()


class TestIsNip19Profile:
    @pytest.mark.parametrize(
        "identifier",
        ["ab" * 32, "AB" * 32, "npub1xyz", "nprofile1xyz", "nostr:npub1xyz", "  npub1xyz  "],
    )
    def test_recognized(self, identifier):
        assert is_nip19_profile(identifier)

    @pytest.mark.parametrize(
        "identifier", ["alice@example.com", "example.com", "ab" * 31, "note1xyz", "nsec1xyz"]
    )
    def test_not_recognized(self, identifier):
        assert not is_nip19_profile(identifier)


class TestDecodeProfile:
    def test_hex_lowercased(self):
        pointer = decode_profile("AB" * 32)
        assert pointer.pubkey == "ab" * 32
        assert pointer.relays == ()

    def test_npub(self, public_key):
        pointer = decode_profile(public_key.to_bech32())
        assert pointer.pubkey == public_key.to_hex()
        assert pointer.relays == ()

    def test_nostr_uri(self, public_key):
        assert decode_profile(f"nostr:{public_key.to_bech32()}").pubkey == public_key.to_hex()

    def test_nprofile_relays_in_order(self):
        profile = MagicMock()
        profile.public_key.return_value.to_hex.return_value = "cd" * 32
        profile.relays.return_value = ["wss://r1.example.com", "wss://r2.example.com"]
        with patch("nostrfeed.nips.nip19.Nip19Profile") as nip19_profile:
            nip19_profile.from_bech32.return_value = profile
            pointer = decode_profile("nprofile1qqsexample")
        nip19_profile.from_bech32.assert_called_once_with("nprofile1qqsexample")
        assert pointer.pubkey == "cd" * 32
        assert pointer.relays == ("wss://r1.example.com", "wss://r2.example.com")

    def test_bad_checksum(self):
        with pytest.raises(ResolutionError, match="cannot decode"):
            decode_profile("npub1invalid")

    def test_bad_nprofile(self):
        with pytest.raises(ResolutionError, match="cannot decode"):
            decode_profile("nprofile1invalid")

    def test_unsupported(self):
        with pytest.raises(ResolutionError, match="cannot resolve"):
            decode_profile("note1abc")
