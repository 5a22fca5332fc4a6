"""NIP-19 bech32 profile identifiers.

Decodes the identifier forms that name a profile directly: raw 64-char hex
keys, ``npub1...`` public keys and ``nprofile1...`` pointers carrying relay
hints. Decoding is delegated to ``nostr-sdk``; a ``nostr:`` URI prefix
(NIP-21) is accepted and stripped.

See Also:
    [nostrfeed.nips.nip05][]: Resolution of ``name@domain`` identifiers.
"""

from __future__ import annotations

import re

from nostr_sdk import Nip19Profile, PublicKey

from nostrfeed.core.exceptions import ResolutionError
from nostrfeed.models.evidence import ProfilePointer


_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")

NPUB_PREFIX = "npub1"
NPROFILE_PREFIX = "nprofile1"
URI_PREFIX = "nostr:"


def is_nip19_profile(identifier: str) -> bool:
    """Whether *identifier* looks like a hex key, ``npub`` or ``nprofile``."""
    value = identifier.strip().removeprefix(URI_PREFIX)
    return bool(_HEX_KEY.match(value)) or value.startswith((NPUB_PREFIX, NPROFILE_PREFIX))


def decode_profile(identifier: str) -> ProfilePointer:
    """Decode a hex key, ``npub`` or ``nprofile`` into a profile pointer.

    Hex keys are lowercased. ``nprofile`` relay hints are kept in order.

    Raises:
        ResolutionError: If the identifier is not a valid profile encoding.
    """
    value = identifier.strip().removeprefix(URI_PREFIX)

    if _HEX_KEY.match(value):
        return ProfilePointer(pubkey=value.lower())

    try:
        if value.startswith(NPROFILE_PREFIX):
            profile = Nip19Profile.from_bech32(value)
            return ProfilePointer(
                pubkey=profile.public_key().to_hex(),
                relays=tuple(str(url) for url in profile.relays()),
            )
        if value.startswith(NPUB_PREFIX):
            return ProfilePointer(pubkey=PublicKey.parse(value).to_hex())
    # nostr-sdk surfaces decode failures as its own NostrSdkError type.
    except Exception as e:  # noqa: BLE001
        raise ResolutionError(f"cannot decode {identifier!r}: {e}") from e

    raise ResolutionError(f"cannot resolve {identifier!r} as a nostr profile")
