"""Nostr Implementation Possibilities -- identifier resolution and tag parsing.

The NIPs layer sits in the middle of the diamond DAG, depending on
[nostrfeed.models][nostrfeed.models] and [nostrfeed.utils][nostrfeed.utils].

Attributes:
    resolve_profile: Resolve any supported profile identifier to a
        [ProfilePointer][nostrfeed.models.evidence.ProfilePointer].
    decode_profile: NIP-19 decoding (hex, ``npub``, ``nprofile``).
    query_profile: NIP-05 ``name@domain`` lookup over HTTPS.
    extract_relay_hints: ``(pubkey, relay)`` hints from ``p`` tags.

Examples:
    ```python
    pointer = await resolve_profile("nprofile1...")
    pointer.pubkey, pointer.relays
    ```
"""

from __future__ import annotations

from nostrfeed.core.exceptions import ResolutionError
from nostrfeed.models.evidence import ProfilePointer

from .nip05 import parse_identifier, query_profile
from .nip19 import decode_profile, is_nip19_profile
from .tags import extract_relay_hints


async def resolve_profile(identifier: str) -> ProfilePointer:
    """Resolve a hex key, ``npub``, ``nprofile`` or NIP-05 identifier.

    Bech32 and hex forms are decoded locally; anything else that looks like
    ``name@domain`` is looked up over HTTPS.

    Raises:
        ResolutionError: If no resolver accepts the identifier.
    """
    if not isinstance(identifier, str) or not identifier.strip():
        raise ResolutionError("profile identifier must be a non-empty string")
    if is_nip19_profile(identifier):
        return decode_profile(identifier)
    if parse_identifier(identifier) is not None:
        return await query_profile(identifier)
    raise ResolutionError(f"cannot resolve {identifier!r} as a nostr profile")


__all__ = [
    "ProfilePointer",
    "decode_profile",
    "extract_relay_hints",
    "query_profile",
    "resolve_profile",
]
