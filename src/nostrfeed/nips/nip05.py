"""NIP-05 DNS-based internet identifiers.

Resolves ``name@domain`` (or a bare ``domain``, meaning ``_@domain``) by
fetching ``https://<domain>/.well-known/nostr.json?name=<name>`` and reading
the ``names`` map for the public key and the optional ``relays`` map for the
relays the domain advertises for that key.

Note:
    Redirects are not followed and the body size is bounded by
    [fetch_json()][nostrfeed.utils.http.fetch_json].
"""

from __future__ import annotations

import logging
import re
from typing import Any

import aiohttp

from nostrfeed.core.exceptions import ResolutionError
from nostrfeed.models.evidence import ProfilePointer
from nostrfeed.utils.http import fetch_json


logger = logging.getLogger(__name__)

NIP05_PATTERN = re.compile(r"^(?:([\w.+-]+)@)?([\w_-]+(?:\.[\w_-]+)+)$")
WELL_KNOWN_PATH = "/.well-known/nostr.json"
DEFAULT_TIMEOUT = 10.0

_HEX_KEY = re.compile(r"^[0-9a-f]{64}$")


def parse_identifier(identifier: str) -> tuple[str, str] | None:
    """Split a NIP-05 identifier into ``(name, domain)``.

    Names and domains are lowercased; a missing name becomes ``"_"``.
    Returns None if *identifier* is not a NIP-05 identifier.
    """
    match = NIP05_PATTERN.match(identifier.strip().lower())
    if match is None:
        return None
    name, domain = match.groups()
    return name or "_", domain


def parse_document(document: Any, name: str) -> ProfilePointer | None:
    """Extract the pointer for *name* from a ``nostr.json`` document.

    Malformed relay entries are skipped. Returns None if the name is absent
    or its key is not 64-char hex.
    """
    if not isinstance(document, dict):
        return None
    names = document.get("names")
    if not isinstance(names, dict):
        return None
    pubkey = names.get(name)
    if not isinstance(pubkey, str) or not _HEX_KEY.match(pubkey.lower()):
        return None
    pubkey = pubkey.lower()

    relays: list[str] = []
    relay_map = document.get("relays")
    if isinstance(relay_map, dict):
        advertised = relay_map.get(pubkey)
        if isinstance(advertised, list):
            relays = [url for url in advertised if isinstance(url, str) and url]
    return ProfilePointer(pubkey=pubkey, relays=tuple(relays))


async def query_profile(identifier: str, timeout: float = DEFAULT_TIMEOUT) -> ProfilePointer:  # noqa: ASYNC109
    """Resolve a NIP-05 identifier to a profile pointer.

    Raises:
        ResolutionError: If the identifier is malformed, the document cannot
            be fetched or parsed, or the name is not listed.
    """
    parsed = parse_identifier(identifier)
    if parsed is None:
        raise ResolutionError(f"cannot resolve {identifier!r} as a nostr profile")
    name, domain = parsed

    url = f"https://{domain}{WELL_KNOWN_PATH}"
    try:
        document = await fetch_json(url, params={"name": name}, timeout=timeout)
    except (aiohttp.ClientError, TimeoutError, ValueError) as e:
        logger.debug("nip05_fetch_failed domain=%s error=%s", domain, e)
        raise ResolutionError(f"NIP-05 lookup failed for {identifier!r}: {e}") from e

    pointer = parse_document(document, name)
    if pointer is None:
        raise ResolutionError(f"{name!r} not found at {domain}")
    return pointer
