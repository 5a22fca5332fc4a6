"""Nostr key handling, bounded HTTP, and the relay protocol boundary.

The utils layer sits in the middle of the diamond DAG, depending on
[nostrfeed.models][nostrfeed.models] and the typed error hierarchy in
[nostrfeed.core.exceptions][nostrfeed.core.exceptions]. It provides the
low-level network and cryptographic pieces used by
[nostrfeed.nips][nostrfeed.nips] and [nostrfeed.feed][nostrfeed.feed].

Attributes:
    keys: Private key loading from environment variables (nsec1 bech32 or
        hex) with Pydantic validation, and public key normalization.
    http: Size-bounded JSON fetching over ``aiohttp`` for NIP-05 documents.
    protocol: The connector / connection / subscription interface consumed
        by the feed engine, and its ``nostr-sdk`` implementation.

Note:
    The utils layer never imports ``nostrfeed.feed``.

Examples:
    ```python
    from nostrfeed.utils.protocol import NostrSdkConnector
    from nostrfeed.utils.keys import KeysConfig
    ```
"""
