"""Configuration models for the nostrfeed client.

Every section has sensible defaults so a YAML file only needs to state what
it overrides. The private key is never read from the file itself: the
``keys`` section names the environment variable that holds it (see
[KeysConfig][nostrfeed.utils.keys.KeysConfig]).

See Also:
    [Client][nostrfeed.feed.client.Client]: Consumes
        [ClientConfig][nostrfeed.feed.configs.ClientConfig].
    [load_yaml()][nostrfeed.core.yaml.load_yaml]: Safe YAML loading used by
        ``Client.from_yaml``.

Examples:
    ```yaml
    keys:
      keys_env: NOSTR_PRIVATE_KEY
    write: [wss://relay.example.com]
    fallback: [wss://relay.damus.io, wss://nos.lol]
    patience: 3
    lifecycle:
      listener_grace: 1.0
      connection_grace: 5.0
    ```
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from nostrfeed.core.metrics import MetricsConfig
from nostrfeed.models.constants import EVENT_KIND_MAX, EventKind
from nostrfeed.models.relay import normalize_relay_url
from nostrfeed.utils.keys import KeysConfig, parse_public_key


class SelectionConfig(BaseModel):
    """Relay selection limits."""

    max_relays_per_profile: int = Field(
        default=5, ge=1, le=20, description="Relays selected per followed profile"
    )


class SubscriptionConfig(BaseModel):
    """Options of the per-relay home-feed subscription."""

    id: str = Field(default="home", min_length=1, description="Subscription id sent in REQ")
    kinds: list[int] = Field(
        default_factory=lambda: [int(EventKind.TEXT_NOTE)],
        min_length=1,
        description="Event kinds carried by the home feed",
    )
    skip_verification: bool = Field(
        default=True, description="Skip signature verification of live events"
    )

    @field_validator("kinds")
    @classmethod
    def validate_kinds(cls, v: list[int]) -> list[int]:
        for kind in v:
            if not 0 <= kind <= EVENT_KIND_MAX:
                raise ValueError(f"kind {kind} out of valid range (0-{EVENT_KIND_MAX})")
        return sorted(set(v))


class LifecycleConfig(BaseModel):
    """Listener-driven subscription lifecycle timings."""

    listener_grace: float = Field(
        default=1.0, ge=0.0, description="Seconds after the last listener leaves before teardown"
    )
    connection_grace: float = Field(
        default=1.0, ge=0.0, description="Seconds after teardown before idle connections close"
    )
    page_size: int = Field(default=50, ge=1, le=500, description="Default events() page size")
    fetch_timeout: float = Field(
        default=10.0, gt=0.0, le=120.0, description="Timeout for stored-event queries (seconds)"
    )


class CacheConfig(BaseModel):
    """Capacities of the per-kind document caches."""

    kind0: int = Field(default=500, ge=1, description="Profile metadata entries")
    kind3: int = Field(default=500, ge=1, description="Contact list entries")
    kind1: int = Field(default=500, ge=1, description="Note entries")


class ClientConfig(BaseModel):
    """Top-level client configuration.

    Attributes:
        keys: Private key source. When present, ``public_key`` is derived
            from it and any configured ``public_key`` must match.
        public_key: Hex or ``npub`` public key for read-only clients.
        write: Relays the user publishes to (reported by ``relays.get()``).
        fallback: Initial fallback pool used to pad relay selections.
        patience: Seconds to wait for a relay handshake.
        proxy_url: SOCKS5 proxy for Tor/I2P/Lokinet relays.
    """

    keys: KeysConfig | None = Field(default=None, description="Private key source")
    public_key: str | None = Field(default=None, description="Public key (hex or npub)")
    write: list[str] = Field(default_factory=list, description="Write relays")
    fallback: list[str] = Field(default_factory=list, description="Fallback relay pool")
    patience: float = Field(default=2.0, gt=0.0, le=60.0, description="Connect timeout (seconds)")
    proxy_url: str | None = Field(default=None, description="SOCKS5 proxy for overlay relays")
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    subscription: SubscriptionConfig = Field(default_factory=SubscriptionConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("public_key")
    @classmethod
    def normalize_public_key(cls, v: str | None) -> str | None:
        if v is None:
            return None
        try:
            return parse_public_key(v)
        # nostr-sdk raises its own NostrSdkError for malformed keys.
        except Exception as e:  # noqa: BLE001
            raise ValueError(f"invalid public key: {e}") from e

    @field_validator("write", "fallback")
    @classmethod
    def normalize_urls(cls, v: list[str]) -> list[str]:
        urls: list[str] = []
        for raw in v:
            url = normalize_relay_url(raw)
            if url not in urls:
                urls.append(url)
        return urls

    @model_validator(mode="after")
    def reconcile_public_key(self) -> ClientConfig:
        """Derive ``public_key`` from ``keys`` and reject a conflicting value."""
        if self.keys is not None:
            derived = self.keys.public_key
            if self.public_key is not None and self.public_key != derived:
                raise ValueError("public_key does not match the configured private key")
            self.public_key = derived
        return self
