"""Nostr key handling for nostrfeed.

Derives the client's own public key from a private key and normalizes
public keys supplied in either hex or ``npub`` form. Private keys are
loaded from environment variables through
[KeysConfig][nostrfeed.utils.keys.KeysConfig], never from config files.

Warning:
    Private keys must **never** be stored in configuration files, source code,
    or logged to any output.

Examples:
    ```python
    import os

    os.environ["NOSTR_PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("NOSTR_PRIVATE_KEY")
    derive_public_key(keys.secret_key().to_hex())   # '3bf0c63f...'
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys, PublicKey
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable containing the private key
            (nsec1 bech32 or 64-char hex).

    Raises:
        ValueError: If the environment variable is not set or is empty.
        nostr_sdk.NostrSdkError: If the key value is malformed.
    """
    value = os.getenv(env_var)

    if not value:
        raise ValueError(f"{env_var} environment variable is required")

    return Keys.parse(value)


def derive_public_key(private_key: str) -> str:
    """Return the hex public key for a private key (nsec1 or hex).

    Raises:
        nostr_sdk.NostrSdkError: If the private key is malformed.
    """
    return Keys.parse(private_key).public_key().to_hex()


def parse_public_key(value: str) -> str:
    """Normalize a hex or ``npub`` public key to lowercase hex.

    Raises:
        nostr_sdk.NostrSdkError: If *value* is not a valid public key.
    """
    return PublicKey.parse(value.strip()).to_hex()


class KeysConfig(BaseModel):
    """Pydantic model that auto-loads Nostr keys from an environment variable.

    Attributes:
        keys_env: Environment variable name for the private key.
        keys: Loaded ``nostr_sdk.Keys`` instance (private + derived public key).

    Warning:
        The ``keys`` field contains a live private key. Do not serialize
        this model to logs, JSON, or any persistent storage.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env (required)")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Auto-populate the ``keys`` field from the environment variable."""
        if isinstance(data, dict) and "keys" not in data:
            env_var = data.get("keys_env", ENV_PRIVATE_KEY)
            data = {**data, "keys": load_keys_from_env(env_var)}
        return data

    @property
    def public_key(self) -> str:
        return self.keys.public_key().to_hex()
