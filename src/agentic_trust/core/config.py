"""
Configuration management for agentic-trust.

Handles loading configuration from environment variables and validation.
Chain-scoped settings are looked up as ``<NAME>_<chainId>`` before the
unscoped ``<NAME>``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any

from agentic_trust.core.contracts import (
    DEFAULT_CHAIN_ID,
    get_associations_store,
    get_chain_id,
    get_reputation_registry,
)
from agentic_trust.core.exceptions import ConfigurationError

ENV_PREFIX = "AGENTIC_TRUST_"


def _get_env_var(name: str, default: str | None = None, required: bool = False) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name, default)
    if required and not value:
        raise ConfigurationError(
            f"Required environment variable {name} is not set", setting=name
        )
    return value


def _parse_chain_id(value: Any) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    chain_id = get_chain_id(text)
    if chain_id is None:
        raise ConfigurationError(f"Unknown chain: {value}", setting=f"{ENV_PREFIX}CHAIN_ID")
    return chain_id


@dataclass(frozen=True)
class Config:
    """Library configuration."""

    # RPC endpoint(s) for the default chain, comma-separated for fallback
    rpc_url: str | None = None
    chain_id: int = DEFAULT_CHAIN_ID

    # Contract overrides for the default chain
    identity_registry: str | None = None
    reputation_registry: str | None = None
    associations_store: str | None = None

    # Signing contexts, highest priority first: admin, provider, client
    admin_private_key: str | None = field(default=None, repr=False)
    provider_private_key: str | None = field(default=None, repr=False)
    client_private_key: str | None = field(default=None, repr=False)
    # Address used by the read-only context when no key is configured
    account_address: str | None = None

    # Content-addressed storage
    pinata_jwt: str | None = field(default=None, repr=False)
    pinata_api_key: str | None = field(default=None, repr=False)
    pinata_api_secret: str | None = field(default=None, repr=False)
    ipfs_api_url: str | None = None
    ipfs_gateway_url: str = "https://gateway.pinata.cloud/ipfs/"

    # Timeouts (seconds) and retries
    http_timeout: float = 10.0
    rpc_retries: int = 3

    # Feedback authorization defaults
    feedback_expiry_seconds: int = 3600

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.chain_id <= 0:
            raise ConfigurationError("chain_id must be positive", setting="chain_id")
        if self.http_timeout <= 0:
            raise ConfigurationError("http_timeout must be positive", setting="http_timeout")
        if self.rpc_retries < 1:
            raise ConfigurationError("rpc_retries must be at least 1", setting="rpc_retries")

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables."""

        def pick(key: str, env_name: str, default: str | None = None) -> Any:
            if overrides.get(key) is not None:
                return overrides[key]
            return _get_env_var(env_name, default=default)

        chain_id = _parse_chain_id(
            pick("chain_id", f"{ENV_PREFIX}CHAIN_ID", default=str(DEFAULT_CHAIN_ID))
        )
        associations_store = overrides.get("associations_store") or _get_env_var(
            f"{ENV_PREFIX}ASSOCIATIONS_STORE"
        ) or _get_env_var("ASSOCIATIONS_STORE_PROXY")

        return cls(
            rpc_url=pick("rpc_url", f"{ENV_PREFIX}RPC_URL"),
            chain_id=chain_id,
            identity_registry=pick("identity_registry", f"{ENV_PREFIX}IDENTITY_REGISTRY"),
            reputation_registry=pick("reputation_registry", f"{ENV_PREFIX}REPUTATION_REGISTRY"),
            associations_store=associations_store,
            admin_private_key=pick("admin_private_key", f"{ENV_PREFIX}ADMIN_PRIVATE_KEY"),
            provider_private_key=pick("provider_private_key", f"{ENV_PREFIX}PROVIDER_PRIVATE_KEY"),
            client_private_key=pick("client_private_key", f"{ENV_PREFIX}CLIENT_PRIVATE_KEY"),
            account_address=pick("account_address", f"{ENV_PREFIX}ACCOUNT_ADDRESS"),
            pinata_jwt=pick("pinata_jwt", "PINATA_JWT"),
            pinata_api_key=pick("pinata_api_key", "PINATA_API_KEY"),
            pinata_api_secret=pick("pinata_api_secret", "PINATA_API_SECRET"),
            ipfs_api_url=pick("ipfs_api_url", "IPFS_API_URL"),
            ipfs_gateway_url=pick("ipfs_gateway_url", "IPFS_GATEWAY_URL", default=cls.ipfs_gateway_url),
            http_timeout=float(pick("http_timeout", f"{ENV_PREFIX}HTTP_TIMEOUT", default=str(cls.http_timeout))),
            rpc_retries=int(pick("rpc_retries", f"{ENV_PREFIX}RPC_RETRIES", default=str(cls.rpc_retries))),
            feedback_expiry_seconds=int(
                pick(
                    "feedback_expiry_seconds",
                    f"{ENV_PREFIX}FEEDBACK_EXPIRY_SECONDS",
                    default=str(cls.feedback_expiry_seconds),
                )
            ),
            log_level=pick("log_level", f"{ENV_PREFIX}LOG_LEVEL", default="INFO"),
        )

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(updates)
        return Config(**current)

    # ─── Chain-scoped lookups ────────────────────────────────────────

    def _scoped(self, env_name: str, chain_id: int, explicit: str | None) -> str | None:
        scoped = os.environ.get(f"{env_name}_{chain_id}")
        if scoped:
            return scoped
        if chain_id == self.chain_id and explicit:
            return explicit
        return None

    def rpc_url_for(self, chain_id: int) -> str | None:
        """RPC endpoint(s) configured for a chain."""
        return self._scoped(f"{ENV_PREFIX}RPC_URL", chain_id, self.rpc_url)

    def identity_registry_for(self, chain_id: int) -> str | None:
        """Identity Registry configured for a chain (no on-chain lookup)."""
        return self._scoped(f"{ENV_PREFIX}IDENTITY_REGISTRY", chain_id, self.identity_registry)

    def reputation_registry_for(self, chain_id: int) -> str | None:
        """Reputation Registry for a chain, falling back to known deployments."""
        return self._scoped(
            f"{ENV_PREFIX}REPUTATION_REGISTRY", chain_id, self.reputation_registry
        ) or get_reputation_registry(chain_id)

    def associations_store_for(self, chain_id: int) -> str | None:
        """ERC-8092 Associations Store for a chain, falling back to known deployments."""
        return self._scoped(
            f"{ENV_PREFIX}ASSOCIATIONS_STORE", chain_id, self.associations_store
        ) or get_associations_store(chain_id)


__all__ = ["Config", "ENV_PREFIX"]
