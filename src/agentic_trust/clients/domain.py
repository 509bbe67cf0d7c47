"""
Domain clients container.

The application constructs one :class:`DomainClients` and passes it to the
builders; every chain-scoped client is obtained through one of its caches so
there is at most one live client per chain.
"""

from __future__ import annotations

from typing import Any

import httpx

from agentic_trust.chain.provider import JsonRpcProvider
from agentic_trust.chain.registries import (
    AssociationsStoreClient,
    Erc1271Verifier,
    IdentityRegistryClient,
    ReputationRegistryClient,
)
from agentic_trust.clients.accounts import AccountSigner, resolve_account
from agentic_trust.clients.cache import DomainClientCache
from agentic_trust.core.config import ENV_PREFIX, Config
from agentic_trust.core.exceptions import ConfigurationError
from agentic_trust.core.logging import get_logger, set_log_level
from agentic_trust.storage.ipfs import IPFSStorage

logger = get_logger("clients.domain")


class DomainClients:
    """
    Chain-scoped clients, built lazily and shared.

    Usage:
        async with DomainClients(Config.from_env()) as clients:
            provider = await clients.providers.get(11155111)
            signer = await clients.accounts.get(11155111)
    """

    def __init__(
        self,
        config: Config | None = None,
        http_client: httpx.AsyncClient | None = None,
        storage: IPFSStorage | None = None,
        log_level: int | str | None = None,
    ) -> None:
        """
        Args:
            config: Library configuration (defaults to ``Config.from_env()``)
            http_client: Shared httpx client for RPC and storage requests
            storage: Content storage client (defaults to one built from config)
            log_level: Logging level (defaults to ``config.log_level``)
        """
        self.config = config or Config.from_env()
        set_log_level(log_level or self.config.log_level)
        self._http_client = http_client
        self._storage = storage

        self.providers: DomainClientCache[int, JsonRpcProvider] = DomainClientCache(
            "providers", self._build_provider
        )
        self.reputation: DomainClientCache[int, ReputationRegistryClient] = DomainClientCache(
            "reputation", self._build_reputation
        )
        self.identity: DomainClientCache[tuple[int, str], IdentityRegistryClient] = DomainClientCache(
            "identity", self._build_identity
        )
        self.associations: DomainClientCache[int, AssociationsStoreClient] = DomainClientCache(
            "associations", self._build_associations
        )
        self.accounts: DomainClientCache[int, AccountSigner] = DomainClientCache(
            "accounts", self._build_account
        )

    # ─── Builders ────────────────────────────────────────────────────

    async def _build_provider(self, chain_id: int, rpc_url: str | None) -> JsonRpcProvider:
        url = rpc_url or self.config.rpc_url_for(chain_id)
        if not url:
            raise ConfigurationError(
                f"No RPC URL configured for chain {chain_id}",
                setting=f"{ENV_PREFIX}RPC_URL_{chain_id}",
            )
        logger.debug(f"Creating JSON-RPC provider for chain {chain_id}")
        return JsonRpcProvider(
            url,
            http_client=self._http_client,
            timeout=self.config.http_timeout,
            retries=self.config.rpc_retries,
        )

    async def _build_reputation(self, chain_id: int, address: str | None) -> ReputationRegistryClient:
        registry = address or self.config.reputation_registry_for(chain_id)
        if not registry:
            raise ConfigurationError(
                f"No Reputation Registry configured for chain {chain_id}",
                setting=f"{ENV_PREFIX}REPUTATION_REGISTRY_{chain_id}",
            )
        return ReputationRegistryClient(await self.providers.get(chain_id), registry)

    async def _build_identity(self, key: tuple[int, str], _: Any) -> IdentityRegistryClient:
        # keyed by registry too: a chain can host more than one Identity Registry
        chain_id, registry = key
        return IdentityRegistryClient(await self.providers.get(chain_id), registry)

    async def _build_associations(self, chain_id: int, address: str | None) -> AssociationsStoreClient:
        store = address or self.config.associations_store_for(chain_id)
        if not store:
            raise ConfigurationError(
                f"No Associations Store configured for chain {chain_id}",
                setting=f"{ENV_PREFIX}ASSOCIATIONS_STORE_{chain_id}",
            )
        return AssociationsStoreClient(await self.providers.get(chain_id), store)

    async def _build_account(self, chain_id: int, _: Any) -> AccountSigner:
        return resolve_account(self.config)

    # ─── Accessors ───────────────────────────────────────────────────

    async def verifier(self, chain_id: int) -> Erc1271Verifier:
        """ERC-1271 verifier on the chain's provider."""
        return Erc1271Verifier(await self.providers.get(chain_id))

    @property
    def storage(self) -> IPFSStorage:
        if self._storage is None:
            self._storage = IPFSStorage.from_config(self.config, http_client=self._http_client)
        return self._storage

    def reset(self) -> None:
        """Forget every cached client."""
        for cache in (self.providers, self.reputation, self.identity, self.associations, self.accounts):
            cache.reset()

    async def close(self) -> None:
        """Close owned HTTP clients and forget cached clients."""
        for _, provider in self.providers.ready_items():
            await provider.close()
        if self._storage is not None:
            await self._storage.close()
        self.reset()

    async def __aenter__(self) -> DomainClients:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()


__all__ = ["DomainClients"]
