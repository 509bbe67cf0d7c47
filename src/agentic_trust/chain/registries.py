"""
Registry readers for ERC-8004 (Identity, Reputation), the ERC-8092
Associations Store, and ERC-1271 signature verification.

Each reader wraps a :class:`JsonRpcProvider` and one contract address; all
reads go through ``call_function`` so calldata and return values are ABI
encoded and decoded by eth-abi.
"""

from __future__ import annotations

from eth_utils import to_checksum_address

from agentic_trust.association.address import normalize_address
from agentic_trust.chain.provider import JsonRpcProvider, encode_call
from agentic_trust.core.contracts import (
    ERC1271_MAGIC_VALUE,
    GET_APPROVED,
    GET_ASSOCIATION,
    GET_IDENTITY_REGISTRY,
    GET_LAST_INDEX,
    GET_METADATA,
    IS_APPROVED_FOR_ALL,
    IS_VALID_SIGNATURE,
    OWNER_OF,
    SIGNED_ASSOCIATION_RECORD_TYPE,
)
from agentic_trust.core.exceptions import EncodingError, NetworkError
from agentic_trust.core.logging import get_logger
from agentic_trust.core.types import SignedAssociationRecord

logger = get_logger("chain.registries")


class _ContractReader:
    """Base for readers bound to one contract address."""

    def __init__(self, provider: JsonRpcProvider, address: str) -> None:
        self._provider = provider
        self.address = normalize_address(address)

    @property
    def provider(self) -> JsonRpcProvider:
        return self._provider

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self.address!r})"


class IdentityRegistryClient(_ContractReader):
    """ERC-8004 Identity Registry (ERC-721 based) reads."""

    async def owner_of(self, agent_id: int) -> str:
        (owner,) = await self._provider.call_function(
            self.address, OWNER_OF, [agent_id], ["address"]
        )
        return to_checksum_address(owner)

    async def is_approved_for_all(self, owner: str, operator: str) -> bool:
        (approved,) = await self._provider.call_function(
            self.address,
            IS_APPROVED_FOR_ALL,
            [normalize_address(owner), normalize_address(operator)],
            ["bool"],
        )
        return bool(approved)

    async def get_approved(self, agent_id: int) -> str:
        (approved,) = await self._provider.call_function(
            self.address, GET_APPROVED, [agent_id], ["address"]
        )
        return to_checksum_address(approved)

    async def get_metadata(self, agent_id: int, key: str) -> bytes:
        """Raw metadata bytes stored under ``key`` (empty when unset)."""
        (value,) = await self._provider.call_function(
            self.address, GET_METADATA, [agent_id, key], ["bytes"]
        )
        return bytes(value)


class ReputationRegistryClient(_ContractReader):
    """ERC-8004 Reputation Registry reads."""

    async def get_identity_registry(self) -> str:
        (registry,) = await self._provider.call_function(
            self.address, GET_IDENTITY_REGISTRY, [], ["address"]
        )
        return to_checksum_address(registry)

    async def get_last_index(self, agent_id: int, client_address: str) -> int:
        """Index of the last feedback ``client_address`` gave ``agent_id`` (0 if none)."""
        (last_index,) = await self._provider.call_function(
            self.address,
            GET_LAST_INDEX,
            [agent_id, normalize_address(client_address)],
            ["uint64"],
        )
        return int(last_index)


class AssociationsStoreClient(_ContractReader):
    """ERC-8092 Associations Store reads."""

    async def get_association(self, association_id: bytes) -> SignedAssociationRecord | None:
        """
        Stored SAR for ``association_id``.

        Returns None when the store has no record for the id (the contract
        returns a zeroed struct).
        """
        if len(association_id) != 32:
            raise EncodingError(f"association_id must be 32 bytes, got {len(association_id)}")
        (raw,) = await self._provider.call_function(
            self.address,
            GET_ASSOCIATION,
            [association_id],
            [SIGNED_ASSOCIATION_RECORD_TYPE],
        )
        sar = SignedAssociationRecord.from_abi_tuple(raw)
        if not sar.record.initiator and not sar.record.approver:
            return None
        return sar


class Erc1271Verifier:
    """
    ERC-1271 signature verifier.

    ``isValidSignature`` reverting, or returning anything other than the magic
    value, counts as an invalid signature.
    """

    def __init__(self, provider: JsonRpcProvider) -> None:
        self._provider = provider

    async def has_code(self, address: str) -> bool:
        code = await self._provider.get_code(normalize_address(address))
        return len(code) > 0

    async def is_valid_signature(self, address: str, digest: bytes, signature: bytes) -> bool:
        try:
            raw = await self._provider.eth_call(
                normalize_address(address),
                encode_call(IS_VALID_SIGNATURE, [digest, signature]),
            )
        except NetworkError as e:
            if e.rpc_error is None:
                raise
            logger.debug(f"isValidSignature reverted on {address}: {e.rpc_error}")
            return False
        return raw[:4] == ERC1271_MAGIC_VALUE


__all__ = [
    "IdentityRegistryClient",
    "ReputationRegistryClient",
    "AssociationsStoreClient",
    "Erc1271Verifier",
]
