"""Chain access: JSON-RPC provider and contract readers."""

from agentic_trust.chain.provider import JsonRpcProvider, encode_call
from agentic_trust.chain.registries import (
    AssociationsStoreClient,
    Erc1271Verifier,
    IdentityRegistryClient,
    ReputationRegistryClient,
)

__all__ = [
    "JsonRpcProvider",
    "encode_call",
    "IdentityRegistryClient",
    "ReputationRegistryClient",
    "AssociationsStoreClient",
    "Erc1271Verifier",
]
