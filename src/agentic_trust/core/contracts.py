"""
On-chain contract constants for ERC-8004 registries and the ERC-8092 store.

Provides deployed contract addresses keyed by chain id, the canonical
signatures of the read functions this library calls, and ERC-1271 constants.

References:
    https://eips.ethereum.org/EIPS/eip-8004
    https://eips.ethereum.org/EIPS/eip-1271
"""

from __future__ import annotations


# ───────────────────────────────────────────────────────────────────
# Chain IDs
# ───────────────────────────────────────────────────────────────────

CHAIN_IDS: dict[str, int] = {
    "ETH": 1,
    "ETH-SEPOLIA": 11155111,
    "BASE": 8453,
    "BASE-SEPOLIA": 84532,
    "ARB": 42161,
    "ARB-SEPOLIA": 421614,
    "OP": 10,
    "OP-SEPOLIA": 11155420,
    "LINEA-SEPOLIA": 59141,
}

DEFAULT_CHAIN_ID = CHAIN_IDS["ETH-SEPOLIA"]


# ───────────────────────────────────────────────────────────────────
# Deployed Contract Addresses
# ───────────────────────────────────────────────────────────────────

REPUTATION_REGISTRY_ADDRESSES: dict[int, str] = {
    # Mainnet
    1: "0x8004BAa17C55a88189AE136b182e5fdA19dE9b63",
    # Testnets
    84532: "0x8004B663056A597Dffe9eCcC1965A193B7388713",
    11155111: "0x8004B663056A597Dffe9eCcC1965A193B7388713",
}

ASSOCIATIONS_STORE_ADDRESSES: dict[int, str] = {
    11155111: "0xaF7428906D31918dDA2986D1405E2Ded06561E59",
}


# ───────────────────────────────────────────────────────────────────
# Function Signatures (canonical form, hashed for selectors)
# ───────────────────────────────────────────────────────────────────

# Identity Registry (ERC-721 base + ERC-8004 extensions)
OWNER_OF = "ownerOf(uint256)"
IS_APPROVED_FOR_ALL = "isApprovedForAll(address,address)"
GET_APPROVED = "getApproved(uint256)"
GET_METADATA = "getMetadata(uint256,string)"

# Reputation Registry
GET_IDENTITY_REGISTRY = "getIdentityRegistry()"
GET_LAST_INDEX = "getLastIndex(uint256,address)"

# ERC-8092 Associations Store
GET_ASSOCIATION = "getAssociation(bytes32)"
SIGNED_ASSOCIATION_RECORD_TYPE = (
    "(uint40,bytes2,bytes2,bytes,bytes,(bytes,bytes,uint40,uint40,bytes4,bytes))"
)

# ERC-1271
IS_VALID_SIGNATURE = "isValidSignature(bytes32,bytes)"
ERC1271_MAGIC_VALUE = bytes.fromhex("1626ba7e")

# Metadata key under which an agent publishes its authority account
AGENT_ACCOUNT_METADATA_KEY = "agentAccount"


# ───────────────────────────────────────────────────────────────────
# Helper Functions
# ───────────────────────────────────────────────────────────────────

def get_reputation_registry(chain_id: int) -> str | None:
    """Get the default Reputation Registry address for a chain."""
    return REPUTATION_REGISTRY_ADDRESSES.get(int(chain_id))


def get_associations_store(chain_id: int) -> str | None:
    """Get the default ERC-8092 Associations Store address for a chain."""
    return ASSOCIATIONS_STORE_ADDRESSES.get(int(chain_id))


def get_chain_id(network: str) -> int | None:
    """Get chain ID for a network name such as "ETH-SEPOLIA"."""
    return CHAIN_IDS.get(str(network).upper())


__all__ = [
    "CHAIN_IDS",
    "DEFAULT_CHAIN_ID",
    "REPUTATION_REGISTRY_ADDRESSES",
    "ASSOCIATIONS_STORE_ADDRESSES",
    "OWNER_OF",
    "IS_APPROVED_FOR_ALL",
    "GET_APPROVED",
    "GET_METADATA",
    "GET_IDENTITY_REGISTRY",
    "GET_LAST_INDEX",
    "GET_ASSOCIATION",
    "SIGNED_ASSOCIATION_RECORD_TYPE",
    "IS_VALID_SIGNATURE",
    "ERC1271_MAGIC_VALUE",
    "AGENT_ACCOUNT_METADATA_KEY",
    "get_reputation_registry",
    "get_associations_store",
    "get_chain_id",
]
