"""
Association digest engine.

Builds ERC-8092 association records and computes their association id, the
EIP-712 digest the on-chain store verifies signatures against:

    domainSeparator = keccak(abi.encode(DOMAIN_TYPEHASH, keccak(name), keccak(version)))
    structHash      = keccak(abi.encode(RECORD_TYPEHASH, keccak(initiator), keccak(approver),
                                        validAt, validUntil, interfaceId, keccak(data)))
    digest          = keccak(0x1901 || domainSeparator || structHash)

The domain carries only ``name`` and ``version``; there is no chain id or
verifying contract in it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_utils import keccak

from agentic_trust.association.address import as_bytes, encode_interoperable_address
from agentic_trust.core.exceptions import EncodingError
from agentic_trust.core.logging import get_logger
from agentic_trust.core.types import (
    EMPTY_INTERFACE_ID,
    U40_MAX,
    AssociationDataFields,
    AssociationRecord,
)

logger = get_logger("association.digest")

DOMAIN_NAME = "AssociatedAccounts"
DOMAIN_VERSION = "1"

DOMAIN_TYPEHASH = keccak(text="EIP712Domain(string name,string version)")
RECORD_TYPEHASH = keccak(
    text=(
        "AssociatedAccountRecord(bytes initiator,bytes approver,uint40 validAt,"
        "uint40 validUntil,bytes4 interfaceId,bytes data)"
    )
)

DOMAIN_SEPARATOR = keccak(
    abi_encode(
        ["bytes32", "bytes32", "bytes32"],
        [DOMAIN_TYPEHASH, keccak(text=DOMAIN_NAME), keccak(text=DOMAIN_VERSION)],
    )
)

# Typed-data description handed to signers; must stay in sync with RECORD_TYPEHASH
RECORD_PRIMARY_TYPE = "AssociatedAccountRecord"
RECORD_TYPES: dict[str, list[dict[str, str]]] = {
    RECORD_PRIMARY_TYPE: [
        {"name": "initiator", "type": "bytes"},
        {"name": "approver", "type": "bytes"},
        {"name": "validAt", "type": "uint40"},
        {"name": "validUntil", "type": "uint40"},
        {"name": "interfaceId", "type": "bytes4"},
        {"name": "data", "type": "bytes"},
    ],
}

_ASSOCIATION_DATA_TYPES = ["uint8", "string"]


@dataclass(frozen=True)
class TypedDataPayload:
    """EIP-712 inputs for signing a record with a typed-data signer."""

    domain: dict[str, Any]
    types: dict[str, list[dict[str, str]]]
    primary_type: str
    message: dict[str, Any]


# ─── AssociationData ─────────────────────────────────────────────────

def encode_association_data(assoc_type: int, description: str) -> bytes:
    """ABI-encode ``(uint8 assocType, string description)``."""
    try:
        return abi_encode(_ASSOCIATION_DATA_TYPES, [int(assoc_type), description])
    except (AbiEncodingError, TypeError, ValueError) as e:
        raise EncodingError(
            f"Cannot encode association data: {e}",
            details={"assoc_type": assoc_type},
        ) from e


def decode_association_data(data: bytes | str) -> AssociationDataFields | None:
    """Decode AssociationData; None when the bytes are not a valid encoding."""
    try:
        assoc_type, description = abi_decode(_ASSOCIATION_DATA_TYPES, as_bytes(data, "data"))
    except (DecodingError, EncodingError, UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Failed to decode association data: {e}")
        return None
    return AssociationDataFields(assoc_type=int(assoc_type), description=description)


# ─── Records ─────────────────────────────────────────────────────────

def clamp_u40(value: Any) -> int:
    """Clamp into the uint40 range; invalid or negative input becomes 0."""
    try:
        n = math.floor(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    if n < 0:
        return 0
    return min(n, U40_MAX)


def build_record(
    initiator: bytes | str,
    approver: bytes | str,
    chain_id: int,
    valid_at: Any = 0,
    valid_until: Any = 0,
    interface_id: bytes | str = EMPTY_INTERFACE_ID,
    data: bytes | str = b"",
) -> AssociationRecord:
    """Build an AssociationRecord for two EVM addresses on ``chain_id``."""
    interface_bytes = as_bytes(interface_id, "interface_id")
    if len(interface_bytes) != 4:
        raise EncodingError(f"interface_id must be 4 bytes, got {len(interface_bytes)}")
    return AssociationRecord(
        initiator=encode_interoperable_address(chain_id, initiator),
        approver=encode_interoperable_address(chain_id, approver),
        valid_at=clamp_u40(valid_at),
        valid_until=clamp_u40(valid_until),
        interface_id=interface_bytes,
        data=as_bytes(data, "data"),
    )


def domain_separator() -> bytes:
    return DOMAIN_SEPARATOR


def hash_struct(record: AssociationRecord) -> bytes:
    """EIP-712 struct hash of a record (bytes members pre-hashed)."""
    return keccak(
        abi_encode(
            ["bytes32", "bytes32", "bytes32", "uint40", "uint40", "bytes4", "bytes32"],
            [
                RECORD_TYPEHASH,
                keccak(record.initiator),
                keccak(record.approver),
                record.valid_at,
                record.valid_until,
                record.interface_id,
                keccak(record.data),
            ],
        )
    )


def association_digest(record: AssociationRecord) -> bytes:
    """32-byte association id of a record."""
    return keccak(b"\x19\x01" + DOMAIN_SEPARATOR + hash_struct(record))


def typed_data_for(record: AssociationRecord) -> TypedDataPayload:
    """Typed-data inputs whose EIP-712 digest equals ``association_digest(record)``."""
    return TypedDataPayload(
        domain={"name": DOMAIN_NAME, "version": DOMAIN_VERSION},
        types=RECORD_TYPES,
        primary_type=RECORD_PRIMARY_TYPE,
        message={
            "initiator": record.initiator,
            "approver": record.approver,
            "validAt": record.valid_at,
            "validUntil": record.valid_until,
            "interfaceId": record.interface_id,
            "data": record.data,
        },
    )


__all__ = [
    "DOMAIN_NAME",
    "DOMAIN_VERSION",
    "DOMAIN_TYPEHASH",
    "RECORD_TYPEHASH",
    "DOMAIN_SEPARATOR",
    "RECORD_TYPES",
    "RECORD_PRIMARY_TYPE",
    "TypedDataPayload",
    "encode_association_data",
    "decode_association_data",
    "clamp_u40",
    "build_record",
    "domain_separator",
    "hash_struct",
    "association_digest",
    "typed_data_for",
]
