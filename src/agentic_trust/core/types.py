"""
Type definitions for agentic-trust.

This module contains the enums, data classes, and constants shared by the
association, feedback and storage layers. Byte-valued fields are held as
``bytes``; ``to_dict()`` renders them as ``0x`` hex for JSON transport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

# uint40 / uint64 bounds used for clamping
U40_MAX = (1 << 40) - 1
U64_MAX = (1 << 64) - 1

# ERC-8092 key types (bytes2)
KEY_TYPE_K1 = bytes.fromhex("0001")
KEY_TYPE_SC_DELEGATION = bytes.fromhex("8004")

EMPTY_INTERFACE_ID = bytes(4)


def to_hex(value: bytes) -> str:
    """Render bytes as a 0x-prefixed lowercase hex string."""
    return "0x" + bytes(value).hex()


class AssocType(IntEnum):
    """Association kinds carried in AssociationData.assocType."""

    DELEGATION = 1


@dataclass(frozen=True)
class AssociationDataFields:
    """Decoded AssociationData payload."""

    assoc_type: int
    description: str


@dataclass(frozen=True)
class AssociationRecord:
    """
    ERC-8092 AssociatedAccountRecord.

    Immutable: the association id is derived from every field, so any change
    produces a different record.
    """

    initiator: bytes        # interoperable address
    approver: bytes         # interoperable address
    valid_at: int           # uint40
    valid_until: int        # uint40
    interface_id: bytes     # bytes4
    data: bytes             # abi.encode(uint8, string)

    def as_abi_tuple(self) -> tuple[bytes, bytes, int, int, bytes, bytes]:
        return (
            self.initiator,
            self.approver,
            self.valid_at,
            self.valid_until,
            self.interface_id,
            self.data,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "initiator": to_hex(self.initiator),
            "approver": to_hex(self.approver),
            "validAt": self.valid_at,
            "validUntil": self.valid_until,
            "interfaceId": to_hex(self.interface_id),
            "data": to_hex(self.data),
        }


@dataclass
class SignedAssociationRecord:
    """
    ERC-8092 SignedAssociationRecord (SAR).

    Built incrementally: the approver signs first and the initiator signature
    stays empty until the counter-party completes it.
    """

    record: AssociationRecord
    revoked_at: int = 0
    initiator_key_type: bytes = KEY_TYPE_K1
    approver_key_type: bytes = KEY_TYPE_K1
    initiator_signature: bytes = b""
    approver_signature: bytes = b""

    @property
    def is_complete(self) -> bool:
        """Both parties have signed."""
        return bool(self.initiator_signature) and bool(self.approver_signature)

    def as_abi_tuple(self) -> tuple[Any, ...]:
        """Tuple shape expected by ``storeAssociation``."""
        return (
            self.revoked_at,
            self.initiator_key_type,
            self.approver_key_type,
            self.initiator_signature,
            self.approver_signature,
            self.record.as_abi_tuple(),
        )

    @classmethod
    def from_abi_tuple(cls, value: tuple[Any, ...]) -> SignedAssociationRecord:
        revoked_at, initiator_kt, approver_kt, initiator_sig, approver_sig, rec = value
        initiator, approver, valid_at, valid_until, interface_id, data = rec
        return cls(
            record=AssociationRecord(
                initiator=bytes(initiator),
                approver=bytes(approver),
                valid_at=int(valid_at),
                valid_until=int(valid_until),
                interface_id=bytes(interface_id),
                data=bytes(data),
            ),
            revoked_at=int(revoked_at),
            initiator_key_type=bytes(initiator_kt),
            approver_key_type=bytes(approver_kt),
            initiator_signature=bytes(initiator_sig),
            approver_signature=bytes(approver_sig),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "revokedAt": self.revoked_at,
            "initiatorKeyType": to_hex(self.initiator_key_type),
            "approverKeyType": to_hex(self.approver_key_type),
            "initiatorSignature": to_hex(self.initiator_signature),
            "approverSignature": to_hex(self.approver_signature),
            "record": self.record.to_dict(),
        }


@dataclass(frozen=True)
class FeedbackAuthStruct:
    """ERC-8004 FeedbackAuth struct, in on-chain field order."""

    agent_id: int
    client_address: str
    index_limit: int
    expiry: int
    chain_id: int
    identity_registry: str
    signer_address: str

    ABI_TYPES = (
        "uint256",
        "address",
        "uint256",
        "uint256",
        "uint256",
        "address",
        "address",
    )

    def as_abi_values(self) -> tuple[Any, ...]:
        return (
            self.agent_id,
            self.client_address,
            self.index_limit,
            self.expiry,
            self.chain_id,
            self.identity_registry,
            self.signer_address,
        )

    def to_dict(self) -> dict[str, Any]:
        # uint256 values travel as strings to survive JSON number limits
        return {
            "agentId": str(self.agent_id),
            "clientAddress": self.client_address,
            "indexLimit": str(self.index_limit),
            "expiry": str(self.expiry),
            "chainId": str(self.chain_id),
            "identityRegistry": self.identity_registry,
            "signerAddress": self.signer_address,
        }


@dataclass(frozen=True)
class FeedbackAuthResult:
    """A signed feedback-authorization token and the values it commits to."""

    token: bytes                # encoded struct || signature
    struct: FeedbackAuthStruct
    encoded: bytes
    signature: bytes
    operator_address: str       # key that produced the signature bytes

    @property
    def authority_address(self) -> str:
        """Address the token is attributed to."""
        return self.struct.signer_address

    @property
    def token_hex(self) -> str:
        return to_hex(self.token)


@dataclass(frozen=True)
class UploadResult:
    """Result of a content-addressed storage upload."""

    cid: str
    url: str
    token_uri: str
    size: int | None = None


@dataclass(frozen=True)
class SelectedSignature:
    """Signature candidate accepted for an authority."""

    scheme: str
    signature: bytes


@dataclass
class DelegationAssociation:
    """
    Approver-signed delegation association, pending the initiator signature.

    The caller either completes ``sar`` with the initiator signature and
    submits it on-chain, or discards it.
    """

    association_id: bytes
    initiator_address: str
    approver_address: str
    assoc_type: int
    valid_at: int
    valid_until: int
    data: bytes
    approver_signature: bytes
    sar: SignedAssociationRecord
    delegation: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "associationId": to_hex(self.association_id),
            "initiatorAddress": self.initiator_address,
            "approverAddress": self.approver_address,
            "assocType": self.assoc_type,
            "validAt": self.valid_at,
            "validUntil": self.valid_until,
            "data": to_hex(self.data),
            "approverSignature": to_hex(self.approver_signature),
            "sar": self.sar.to_dict(),
            "delegation": self.delegation,
        }


__all__ = [
    "U40_MAX",
    "U64_MAX",
    "KEY_TYPE_K1",
    "KEY_TYPE_SC_DELEGATION",
    "EMPTY_INTERFACE_ID",
    "to_hex",
    "AssocType",
    "AssociationDataFields",
    "AssociationRecord",
    "SignedAssociationRecord",
    "FeedbackAuthStruct",
    "FeedbackAuthResult",
    "UploadResult",
    "SelectedSignature",
    "DelegationAssociation",
]
