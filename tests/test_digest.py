"""
Tests for the association digest engine.

The digest is cross-checked against eth-account's independent EIP-712
implementation: for the same domain, types and message both must agree on
the domain separator, the struct hash and the final digest.
"""

import pytest
from eth_account.messages import encode_typed_data
from eth_utils import keccak

from agentic_trust.association.address import encode_interoperable_address
from agentic_trust.association.digest import (
    DOMAIN_SEPARATOR,
    DOMAIN_TYPEHASH,
    RECORD_TYPEHASH,
    association_digest,
    build_record,
    clamp_u40,
    decode_association_data,
    encode_association_data,
    hash_struct,
    typed_data_for,
)
from agentic_trust.core.exceptions import EncodingError
from agentic_trust.core.types import U40_MAX, AssocType

from conftest import CLIENT, OPERATOR_ADDRESS


def _eip712_reference(record):
    typed = typed_data_for(record)
    return encode_typed_data(
        domain_data=typed.domain,
        message_types=typed.types,
        message_data=typed.message,
    )


@pytest.fixture
def record():
    return build_record(
        CLIENT,
        OPERATOR_ADDRESS,
        11155111,
        data=encode_association_data(AssocType.DELEGATION, '{"type":"test"}'),
    )


# ─────────────────────────────────────────────────────────────────
# Digest
# ─────────────────────────────────────────────────────────────────

class TestDigest:
    """Tests for the EIP-712 digest of association records."""

    def test_type_hashes(self) -> None:
        """Test type hashes match the canonical type strings."""
        assert DOMAIN_TYPEHASH == keccak(text="EIP712Domain(string name,string version)")
        assert RECORD_TYPEHASH == keccak(
            text="AssociatedAccountRecord(bytes initiator,bytes approver,uint40 validAt,"
            "uint40 validUntil,bytes4 interfaceId,bytes data)"
        )

    def test_domain_separator_matches_eip712(self, record) -> None:
        """Test the domain separator agrees with eth-account."""
        assert _eip712_reference(record).header == DOMAIN_SEPARATOR

    def test_struct_hash_matches_eip712(self, record) -> None:
        """Test the struct hash agrees with eth-account."""
        assert _eip712_reference(record).body == hash_struct(record)

    def test_digest_matches_eip712(self, record) -> None:
        """Test the digest agrees with eth-account."""
        signable = _eip712_reference(record)
        expected = keccak(b"\x19" + signable.version + signable.header + signable.body)

        assert association_digest(record) == expected
        assert len(association_digest(record)) == 32

    def test_digest_matches_eip712_with_validity_window(self) -> None:
        """Test agreement with a validity window and interface id set."""
        record = build_record(
            CLIENT, OPERATOR_ADDRESS, 1, valid_at=1_700_000_000, valid_until=1_800_000_000,
            interface_id="0x12345678", data=b"\x01\x02",
        )
        signable = _eip712_reference(record)

        assert association_digest(record) == keccak(
            b"\x19" + signable.version + signable.header + signable.body
        )

    def test_reference_vector(self) -> None:
        """Test the digest of a fixed demo record against its known value."""
        record = build_record(
            "0x" + "a" * 36 + "1111",
            "0x" + "b" * 36 + "2222",
            11155111,
            valid_at=0,
            valid_until=0,
            interface_id="0x00000000",
            data=encode_association_data(AssocType.DELEGATION, '{"type":"demo"}'),
        )

        assert association_digest(record).hex() == (
            "170093731ee9b95d2adf5febf466cd53baf82277ffe191e0e4fc44a9e29e3dc1"
        )

    def test_digest_is_deterministic(self, record) -> None:
        """Test equal records give equal digests."""
        again = build_record(CLIENT, OPERATOR_ADDRESS, 11155111, data=record.data)

        assert association_digest(again) == association_digest(record)

    def test_every_field_changes_digest(self, record) -> None:
        """Test changing any field changes the digest."""
        base = association_digest(record)
        variants = [
            build_record(OPERATOR_ADDRESS, CLIENT, 11155111, data=record.data),
            build_record(CLIENT, OPERATOR_ADDRESS, 1, data=record.data),
            build_record(CLIENT, OPERATOR_ADDRESS, 11155111, valid_at=1, data=record.data),
            build_record(CLIENT, OPERATOR_ADDRESS, 11155111, valid_until=1, data=record.data),
            build_record(CLIENT, OPERATOR_ADDRESS, 11155111, interface_id=b"\x00\x00\x00\x01", data=record.data),
            build_record(CLIENT, OPERATOR_ADDRESS, 11155111, data=record.data + b"\x00"),
        ]

        assert all(association_digest(v) != base for v in variants)

    def test_typed_data_domain_has_no_chain_binding(self, record) -> None:
        """Test the typed-data domain carries only name and version."""
        typed = typed_data_for(record)

        assert typed.domain == {"name": "AssociatedAccounts", "version": "1"}
        assert typed.primary_type == "AssociatedAccountRecord"
        assert typed.message["initiator"] == record.initiator


# ─────────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────────

class TestBuildRecord:
    """Tests for build_record and clamp_u40."""

    def test_parties_are_interoperable_addresses(self, record) -> None:
        """Test parties are stored as interoperable addresses."""
        assert record.initiator == encode_interoperable_address(11155111, CLIENT)
        assert record.approver == encode_interoperable_address(11155111, OPERATOR_ADDRESS)
        assert record.interface_id == b"\x00\x00\x00\x00"
        assert (record.valid_at, record.valid_until) == (0, 0)

    def test_validity_is_clamped(self) -> None:
        """Test validity bounds are clamped into uint40."""
        record = build_record(CLIENT, OPERATOR_ADDRESS, 1, valid_at=-5, valid_until=2**50)

        assert record.valid_at == 0
        assert record.valid_until == U40_MAX

    def test_bad_interface_id(self) -> None:
        """Test an interface id that is not 4 bytes."""
        with pytest.raises(EncodingError, match="4 bytes"):
            build_record(CLIENT, OPERATOR_ADDRESS, 1, interface_id=b"\x01")

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, 0),
            (12.7, 12),
            (-1, 0),
            ("soon", 0),
            (None, 0),
            (float("nan"), 0),
            (float("inf"), 0),
            (U40_MAX, U40_MAX),
            (U40_MAX + 1, U40_MAX),
        ],
    )
    def test_clamp_u40(self, value, expected) -> None:
        """Test clamp_u40 on edge inputs."""
        assert clamp_u40(value) == expected


# ─────────────────────────────────────────────────────────────────
# AssociationData
# ─────────────────────────────────────────────────────────────────

class TestAssociationData:
    """Tests for AssociationData encoding."""

    def test_encode_decode(self) -> None:
        """Test AssociationData decodes to its type and description."""
        data = encode_association_data(AssocType.DELEGATION, "hello")
        decoded = decode_association_data(data)

        assert decoded is not None
        assert decoded.assoc_type == 1
        assert decoded.description == "hello"

    def test_encoding_layout(self) -> None:
        """Test the ABI word layout of AssociationData."""
        data = encode_association_data(1, "")

        # uint8 word, string offset word, zero length word
        assert data == (1).to_bytes(32, "big") + (64).to_bytes(32, "big") + bytes(32)

    def test_decode_malformed_returns_none(self) -> None:
        """Test malformed AssociationData decodes to None."""
        assert decode_association_data(b"\x01\x02") is None

    def test_encode_out_of_range_type(self) -> None:
        """Test an assocType outside uint8 raises."""
        with pytest.raises(EncodingError):
            encode_association_data(256, "x")
