"""
Interoperable address codec (ERC-7930, EVM v1 form).

Layout::

    0x0001 (version) || 0x0000 (eip155 chain type)
    || uint8(len(chainRef)) || chainRef (minimal big-endian chain id)
    || uint8(20) || address

Chain id 0 is encoded as the single byte ``0x00``.
"""

from __future__ import annotations

from eth_utils import to_checksum_address

from agentic_trust.core.exceptions import EncodingError

INTEROPERABLE_HEADER = bytes.fromhex("00010000")
EVM_ADDRESS_LENGTH = 20


def as_bytes(value: bytes | bytearray | str, field_name: str = "value") -> bytes:
    """Accept raw bytes or a 0x-prefixed hex string."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value.strip()
        if text.startswith(("0x", "0X")):
            text = text[2:]
        if len(text) % 2:
            raise EncodingError(f"Odd-length hex for {field_name}", details={"value": value})
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            raise EncodingError(f"Invalid hex for {field_name}: {e}", details={"value": value}) from e
    raise EncodingError(f"Unsupported type for {field_name}: {type(value).__name__}")


def address_bytes(address: bytes | bytearray | str) -> bytes:
    """Return the 20 raw bytes of an EVM address."""
    raw = as_bytes(address, "address")
    if len(raw) != EVM_ADDRESS_LENGTH:
        raise EncodingError(
            f"Address must be {EVM_ADDRESS_LENGTH} bytes, got {len(raw)}",
            details={"address": address if isinstance(address, str) else raw.hex()},
        )
    return raw


def normalize_address(address: bytes | bytearray | str) -> str:
    """EIP-55 checksum form of an address; EncodingError if malformed."""
    return to_checksum_address(address_bytes(address))


def _minimal_big_endian(value: int) -> bytes:
    if value == 0:
        return b"\x00"
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def encode_interoperable_address(chain_id: int, address: bytes | bytearray | str) -> bytes:
    """Encode ``(chain_id, address)`` into its interoperable byte form."""
    if not isinstance(chain_id, int) or chain_id < 0:
        raise EncodingError(f"chain_id must be a non-negative integer, got {chain_id!r}")
    chain_ref = _minimal_big_endian(chain_id)
    if len(chain_ref) > 0xFF:
        raise EncodingError("chain_id too large for a one-byte chain reference length")
    return b"".join(
        [
            INTEROPERABLE_HEADER,
            bytes([len(chain_ref)]),
            chain_ref,
            bytes([EVM_ADDRESS_LENGTH]),
            address_bytes(address),
        ]
    )


def decode_interoperable_address(data: bytes | bytearray | str) -> tuple[int, str]:
    """
    Decode an interoperable address into ``(chain_id, checksum_address)``.

    Raises:
        EncodingError: bad version/chain type, or inconsistent lengths
    """
    raw = as_bytes(data, "interoperable address")
    if len(raw) < 6:
        raise EncodingError("Interoperable address too short", details={"length": len(raw)})
    if raw[:2] != INTEROPERABLE_HEADER[:2]:
        raise EncodingError(f"Unsupported interoperable address version 0x{raw[:2].hex()}")
    if raw[2:4] != INTEROPERABLE_HEADER[2:]:
        raise EncodingError(f"Unsupported chain type 0x{raw[2:4].hex()} (only eip155)")

    ref_len = raw[4]
    if ref_len == 0:
        raise EncodingError("Interoperable address has no chain reference")
    ref_end = 5 + ref_len
    if len(raw) < ref_end + 1:
        raise EncodingError(
            "Chain reference length exceeds data",
            details={"chain_ref_length": ref_len, "length": len(raw)},
        )

    chain_id = int.from_bytes(raw[5:ref_end], "big")
    addr_len = raw[ref_end]
    if addr_len != EVM_ADDRESS_LENGTH:
        raise EncodingError(f"Address length byte must be 20, got {addr_len}")
    addr = raw[ref_end + 1:]
    if len(addr) != addr_len:
        raise EncodingError(
            "Address length mismatch",
            details={"declared": addr_len, "actual": len(addr)},
        )
    return chain_id, to_checksum_address(addr)


def try_decode_interoperable_address(data: bytes | bytearray | str) -> tuple[int, str] | None:
    """Non-raising variant of :func:`decode_interoperable_address`."""
    try:
        return decode_interoperable_address(data)
    except EncodingError:
        return None


__all__ = [
    "INTEROPERABLE_HEADER",
    "as_bytes",
    "address_bytes",
    "normalize_address",
    "encode_interoperable_address",
    "decode_interoperable_address",
    "try_decode_interoperable_address",
]
