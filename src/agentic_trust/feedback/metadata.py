"""
Parser for the ``agentAccount`` metadata value.

Registries store the value as opaque bytes and publishers disagree on the
encoding. Values that decode to printable UTF-8 are parsed as text:

1. ``0x`` + 40 hex digits
2. CAIP-10 account id ``eip155:<chainId>:0x…``

Anything else is read as binary:

3. raw 20-byte address
4. ABI-encoded address (32 bytes, left-padded with zeros)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from eth_utils import to_checksum_address

ENCODING_RAW = "raw"
ENCODING_ABI = "abi"
ENCODING_HEX_TEXT = "hex-text"
ENCODING_CAIP10 = "caip10"

_HEX_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_CAIP10_RE = re.compile(r"^([-a-z0-9]{3,8}):([-_a-zA-Z0-9]{1,32}):(.+)$")
_ZERO_ADDRESS = bytes(20)


@dataclass(frozen=True)
class DecodedAccount:
    address: str
    encoding: str
    chain_id: int | None = None


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


AccountDecodeResult = Union[DecodedAccount, DecodeFailure]


def _from_raw(raw: bytes, encoding: str) -> AccountDecodeResult:
    if raw == _ZERO_ADDRESS:
        return DecodeFailure("zero address")
    return DecodedAccount(address=to_checksum_address(raw), encoding=encoding)


def _parse_text(text: str) -> AccountDecodeResult:
    text = text.strip()
    if not text:
        return DecodeFailure("empty")

    if _HEX_ADDRESS_RE.match(text):
        return _from_raw(bytes.fromhex(text[2:]), ENCODING_HEX_TEXT)

    match = _CAIP10_RE.match(text)
    if match:
        namespace, reference, account = match.groups()
        if namespace != "eip155":
            return DecodeFailure(f"unsupported CAIP-10 namespace: {namespace}")
        if not reference.isdigit():
            return DecodeFailure(f"invalid eip155 chain reference: {reference}")
        if not _HEX_ADDRESS_RE.match(account):
            return DecodeFailure(f"invalid CAIP-10 account address: {account}")
        decoded = _from_raw(bytes.fromhex(account[2:]), ENCODING_CAIP10)
        if isinstance(decoded, DecodeFailure):
            return decoded
        return DecodedAccount(decoded.address, ENCODING_CAIP10, chain_id=int(reference))

    return DecodeFailure("unrecognized agentAccount encoding")


def parse_agent_account(value: bytes | str | None) -> AccountDecodeResult:
    """Decode an ``agentAccount`` metadata value into an address."""
    if value is None:
        return DecodeFailure("empty")
    if isinstance(value, str):
        return _parse_text(value)

    raw = bytes(value)
    if not raw:
        return DecodeFailure("empty")

    try:
        text: str | None = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = None
    # A 20-character label is text, not an address.
    if text is not None and text.strip().isprintable():
        return _parse_text(text)

    if len(raw) == 20:
        return _from_raw(raw, ENCODING_RAW)
    if len(raw) == 32 and raw[:12] == bytes(12):
        return _from_raw(raw[12:], ENCODING_ABI)
    if text is None:
        return DecodeFailure("not a UTF-8 string")
    return _parse_text(text)


__all__ = [
    "ENCODING_RAW",
    "ENCODING_ABI",
    "ENCODING_HEX_TEXT",
    "ENCODING_CAIP10",
    "DecodedAccount",
    "DecodeFailure",
    "AccountDecodeResult",
    "parse_agent_account",
]
