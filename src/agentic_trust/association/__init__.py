"""ERC-8092 associations: address codec, record digest, signature selection, delegation."""

from agentic_trust.association.address import (
    decode_interoperable_address,
    encode_interoperable_address,
    normalize_address,
    try_decode_interoperable_address,
)
from agentic_trust.association.delegation import DelegationAssociationBuilder
from agentic_trust.association.digest import (
    association_digest,
    build_record,
    clamp_u40,
    decode_association_data,
    domain_separator,
    encode_association_data,
    hash_struct,
    typed_data_for,
)
from agentic_trust.association.signatures import (
    SignatureCandidate,
    SignatureVerifier,
    build_association_candidates,
    select_signature,
)

__all__ = [
    "encode_interoperable_address",
    "decode_interoperable_address",
    "try_decode_interoperable_address",
    "normalize_address",
    "encode_association_data",
    "decode_association_data",
    "clamp_u40",
    "build_record",
    "domain_separator",
    "hash_struct",
    "association_digest",
    "typed_data_for",
    "SignatureCandidate",
    "SignatureVerifier",
    "build_association_candidates",
    "select_signature",
    "DelegationAssociationBuilder",
]
