"""
Signature candidate selection.

Smart accounts disagree on what they accept in ``isValidSignature``: some
expect an EIP-712 signature over the typed record, others an EIP-191
personal signature over the raw digest. Candidates are tried in order and
the first one the authority accepts is used.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol, Sequence

from agentic_trust.association.digest import association_digest, typed_data_for
from agentic_trust.core.exceptions import AuthorizationError
from agentic_trust.core.logging import get_logger
from agentic_trust.core.types import (
    KEY_TYPE_K1,
    KEY_TYPE_SC_DELEGATION,
    AssociationRecord,
    SelectedSignature,
)

if TYPE_CHECKING:
    from agentic_trust.clients.accounts import AccountSigner

logger = get_logger("association.signatures")

SCHEME_EIP712 = "eip712"
SCHEME_PERSONAL_SIGN = "personal_sign"
SCHEME_SC_DELEGATION = "sc-delegation"

# Approver key type recorded in the SAR for each scheme
SCHEME_KEY_TYPES: dict[str, bytes] = {
    SCHEME_EIP712: KEY_TYPE_K1,
    SCHEME_PERSONAL_SIGN: KEY_TYPE_K1,
    SCHEME_SC_DELEGATION: KEY_TYPE_SC_DELEGATION,
}


@dataclass(frozen=True)
class SignatureCandidate:
    """A scheme tag and the coroutine function that produces its signature."""

    scheme: str
    sign: Callable[[], Awaitable[bytes]]


class SignatureVerifier(Protocol):
    """Checks signatures against an authority account."""

    async def has_code(self, address: str) -> bool:
        ...

    async def is_valid_signature(self, address: str, digest: bytes, signature: bytes) -> bool:
        ...


def key_type_for(scheme: str) -> bytes:
    return SCHEME_KEY_TYPES.get(scheme, KEY_TYPE_K1)


def build_association_candidates(
    signer: AccountSigner,
    record: AssociationRecord,
    digest: bytes | None = None,
) -> list[SignatureCandidate]:
    """
    Candidates for signing ``record`` with ``signer``, in preference order:

    1. ``eip712``: typed-data signature under ``{name, version}`` only
    2. ``personal_sign``: EIP-191 signature over the 32 digest bytes
    """
    digest = digest if digest is not None else association_digest(record)
    typed = typed_data_for(record)

    async def sign_typed_data() -> bytes:
        return await signer.sign_typed_data(
            typed.domain, typed.types, typed.primary_type, typed.message
        )

    async def sign_personal() -> bytes:
        return await signer.sign_message(digest)

    return [
        SignatureCandidate(SCHEME_EIP712, sign_typed_data),
        SignatureCandidate(SCHEME_PERSONAL_SIGN, sign_personal),
    ]


async def select_signature(
    digest: bytes,
    authority: str,
    candidates: Sequence[SignatureCandidate],
    verifier: SignatureVerifier,
    optimistic: bool = False,
) -> SelectedSignature:
    """
    Pick the first candidate ``authority`` accepts via ERC-1271.

    When the authority has no code there is nothing to validate against and
    the first candidate is returned unchecked. Candidates are signed lazily.

    Raises:
        AuthorizationError: no candidate validated and ``optimistic`` is False
    """
    if not candidates:
        raise AuthorizationError("No signature candidates supplied", check="erc1271")

    if not await verifier.has_code(authority):
        first = candidates[0]
        logger.info(
            f"Authority {authority} has no code; using {first.scheme} signature without validation"
        )
        return SelectedSignature(scheme=first.scheme, signature=await first.sign())

    fallback: SelectedSignature | None = None
    for candidate in candidates:
        signature = await candidate.sign()
        if fallback is None:
            fallback = SelectedSignature(scheme=candidate.scheme, signature=signature)
        if await verifier.is_valid_signature(authority, digest, signature):
            logger.debug(f"Authority {authority} accepted {candidate.scheme} signature")
            return SelectedSignature(scheme=candidate.scheme, signature=signature)
        logger.debug(f"Authority {authority} rejected {candidate.scheme} signature")

    schemes = [c.scheme for c in candidates]
    if optimistic and fallback is not None:
        logger.warning(
            f"No signature scheme validated for {authority} (tried {schemes}); "
            f"returning {fallback.scheme} signature unverified"
        )
        return fallback

    raise AuthorizationError(
        f"No signature scheme validated via ERC-1271 for authority {authority}",
        check="erc1271",
        details={"authority": authority, "schemes": schemes},
    )


__all__ = [
    "SCHEME_EIP712",
    "SCHEME_PERSONAL_SIGN",
    "SCHEME_SC_DELEGATION",
    "SCHEME_KEY_TYPES",
    "SignatureCandidate",
    "SignatureVerifier",
    "key_type_for",
    "build_association_candidates",
    "select_signature",
]
