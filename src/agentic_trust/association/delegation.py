"""
Delegation Association Builder.

Produces an ERC-8092 delegation association between an initiator (the party
being granted a right) and an approver (the authority granting it). The
approver signs now; the initiator signature is left empty for the initiator
to add before the record is stored on-chain.

The full delegation payload is anchored to content storage and the record's
AssociationData carries a small JSON pointer to it.
"""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from agentic_trust.association.address import (
    as_bytes,
    normalize_address,
    try_decode_interoperable_address,
)
from agentic_trust.association.digest import (
    association_digest,
    build_record,
    encode_association_data,
)
from agentic_trust.association.signatures import (
    SCHEME_SC_DELEGATION,
    build_association_candidates,
    key_type_for,
    select_signature,
)
from agentic_trust.core.exceptions import AgenticTrustError, ConfigurationError, NotFoundError
from agentic_trust.core.logging import get_logger
from agentic_trust.core.types import (
    EMPTY_INTERFACE_ID,
    KEY_TYPE_K1,
    AssocType,
    DelegationAssociation,
    SignedAssociationRecord,
    to_hex,
)

if TYPE_CHECKING:
    from agentic_trust.clients.accounts import AccountSigner
    from agentic_trust.clients.domain import DomainClients

logger = get_logger("association.delegation")


def utc_iso(timestamp: float) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DelegationAssociationBuilder:
    """
    Builds approver-signed delegation associations.

    Usage:
        builder = DelegationAssociationBuilder(clients)
        association = await builder.build_delegation(
            authority="0xAgentAccount...",
            operator=signer,
            initiator="0xClient...",
            chain_id=11155111,
            payload={"kind": "example"},
            payload_type="example.delegation",
        )
    """

    def __init__(
        self,
        clients: DomainClients,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clients = clients
        self._clock = clock

    async def build_delegation(
        self,
        authority: str,
        operator: AccountSigner,
        initiator: str,
        chain_id: int,
        payload: dict[str, Any],
        payload_type: str,
        existing_association_id: bytes | str | None = None,
        extra_ref: dict[str, Any] | None = None,
        optimistic: bool = False,
        filename: str = "delegation.json",
    ) -> DelegationAssociation:
        """
        Build a delegation association from ``authority`` (approver) to
        ``initiator``, signed by ``operator`` on the authority's behalf.

        With ``existing_association_id`` the association already stored on-chain
        is reused instead of signing a new one.

        Raises:
            ConfigurationError: invalid chain id
            EncodingError: malformed address
            NotFoundError: the existing association is absent or its parties differ
            AuthorizationError: no signature candidate validated for the authority
        """
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
            raise ConfigurationError(
                f"Invalid chain_id for delegation association: {chain_id!r}",
                setting="chain_id",
            )
        approver_address = normalize_address(authority)
        initiator_address = normalize_address(initiator)
        created_at = utc_iso(self._clock())

        payload_uri, payload_cid = await self._anchor(
            {**payload, "type": payload_type, "createdAt": created_at}, filename
        )
        delegation_ref: dict[str, Any] = {
            "type": payload_type,
            "payloadUri": payload_uri,
            "payloadCid": payload_cid,
            "createdAt": created_at,
            **(extra_ref or {}),
        }

        data = encode_association_data(
            AssocType.DELEGATION,
            json.dumps(delegation_ref, separators=(",", ":")),
        )
        record = build_record(
            initiator_address,
            approver_address,
            chain_id,
            valid_at=0,
            valid_until=0,
            interface_id=EMPTY_INTERFACE_ID,
            data=data,
        )
        digest = association_digest(record)

        if existing_association_id is not None:
            return await self._reuse_existing(
                as_bytes(existing_association_id, "existing_association_id"),
                chain_id,
                initiator_address,
                approver_address,
                delegation_ref,
                payload,
            )

        verifier = await self._clients.verifier(chain_id)
        selected = await select_signature(
            digest,
            approver_address,
            build_association_candidates(operator, record, digest),
            verifier,
            optimistic=optimistic,
        )
        sar = SignedAssociationRecord(
            record=record,
            initiator_key_type=KEY_TYPE_K1,
            approver_key_type=key_type_for(selected.scheme),
            initiator_signature=b"",
            approver_signature=selected.signature,
        )
        logger.info(
            f"Built delegation association {to_hex(digest)} "
            f"({approver_address} -> {initiator_address}, scheme {selected.scheme})"
        )
        return DelegationAssociation(
            association_id=digest,
            initiator_address=initiator_address,
            approver_address=approver_address,
            assoc_type=int(AssocType.DELEGATION),
            valid_at=record.valid_at,
            valid_until=record.valid_until,
            data=record.data,
            approver_signature=selected.signature,
            sar=sar,
            delegation={
                **delegation_ref,
                "payload": {**payload, "signatureScheme": selected.scheme},
            },
        )

    async def _anchor(self, document: dict[str, Any], filename: str) -> tuple[str | None, str | None]:
        """Upload the payload; failures leave the pointer empty."""
        try:
            result = await self._clients.storage.upload_json(document, filename)
        except AgenticTrustError as e:
            logger.warning(f"Delegation payload anchoring failed, continuing without pointer: {e}")
            return None, None
        return result.token_uri, result.cid

    async def _reuse_existing(
        self,
        association_id: bytes,
        chain_id: int,
        initiator_address: str,
        approver_address: str,
        delegation_ref: dict[str, Any],
        payload: dict[str, Any],
    ) -> DelegationAssociation:
        store = await self._clients.associations.get(chain_id)
        sar = await store.get_association(association_id)
        if sar is None:
            raise NotFoundError(
                f"Existing association {to_hex(association_id)} not found on-chain",
                resource_id=to_hex(association_id),
            )

        for role, encoded, expected in (
            ("initiator", sar.record.initiator, initiator_address),
            ("approver", sar.record.approver, approver_address),
        ):
            decoded = try_decode_interoperable_address(encoded)
            actual = decoded[1] if decoded else None
            if actual != expected:
                raise NotFoundError(
                    f"Existing association {role} mismatch. Expected {expected}, got {actual}",
                    resource_id=to_hex(association_id),
                    details={"field": role},
                )

        logger.info(f"Reusing stored delegation association {to_hex(association_id)}")
        return DelegationAssociation(
            association_id=association_id,
            initiator_address=initiator_address,
            approver_address=approver_address,
            assoc_type=int(AssocType.DELEGATION),
            valid_at=sar.record.valid_at,
            valid_until=sar.record.valid_until,
            data=sar.record.data,
            approver_signature=sar.approver_signature,
            sar=sar,
            delegation={
                **delegation_ref,
                "payload": {**payload, "signatureScheme": SCHEME_SC_DELEGATION},
            },
        )


__all__ = ["DelegationAssociationBuilder", "utc_iso"]
