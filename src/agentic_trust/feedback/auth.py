"""
Feedback Authorization Builder.

Produces ERC-8004 feedbackAuth tokens: an ABI-encoded FeedbackAuth struct
followed by the signer's EIP-191 signature over ``keccak(encoded)``.

Flow, strictly ordered and terminal on the first error:

    resolve registry -> check authorization -> resolve authority
    -> compute bounds -> sign

The token is attributed to the agent's *authority* (its ``agentAccount``
metadata, usually a smart account) while the signature bytes come from the
operator key, which the authority accepts via ERC-1271.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak, to_checksum_address

from agentic_trust.association.address import as_bytes, normalize_address
from agentic_trust.association.delegation import DelegationAssociationBuilder, utc_iso
from agentic_trust.core.config import ENV_PREFIX
from agentic_trust.core.contracts import AGENT_ACCOUNT_METADATA_KEY
from agentic_trust.core.exceptions import (
    AgenticTrustError,
    AuthorizationError,
    ConfigurationError,
    EncodingError,
)
from agentic_trust.core.logging import get_logger
from agentic_trust.core.types import (
    U64_MAX,
    DelegationAssociation,
    FeedbackAuthResult,
    FeedbackAuthStruct,
)
from agentic_trust.feedback.metadata import DecodedAccount, parse_agent_account

if TYPE_CHECKING:
    from agentic_trust.clients.accounts import AccountSigner
    from agentic_trust.clients.domain import DomainClients

logger = get_logger("feedback.auth")

DELEGATION_KIND = "erc8004.feedbackAuth.delegation"
DELEGATION_FILENAME = "feedbackAuth-delegation.json"

# Encoded FeedbackAuth struct: seven static 32-byte words
ENCODED_STRUCT_LENGTH = 7 * 32


def _check_expiry_seconds(expiry_seconds: int) -> None:
    if isinstance(expiry_seconds, bool) or not isinstance(expiry_seconds, int) or expiry_seconds < 0:
        raise EncodingError(
            f"expiry_seconds must be a non-negative integer, got {expiry_seconds!r}"
        )


def encode_feedback_auth(struct: FeedbackAuthStruct) -> bytes:
    """ABI-encode a FeedbackAuth struct."""
    return abi_encode(list(FeedbackAuthStruct.ABI_TYPES), list(struct.as_abi_values()))


def decode_feedback_auth(token: bytes | str) -> tuple[FeedbackAuthStruct, bytes]:
    """
    Split a feedbackAuth token into its struct and signature.

    Raises:
        EncodingError: token too short, no signature, or undecodable struct
    """
    raw = as_bytes(token, "feedbackAuth")
    if len(raw) <= ENCODED_STRUCT_LENGTH:
        raise EncodingError(
            "feedbackAuth token too short",
            details={"length": len(raw), "minimum": ENCODED_STRUCT_LENGTH + 1},
        )
    try:
        values = abi_decode(list(FeedbackAuthStruct.ABI_TYPES), raw[:ENCODED_STRUCT_LENGTH])
    except DecodingError as e:
        raise EncodingError(f"Cannot decode feedbackAuth struct: {e}") from e

    agent_id, client, index_limit, expiry, chain_id, registry, signer = values
    struct = FeedbackAuthStruct(
        agent_id=int(agent_id),
        client_address=to_checksum_address(client),
        index_limit=int(index_limit),
        expiry=int(expiry),
        chain_id=int(chain_id),
        identity_registry=to_checksum_address(registry),
        signer_address=to_checksum_address(signer),
    )
    return struct, raw[ENCODED_STRUCT_LENGTH:]


def recover_operator(token: bytes | str) -> str:
    """Address of the key that produced a token's signature."""
    raw = as_bytes(token, "feedbackAuth")
    _, signature = decode_feedback_auth(raw)
    message_hash = keccak(raw[:ENCODED_STRUCT_LENGTH])
    try:
        return Account.recover_message(encode_defunct(primitive=message_hash), signature=signature)
    except (ValueError, TypeError) as e:
        raise EncodingError(f"Cannot recover feedbackAuth signer: {e}") from e


class FeedbackAuthBuilder:
    """
    Builds feedbackAuth tokens and their delegation associations.

    Usage:
        async with DomainClients(Config.from_env()) as clients:
            builder = FeedbackAuthBuilder(clients)
            result = await builder.create_feedback_auth(
                agent_id=42, client_address="0xClient..."
            )
            token = result.token_hex
    """

    def __init__(
        self,
        clients: DomainClients,
        clock: Callable[[], float] = time.time,
        delegation_builder: DelegationAssociationBuilder | None = None,
    ) -> None:
        """
        Args:
            clients: Domain clients container
            clock: Returns the current UNIX time in seconds
            delegation_builder: Builder for delegation associations
        """
        self._clients = clients
        self._config = clients.config
        self._clock = clock
        self._delegation = delegation_builder or DelegationAssociationBuilder(clients, clock=clock)

    # ─── Steps ───────────────────────────────────────────────────────

    async def resolve_registry(self, chain_id: int) -> str:
        """
        Identity Registry for ``chain_id``.

        Configured registries are preferred (saves an RPC round-trip); otherwise
        the Reputation Registry is asked for the one it is bound to.
        """
        configured = self._config.identity_registry_for(chain_id)
        if configured:
            return normalize_address(configured)

        reputation = await self._clients.reputation.get(chain_id)
        registry = await reputation.get_identity_registry()
        if int(registry, 16) == 0:
            raise ConfigurationError(
                f"Reputation Registry on chain {chain_id} reports no Identity Registry",
                setting=f"{ENV_PREFIX}IDENTITY_REGISTRY_{chain_id}",
            )
        return registry

    async def check_authorization(
        self,
        chain_id: int,
        signer_address: str,
        agent_id: int,
        identity_registry: str | None = None,
    ) -> None:
        """
        Ensure ``signer_address`` may act for ``agent_id``.

        Smart-account signers are authorized through ERC-1271 and skip the
        registry approval checks. EOA signers must be approved for the token
        or an operator of its owner.

        Raises:
            AuthorizationError: neither approval is present
        """
        provider = await self._clients.providers.get(chain_id)
        if await provider.get_code(signer_address):
            logger.info(
                f"Signer {signer_address} is a smart account; skipping registry approval checks"
            )
            return

        registry = identity_registry or await self.resolve_registry(chain_id)
        identity = await self._clients.identity.get((chain_id, registry))
        owner = await identity.owner_of(agent_id)
        is_operator = await identity.is_approved_for_all(owner, signer_address)
        token_approved = await identity.get_approved(agent_id)
        logger.debug(
            f"Identity Registry approvals for agent {agent_id}: owner={owner} "
            f"isApprovedForAll={is_operator} getApproved={token_approved}"
        )
        if not is_operator and token_approved.lower() != signer_address.lower():
            raise AuthorizationError(
                f"Signer {signer_address} is neither approved for agent {agent_id} "
                f"nor an operator of its owner {owner}",
                check="identity_registry_approval",
                details={"agent_id": agent_id, "signer": signer_address, "owner": owner},
            )

    async def resolve_authority(
        self,
        chain_id: int,
        agent_id: int,
        fallback_signer: str,
        identity_registry: str | None = None,
    ) -> str:
        """Address published as the agent's ``agentAccount``, else the signer."""
        try:
            registry = identity_registry or await self.resolve_registry(chain_id)
            identity = await self._clients.identity.get((chain_id, registry))
            raw = await identity.get_metadata(agent_id, AGENT_ACCOUNT_METADATA_KEY)
        except AgenticTrustError as e:
            logger.warning(
                f"Unable to read agentAccount for agent {agent_id}; using signer {fallback_signer}: {e}"
            )
            return fallback_signer

        decoded = parse_agent_account(raw)
        if isinstance(decoded, DecodedAccount):
            logger.info(
                f"Resolved authority {decoded.address} for agent {agent_id} ({decoded.encoding})"
            )
            return decoded.address

        logger.info(
            f"agentAccount for agent {agent_id} not usable ({decoded.reason}); "
            f"using signer {fallback_signer}"
        )
        return fallback_signer

    async def compute_bounds(
        self,
        chain_id: int,
        agent_id: int,
        client_address: str,
        expiry_seconds: int,
    ) -> tuple[int, int]:
        """
        ``(index_limit, expiry)`` for a new token.

        ``index_limit`` is one past the client's last feedback index; ``expiry``
        is clamped to the uint64 range.
        """
        _check_expiry_seconds(expiry_seconds)
        reputation = await self._clients.reputation.get(chain_id)
        last_index = await reputation.get_last_index(agent_id, client_address)
        index_limit = last_index + 1

        expiry = int(self._clock()) + int(expiry_seconds)
        if expiry > U64_MAX:
            logger.warning("Computed feedbackAuth expiry exceeds uint64; clamping to max")
            expiry = U64_MAX
        return index_limit, expiry

    async def sign(self, struct: FeedbackAuthStruct, signer: AccountSigner) -> tuple[bytes, bytes]:
        """Return ``(token, encoded)`` with ``token = encoded || signature``."""
        encoded = encode_feedback_auth(struct)
        signature = await signer.sign_message(keccak(encoded))
        return encoded + signature, encoded

    # ─── Flows ───────────────────────────────────────────────────────

    async def _signing_context(self, chain_id: int, signer: AccountSigner | None) -> AccountSigner:
        account = signer or await self._clients.accounts.get(chain_id)
        if not account.can_sign or not account.address:
            raise ConfigurationError(
                "Feedback authorization requires a signing account; configure a private key",
                setting=f"{ENV_PREFIX}CLIENT_PRIVATE_KEY",
            )
        return account

    async def create_feedback_auth(
        self,
        agent_id: int,
        client_address: str,
        chain_id: int | None = None,
        expiry_seconds: int | None = None,
        signer: AccountSigner | None = None,
    ) -> FeedbackAuthResult:
        """
        Create a signed feedbackAuth token letting ``client_address`` give
        feedback to ``agent_id``.

        Args:
            agent_id: Agent token id in the Identity Registry
            client_address: Address allowed to submit feedback
            chain_id: Target chain (defaults to the configured chain)
            expiry_seconds: Token lifetime (defaults to the configured value)
            signer: Signing context (defaults to the chain's resolved account)

        Raises:
            ConfigurationError: no signing context, RPC endpoint or registry
            AuthorizationError: the signer may not act for the agent
            NetworkError: a chain read failed
        """
        chain_id = chain_id or self._config.chain_id
        if expiry_seconds is None:
            expiry_seconds = self._config.feedback_expiry_seconds
        if isinstance(agent_id, bool) or not isinstance(agent_id, int) or agent_id < 0:
            raise EncodingError(f"agent_id must be a non-negative integer, got {agent_id!r}")
        _check_expiry_seconds(expiry_seconds)

        account = await self._signing_context(chain_id, signer)
        signer_address = normalize_address(account.address)
        client = normalize_address(client_address)
        logger.info(
            f"Creating feedbackAuth for agent {agent_id}, client {client}, signer {signer_address}"
        )

        registry = await self.resolve_registry(chain_id)
        await self.check_authorization(chain_id, signer_address, agent_id, registry)
        authority = await self.resolve_authority(chain_id, agent_id, signer_address, registry)
        index_limit, expiry = await self.compute_bounds(chain_id, agent_id, client, expiry_seconds)

        struct = FeedbackAuthStruct(
            agent_id=agent_id,
            client_address=client,
            index_limit=index_limit,
            expiry=expiry,
            chain_id=chain_id,
            identity_registry=registry,
            signer_address=authority,
        )
        token, encoded = await self.sign(struct, account)
        return FeedbackAuthResult(
            token=token,
            struct=struct,
            encoded=encoded,
            signature=token[len(encoded):],
            operator_address=signer_address,
        )

    async def create_feedback_auth_with_delegation(
        self,
        agent_id: int,
        client_address: str,
        chain_id: int | None = None,
        expiry_seconds: int | None = None,
        signer: AccountSigner | None = None,
        existing_association_id: bytes | str | None = None,
        optimistic: bool = False,
    ) -> tuple[FeedbackAuthResult, DelegationAssociation]:
        """
        Create a feedbackAuth token and a pre-signed delegation association
        recording that the agent's authority granted the client the right to
        give feedback.

        The client adds its initiator signature to the returned SAR and stores it.
        """
        chain_id = chain_id or self._config.chain_id
        account = await self._signing_context(chain_id, signer)
        result = await self.create_feedback_auth(
            agent_id,
            client_address,
            chain_id=chain_id,
            expiry_seconds=expiry_seconds,
            signer=account,
        )
        struct = result.struct

        payload: dict[str, Any] = {
            "kind": DELEGATION_KIND,
            "feedbackAuth": result.token_hex,
            "agentId": str(struct.agent_id),
            "clientAddress": struct.client_address,
            "chainId": struct.chain_id,
            "indexLimit": str(struct.index_limit),
            "expiry": str(struct.expiry),
            "identityRegistry": struct.identity_registry,
            "signerAddress": struct.signer_address,
            "operatorAddress": result.operator_address,
            "createdAt": utc_iso(self._clock()),
        }
        association = await self._delegation.build_delegation(
            authority=struct.signer_address,
            operator=account,
            initiator=struct.client_address,
            chain_id=struct.chain_id,
            payload=payload,
            payload_type=DELEGATION_KIND,
            existing_association_id=existing_association_id,
            extra_ref={
                "agentId": str(struct.agent_id),
                "clientAddress": struct.client_address,
                "chainId": struct.chain_id,
            },
            optimistic=optimistic,
            filename=DELEGATION_FILENAME,
        )
        return result, association


__all__ = [
    "DELEGATION_KIND",
    "FeedbackAuthBuilder",
    "encode_feedback_auth",
    "decode_feedback_auth",
    "recover_operator",
]
