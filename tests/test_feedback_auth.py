"""
Tests for feedbackAuth token creation.

The registries are served by FakeChain so every flow runs through the real
provider, registry readers and domain client caches.
"""

from unittest.mock import AsyncMock

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak

from agentic_trust.clients.accounts import LocalAccountSigner
from agentic_trust.clients.domain import DomainClients
from agentic_trust.core.config import Config
from agentic_trust.core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    EncodingError,
)
from agentic_trust.core.types import U64_MAX, FeedbackAuthStruct, UploadResult
from agentic_trust.feedback.auth import (
    DELEGATION_FILENAME,
    DELEGATION_KIND,
    ENCODED_STRUCT_LENGTH,
    FeedbackAuthBuilder,
    decode_feedback_auth,
    encode_feedback_auth,
    recover_operator,
)

from conftest import (
    AUTHORITY,
    CHAIN_ID,
    CID,
    CLIENT,
    IDENTITY,
    OPERATOR_ADDRESS,
    OPERATOR_KEY,
    OWNER,
    REPUTATION,
    RPC_URL,
    SECOND_KEY,
    ZERO_ADDRESS,
    abi,
)

NOW = 1_700_000_000
AGENT_ID = 7

OWNER_OF = "ownerOf(uint256)"
IS_APPROVED_FOR_ALL = "isApprovedForAll(address,address)"
GET_APPROVED = "getApproved(uint256)"
GET_METADATA = "getMetadata(uint256,string)"
GET_IDENTITY_REGISTRY = "getIdentityRegistry()"
GET_LAST_INDEX = "getLastIndex(uint256,address)"


def _config(**overrides) -> Config:
    values = dict(
        rpc_url=RPC_URL,
        chain_id=CHAIN_ID,
        reputation_registry=REPUTATION,
        client_private_key=OPERATOR_KEY,
        feedback_expiry_seconds=3600,
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def registries(chain):
    """Registries approving the operator as an owner operator."""
    chain.on_call(REPUTATION, GET_IDENTITY_REGISTRY, abi(["address"], [IDENTITY]))
    chain.on_call(REPUTATION, GET_LAST_INDEX, abi(["uint64"], [4]))
    chain.on_call(IDENTITY, OWNER_OF, abi(["address"], [OWNER]))
    chain.on_call(IDENTITY, IS_APPROVED_FOR_ALL, abi(["bool"], [True]))
    chain.on_call(IDENTITY, GET_APPROVED, abi(["address"], [ZERO_ADDRESS]))
    chain.on_call(
        IDENTITY,
        GET_METADATA,
        abi(["bytes"], [f"eip155:{CHAIN_ID}:{AUTHORITY}".encode()]),
    )
    return chain


@pytest.fixture
def storage():
    mock = AsyncMock()
    mock.upload_json.return_value = UploadResult(
        cid=CID, url=f"https://gateway.pinata.cloud/ipfs/{CID}", token_uri=f"ipfs://{CID}"
    )
    return mock


def _builder(chain, config=None, storage=None, clock=lambda: NOW) -> FeedbackAuthBuilder:
    clients = DomainClients(config or _config(), http_client=chain.client(), storage=storage)
    return FeedbackAuthBuilder(clients, clock=clock)


# ─────────────────────────────────────────────────────────────────
# Token encoding
# ─────────────────────────────────────────────────────────────────

class TestTokenEncoding:
    """Tests for the token layout helpers."""

    STRUCT = FeedbackAuthStruct(
        agent_id=AGENT_ID,
        client_address="0x4444444444444444444444444444444444444444",
        index_limit=1,
        expiry=NOW,
        chain_id=CHAIN_ID,
        identity_registry="0x2222222222222222222222222222222222222222",
        signer_address=OPERATOR_ADDRESS,
    )

    def test_struct_is_seven_words(self) -> None:
        """Test the struct encodes to seven words."""
        encoded = encode_feedback_auth(self.STRUCT)

        assert len(encoded) == ENCODED_STRUCT_LENGTH
        assert encoded[:32] == AGENT_ID.to_bytes(32, "big")

    def test_decode_splits_signature(self) -> None:
        """Test a token splits into struct and signature."""
        token = encode_feedback_auth(self.STRUCT) + b"\x01" * 65

        struct, signature = decode_feedback_auth("0x" + token.hex())

        assert struct == self.STRUCT
        assert signature == b"\x01" * 65

    @pytest.mark.parametrize("length", [0, 100, ENCODED_STRUCT_LENGTH])
    def test_short_token(self, length) -> None:
        """Test tokens without a signature are rejected."""
        with pytest.raises(EncodingError, match="too short"):
            decode_feedback_auth(b"\x00" * length)


# ─────────────────────────────────────────────────────────────────
# create_feedback_auth
# ─────────────────────────────────────────────────────────────────

class TestCreateFeedbackAuth:
    """End-to-end token creation against FakeChain."""

    @pytest.mark.asyncio
    async def test_token_commits_to_resolved_values(self, registries) -> None:
        """Test the struct carries the resolved chain values."""
        result = await _builder(registries).create_feedback_auth(AGENT_ID, CLIENT)

        struct = result.struct
        assert struct.agent_id == AGENT_ID
        assert struct.client_address == "0x4444444444444444444444444444444444444444"
        assert struct.index_limit == 5
        assert struct.expiry == NOW + 3600
        assert struct.chain_id == CHAIN_ID
        assert struct.identity_registry == "0x2222222222222222222222222222222222222222"
        assert struct.signer_address.lower() == AUTHORITY
        assert result.authority_address == struct.signer_address
        assert result.operator_address == OPERATOR_ADDRESS

    @pytest.mark.asyncio
    async def test_token_layout_and_signature(self, registries) -> None:
        """Test the token is the encoding followed by an EIP-191 signature."""
        result = await _builder(registries).create_feedback_auth(AGENT_ID, CLIENT)

        assert result.encoded == encode_feedback_auth(result.struct)
        assert result.token == result.encoded + result.signature
        assert len(result.signature) == 65
        assert result.token_hex == "0x" + result.token.hex()

        signable = encode_defunct(primitive=keccak(result.encoded))
        assert Account.recover_message(signable, signature=result.signature) == OPERATOR_ADDRESS
        assert recover_operator(result.token) == OPERATOR_ADDRESS
        assert decode_feedback_auth(result.token) == (result.struct, result.signature)

    @pytest.mark.asyncio
    async def test_explicit_expiry_and_signer(self, registries) -> None:
        """Test explicit lifetime and signer override the defaults."""
        signer = LocalAccountSigner(SECOND_KEY)

        result = await _builder(registries).create_feedback_auth(
            AGENT_ID, CLIENT, expiry_seconds=60, signer=signer
        )

        assert result.struct.expiry == NOW + 60
        assert result.operator_address == signer.address
        assert recover_operator(result.token) == signer.address

    @pytest.mark.asyncio
    async def test_approved_for_token(self, registries) -> None:
        """Test a token-level approval authorizes the signer."""
        registries.on_call(IDENTITY, IS_APPROVED_FOR_ALL, abi(["bool"], [False]))
        registries.on_call(IDENTITY, GET_APPROVED, abi(["address"], [OPERATOR_ADDRESS]))

        result = await _builder(registries).create_feedback_auth(AGENT_ID, CLIENT)

        assert result.operator_address == OPERATOR_ADDRESS

    @pytest.mark.asyncio
    async def test_not_approved(self, registries) -> None:
        """Test an unapproved signer stops before the bounds are read."""
        registries.on_call(IDENTITY, IS_APPROVED_FOR_ALL, abi(["bool"], [False]))

        with pytest.raises(AuthorizationError) as exc_info:
            await _builder(registries).create_feedback_auth(AGENT_ID, CLIENT)

        assert exc_info.value.check == "identity_registry_approval"
        assert registries.called(REPUTATION, GET_LAST_INDEX) == 0

    @pytest.mark.asyncio
    async def test_smart_account_signer_skips_approvals(self, registries) -> None:
        """Test a smart-account signer skips every registry approval read."""
        registries.set_code(OPERATOR_ADDRESS)
        registries.on_call(IDENTITY, IS_APPROVED_FOR_ALL, abi(["bool"], [False]))

        result = await _builder(registries).create_feedback_auth(AGENT_ID, CLIENT)

        assert result.operator_address == OPERATOR_ADDRESS
        assert registries.called(IDENTITY, OWNER_OF) == 0
        assert registries.called(IDENTITY, IS_APPROVED_FOR_ALL) == 0
        assert registries.called(IDENTITY, GET_APPROVED) == 0

    @pytest.mark.asyncio
    async def test_unreadable_metadata_falls_back_to_signer(self, chain) -> None:
        """Test a reverting metadata read falls back to the signer."""
        # no getMetadata registered, so the read reverts
        chain.on_call(REPUTATION, GET_IDENTITY_REGISTRY, abi(["address"], [IDENTITY]))
        chain.on_call(REPUTATION, GET_LAST_INDEX, abi(["uint64"], [0]))
        chain.on_call(IDENTITY, OWNER_OF, abi(["address"], [OWNER]))
        chain.on_call(IDENTITY, IS_APPROVED_FOR_ALL, abi(["bool"], [True]))
        chain.on_call(IDENTITY, GET_APPROVED, abi(["address"], [ZERO_ADDRESS]))

        result = await _builder(chain).create_feedback_auth(AGENT_ID, CLIENT)

        assert result.struct.signer_address == OPERATOR_ADDRESS
        assert result.struct.index_limit == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value", [b"", b"not-an-address", bytes(20), b"my-agent-label-00001"]
    )
    async def test_unusable_metadata_falls_back_to_signer(self, registries, value) -> None:
        """Test undecodable metadata falls back to the signer."""
        registries.on_call(IDENTITY, GET_METADATA, abi(["bytes"], [value]))

        result = await _builder(registries).create_feedback_auth(AGENT_ID, CLIENT)

        assert result.struct.signer_address == OPERATOR_ADDRESS

    @pytest.mark.asyncio
    async def test_configured_identity_registry_skips_lookup(self, registries, monkeypatch) -> None:
        """Test a configured registry skips the Reputation Registry lookup."""
        monkeypatch.setenv(f"AGENTIC_TRUST_IDENTITY_REGISTRY_{CHAIN_ID}", IDENTITY)

        result = await _builder(registries).create_feedback_auth(AGENT_ID, CLIENT)

        assert result.struct.identity_registry == "0x2222222222222222222222222222222222222222"
        assert registries.called(REPUTATION, GET_IDENTITY_REGISTRY) == 0

    @pytest.mark.asyncio
    async def test_zero_identity_registry(self, registries) -> None:
        """Test a zero Identity Registry is a configuration error."""
        registries.on_call(REPUTATION, GET_IDENTITY_REGISTRY, abi(["address"], [ZERO_ADDRESS]))

        with pytest.raises(ConfigurationError) as exc_info:
            await _builder(registries).create_feedback_auth(AGENT_ID, CLIENT)

        assert exc_info.value.setting == f"AGENTIC_TRUST_IDENTITY_REGISTRY_{CHAIN_ID}"

    @pytest.mark.asyncio
    async def test_expiry_is_clamped_to_uint64(self, registries) -> None:
        """Test the expiry is clamped to uint64."""
        builder = _builder(registries, clock=lambda: U64_MAX)

        result = await builder.create_feedback_auth(AGENT_ID, CLIENT)

        assert result.struct.expiry == U64_MAX

    @pytest.mark.asyncio
    @pytest.mark.parametrize("expiry_seconds", [-(NOW + 10), -1, 1.5])
    async def test_invalid_expiry_seconds(self, registries, expiry_seconds) -> None:
        """Test a negative or fractional lifetime is rejected before any chain read."""
        with pytest.raises(EncodingError, match="expiry_seconds"):
            await _builder(registries).create_feedback_auth(
                AGENT_ID, CLIENT, expiry_seconds=expiry_seconds
            )

        assert registries.requests == []

    @pytest.mark.asyncio
    async def test_index_limit_follows_growing_last_index(self, registries) -> None:
        """Test index_limit never decreases as the client leaves more feedback."""
        builder = _builder(registries)
        client = "0x4444444444444444444444444444444444444444"

        first, _ = await builder.compute_bounds(CHAIN_ID, AGENT_ID, client, 60)
        registries.on_call(REPUTATION, GET_LAST_INDEX, abi(["uint64"], [9]))
        second, _ = await builder.compute_bounds(CHAIN_ID, AGENT_ID, client, 60)

        assert first == 5
        assert second == 10
        assert second >= first

    @pytest.mark.asyncio
    async def test_read_only_context(self, registries) -> None:
        """Test a read-only context fails before any chain read."""
        builder = _builder(registries, config=_config(client_private_key=None))

        with pytest.raises(ConfigurationError, match="signing account"):
            await builder.create_feedback_auth(AGENT_ID, CLIENT)

        assert registries.requests == []

    @pytest.mark.asyncio
    async def test_no_rpc_url(self, registries) -> None:
        """Test a chain without an RPC URL is a configuration error."""
        builder = _builder(registries, config=_config(rpc_url=None))

        with pytest.raises(ConfigurationError) as exc_info:
            await builder.create_feedback_auth(AGENT_ID, CLIENT)

        assert exc_info.value.setting == f"AGENTIC_TRUST_RPC_URL_{CHAIN_ID}"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("agent_id", [-1, "7", True])
    async def test_invalid_agent_id(self, registries, agent_id) -> None:
        """Test agent ids that are not non-negative integers."""
        with pytest.raises(EncodingError):
            await _builder(registries).create_feedback_auth(agent_id, CLIENT)

    @pytest.mark.asyncio
    async def test_malformed_client_address(self, registries) -> None:
        """Test a malformed client address."""
        with pytest.raises(EncodingError):
            await _builder(registries).create_feedback_auth(AGENT_ID, "0xabc")


# ─────────────────────────────────────────────────────────────────
# create_feedback_auth_with_delegation
# ─────────────────────────────────────────────────────────────────

class TestFeedbackAuthWithDelegation:
    """Token plus approver-signed delegation association."""

    @pytest.mark.asyncio
    async def test_delegation_records_the_grant(self, registries, storage) -> None:
        """Test the association records the token and both parties."""
        registries.set_code(AUTHORITY)
        registries.on_call(
            AUTHORITY,
            "isValidSignature(bytes32,bytes)",
            abi(["bytes4"], [bytes.fromhex("1626ba7e")]),
        )
        builder = _builder(registries, storage=storage)

        result, association = await builder.create_feedback_auth_with_delegation(AGENT_ID, CLIENT)

        assert association.approver_address == result.struct.signer_address
        assert association.initiator_address == result.struct.client_address
        assert association.sar.initiator_signature == b""

        document, filename = storage.upload_json.await_args.args
        assert filename == DELEGATION_FILENAME
        assert document["kind"] == DELEGATION_KIND
        assert document["feedbackAuth"] == result.token_hex
        assert document["agentId"] == str(AGENT_ID)
        assert document["operatorAddress"] == OPERATOR_ADDRESS
        assert document["createdAt"] == "2023-11-14T22:13:20.000Z"

        assert association.delegation["type"] == DELEGATION_KIND
        assert association.delegation["agentId"] == str(AGENT_ID)
        assert association.delegation["chainId"] == CHAIN_ID
        assert association.delegation["payload"]["signatureScheme"] == "eip712"

    @pytest.mark.asyncio
    async def test_authority_rejects_every_candidate(self, registries, storage) -> None:
        """Test an authority rejecting every scheme fails the flow."""
        registries.set_code(AUTHORITY)
        builder = _builder(registries, storage=storage)

        with pytest.raises(AuthorizationError) as exc_info:
            await builder.create_feedback_auth_with_delegation(AGENT_ID, CLIENT)

        assert exc_info.value.check == "erc1271"

    @pytest.mark.asyncio
    async def test_optimistic_delegation(self, registries, storage) -> None:
        """Test optimistic mode returns an unverified signature."""
        registries.set_code(AUTHORITY)
        builder = _builder(registries, storage=storage)

        _, association = await builder.create_feedback_auth_with_delegation(
            AGENT_ID, CLIENT, optimistic=True
        )

        assert association.approver_signature
