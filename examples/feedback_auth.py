"""
Example: Feedback Authorization with Delegation

Signs an ERC-8004 feedbackAuth token for a client and builds the matching
ERC-8092 delegation association, approver-signed and ready for the client
to countersign.

Reads AGENTIC_TRUST_RPC_URL, AGENTIC_TRUST_CLIENT_PRIVATE_KEY and (optionally)
PINATA_JWT from the environment.
"""

import asyncio
import os

from agentic_trust import (
    AgenticTrustError,
    Config,
    DomainClients,
    FeedbackAuthBuilder,
    configure_logging,
)


async def main():
    print("=== agentic-trust Feedback Authorization Example ===\n")
    configure_logging()

    agent_id = int(os.environ.get("AGENT_ID", "1"))
    client_address = os.environ.get(
        "CLIENT_ADDRESS", "0x742d35Cc6634C0532925a3b844Bc9e7595f5e4a0"
    )

    async with DomainClients(Config.from_env()) as clients:
        builder = FeedbackAuthBuilder(clients)
        try:
            auth, association = await builder.create_feedback_auth_with_delegation(
                agent_id=agent_id,
                client_address=client_address,
            )
        except AgenticTrustError as e:
            print(f"❌ Feedback authorization failed: {e}")
            return

    print(f"✅ feedbackAuth: {auth.token_hex[:66]}...")
    print(f"   Authority: {auth.authority_address}")
    print(f"   Operator:  {auth.operator_address}")
    print(f"   Index limit {auth.struct.index_limit}, expires {auth.struct.expiry}")

    print(f"\n✅ Association: 0x{association.association_id.hex()}")
    print(f"   Scheme:  {association.delegation['payload']['signatureScheme']}")
    print(f"   Payload: {association.delegation.get('payloadUri') or '(not anchored)'}")

    print("\n=== Example Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
