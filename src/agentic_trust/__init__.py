"""
agentic-trust - Feedback Authorization and Delegation Associations for AI Agents

Issues ERC-8004 feedbackAuth tokens on behalf of an agent's authority account
and records the delegation as an ERC-8092 signed association.

Usage:
    >>> from agentic_trust import Config, DomainClients, FeedbackAuthBuilder
    >>>
    >>> async with DomainClients(Config.from_env()) as clients:
    ...     builder = FeedbackAuthBuilder(clients)
    ...     auth, association = await builder.create_feedback_auth_with_delegation(
    ...         agent_id=42,
    ...         client_address="0x...",
    ...     )
"""

from agentic_trust.association import (
    DelegationAssociationBuilder,
    association_digest,
    build_record,
    decode_interoperable_address,
    encode_interoperable_address,
    select_signature,
)
from agentic_trust.clients import (
    DomainClientCache,
    DomainClients,
    LocalAccountSigner,
    ReadOnlyAccount,
)
from agentic_trust.core.config import Config
from agentic_trust.core.exceptions import (
    AgenticTrustError,
    AuthorizationError,
    ConfigurationError,
    EncodingError,
    NetworkError,
    NotFoundError,
)
from agentic_trust.core.logging import configure_logging, get_logger, set_log_level
from agentic_trust.core.types import (
    AssocType,
    AssociationRecord,
    DelegationAssociation,
    FeedbackAuthResult,
    FeedbackAuthStruct,
    SignedAssociationRecord,
    UploadResult,
)
from agentic_trust.feedback import FeedbackAuthBuilder, decode_feedback_auth
from agentic_trust.storage import IPFSStorage

__version__ = "0.1.0"
__all__ = [
    # Builders
    "FeedbackAuthBuilder",
    "DelegationAssociationBuilder",
    "decode_feedback_auth",
    # Associations
    "encode_interoperable_address",
    "decode_interoperable_address",
    "build_record",
    "association_digest",
    "select_signature",
    # Clients
    "DomainClients",
    "DomainClientCache",
    "LocalAccountSigner",
    "ReadOnlyAccount",
    "IPFSStorage",
    # Types
    "AssocType",
    "AssociationRecord",
    "SignedAssociationRecord",
    "FeedbackAuthStruct",
    "FeedbackAuthResult",
    "DelegationAssociation",
    "UploadResult",
    # Config
    "Config",
    "configure_logging",
    "get_logger",
    "set_log_level",
    # Exceptions
    "AgenticTrustError",
    "ConfigurationError",
    "AuthorizationError",
    "NetworkError",
    "EncodingError",
    "NotFoundError",
]
