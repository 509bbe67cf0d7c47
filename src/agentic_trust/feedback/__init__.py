"""ERC-8004 feedback authorization."""

from agentic_trust.feedback.auth import (
    DELEGATION_KIND,
    FeedbackAuthBuilder,
    decode_feedback_auth,
    encode_feedback_auth,
    recover_operator,
)
from agentic_trust.feedback.metadata import DecodedAccount, DecodeFailure, parse_agent_account

__all__ = [
    "DELEGATION_KIND",
    "FeedbackAuthBuilder",
    "encode_feedback_auth",
    "decode_feedback_auth",
    "recover_operator",
    "DecodedAccount",
    "DecodeFailure",
    "parse_agent_account",
]
