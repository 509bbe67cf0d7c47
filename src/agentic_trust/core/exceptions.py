"""
Exception hierarchy for agentic-trust.

All library-specific exceptions inherit from AgenticTrustError for easy catching.
"""

from __future__ import annotations

from typing import Any


class AgenticTrustError(Exception):
    """
    Base exception for all agentic-trust errors.

    Catch this to handle any library-related exception.

    Example:
        >>> try:
        ...     await builder.create_feedback_auth(agent_id=42, client_address="0x...")
        ... except AgenticTrustError as e:
        ...     print(f"Feedback auth failed: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(AgenticTrustError):
    """
    Configuration is missing or invalid.

    Raised when:
    - No RPC endpoint is configured for a chain
    - A required contract address is not configured
    - A signing operation is requested from a read-only account context
    - No content storage upload method is configured
    """

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.setting = setting

    def __str__(self) -> str:
        base = super().__str__()
        if self.setting:
            return f"{base} (setting: {self.setting})"
        return base


class AuthorizationError(AgenticTrustError):
    """
    An authorization prerequisite failed.

    Raised when:
    - The signer is neither approved for the agent token nor an operator
      of its owner in the Identity Registry
    - No signature candidate validated against the authority (ERC-1271)
    """

    def __init__(
        self,
        message: str,
        check: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.check = check

    def __str__(self) -> str:
        return f"[{self.check}] {super().__str__()}"


class NetworkError(AgenticTrustError):
    """
    Network or RPC communication error.

    Raised when:
    - A JSON-RPC or gateway request fails (timeout, connection error)
    - An RPC node returns an error object (e.g. execution reverted)
    - A storage API returns an error status
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        rpc_error: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
        self.url = url
        self.rpc_error = rpc_error

    def is_rate_limited(self) -> bool:
        """Check if this is a rate limit error."""
        return self.status_code == 429

    def is_server_error(self) -> bool:
        """Check if this is a server-side error."""
        return self.status_code is not None and 500 <= self.status_code < 600

    def is_transient(self) -> bool:
        """Whether retrying the same request may succeed."""
        if self.rpc_error is not None:
            return False
        return self.status_code is None or self.is_rate_limited() or self.is_server_error()


class EncodingError(AgenticTrustError):
    """
    Malformed address, record, or token bytes.

    Raised when:
    - An address is not exactly 20 bytes
    - An interoperable address has a bad header or inconsistent lengths
    - ABI data cannot be decoded
    """

    pass


class NotFoundError(AgenticTrustError):
    """
    A referenced on-chain object is absent or does not match.

    Raised when:
    - An existing association id is not stored on-chain
    - A stored association's initiator/approver differs from the expected parties
    """

    def __init__(
        self,
        message: str,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.resource_id = resource_id


__all__ = [
    "AgenticTrustError",
    "ConfigurationError",
    "AuthorizationError",
    "NetworkError",
    "EncodingError",
    "NotFoundError",
]
