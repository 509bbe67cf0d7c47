"""
Resilience Layer for agentic-trust.

Provides the retry policy applied to transient network errors.
"""

from .retry import execute_with_retry, is_transient_error, retry_policy

__all__ = [
    "retry_policy",
    "execute_with_retry",
    "is_transient_error",
]
