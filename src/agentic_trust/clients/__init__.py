"""Domain clients: keyed client cache, container, and account contexts."""

from agentic_trust.clients.accounts import (
    AccountSigner,
    AccountStrategy,
    LocalAccountSigner,
    ReadOnlyAccount,
    resolve_account,
)
from agentic_trust.clients.cache import DomainClientCache
from agentic_trust.clients.domain import DomainClients

__all__ = [
    "DomainClientCache",
    "DomainClients",
    "AccountSigner",
    "AccountStrategy",
    "LocalAccountSigner",
    "ReadOnlyAccount",
    "resolve_account",
]
