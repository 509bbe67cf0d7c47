"""
Account contexts.

A signing context is resolved from configured private keys through an ordered
list of strategies (admin, then provider, then client); the first strategy
that can sign wins. With no key configured a read-only context is returned,
which carries an address but refuses to sign.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, runtime_checkable

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from agentic_trust.association.address import normalize_address
from agentic_trust.core.config import ENV_PREFIX, Config
from agentic_trust.core.exceptions import ConfigurationError
from agentic_trust.core.logging import get_logger

logger = get_logger("clients.accounts")


@runtime_checkable
class AccountSigner(Protocol):
    """Anything that can sign typed data and raw messages for an address."""

    @property
    def address(self) -> str | None:
        ...

    @property
    def can_sign(self) -> bool:
        ...

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        primary_type: str,
        message: dict[str, Any],
    ) -> bytes:
        ...

    async def sign_message(self, raw: bytes) -> bytes:
        ...


class LocalAccountSigner:
    """Signer backed by a local secp256k1 private key (eth-account)."""

    def __init__(self, private_key: str, role: str = "local") -> None:
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid {role} private key: {e}", setting=role) from e
        self.role = role

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def can_sign(self) -> bool:
        return True

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        primary_type: str,
        message: dict[str, Any],
    ) -> bytes:
        # primary type is implied by the single entry in ``types``
        signable = encode_typed_data(
            domain_data=domain,
            message_types={primary_type: types[primary_type]},
            message_data=message,
        )
        return bytes(self._account.sign_message(signable).signature)

    async def sign_message(self, raw: bytes) -> bytes:
        """EIP-191 personal signature over ``raw`` bytes."""
        signable = encode_defunct(primitive=bytes(raw))
        return bytes(self._account.sign_message(signable).signature)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(role={self.role!r}, address={self.address!r})"


class ReadOnlyAccount:
    """Account context without signing capability."""

    def __init__(self, address: str | None = None) -> None:
        self._address = normalize_address(address) if address else None

    @property
    def address(self) -> str | None:
        return self._address

    @property
    def can_sign(self) -> bool:
        return False

    async def sign_typed_data(self, *args: Any, **kwargs: Any) -> bytes:
        raise ConfigurationError(
            "Read-only account context cannot sign; configure a private key",
            setting=f"{ENV_PREFIX}CLIENT_PRIVATE_KEY",
        )

    async def sign_message(self, raw: bytes) -> bytes:
        raise ConfigurationError(
            "Read-only account context cannot sign; configure a private key",
            setting=f"{ENV_PREFIX}CLIENT_PRIVATE_KEY",
        )

    def __repr__(self) -> str:
        return f"ReadOnlyAccount(address={self._address!r})"


@dataclass(frozen=True)
class AccountStrategy:
    """Builds a signing context from one configured private key."""

    name: str
    setting: str

    def can_sign(self, config: Config) -> bool:
        return bool(getattr(config, self.setting, None))

    def build(self, config: Config) -> LocalAccountSigner:
        return LocalAccountSigner(getattr(config, self.setting), role=self.name)


DEFAULT_STRATEGIES: tuple[AccountStrategy, ...] = (
    AccountStrategy("admin", "admin_private_key"),
    AccountStrategy("provider", "provider_private_key"),
    AccountStrategy("client", "client_private_key"),
)


def resolve_account(
    config: Config,
    strategies: Sequence[AccountStrategy] = DEFAULT_STRATEGIES,
) -> AccountSigner:
    """First strategy that can sign, else a read-only context."""
    for strategy in strategies:
        if strategy.can_sign(config):
            signer = strategy.build(config)
            logger.info(f"Using {strategy.name} signing context {signer.address}")
            return signer

    logger.info("No private key configured; using read-only account context")
    return ReadOnlyAccount(config.account_address)


__all__ = [
    "AccountSigner",
    "LocalAccountSigner",
    "ReadOnlyAccount",
    "AccountStrategy",
    "DEFAULT_STRATEGIES",
    "resolve_account",
]
