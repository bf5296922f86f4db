"""
Base custodial backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Keychain:
    xpub: str
    label: str | None = None


@dataclass
class BackendWallet:
    id: str
    label: str = ""
    balance: int = 0
    spendable: int = 0
    confirmed: int = 0
    unconfirmed: int = 0


@dataclass
class FeeEstimate:
    fee_per_kb: int
    num_blocks: int = 6


@dataclass
class BuiltTransaction:
    """Unsigned transaction as constructed by the backend"""

    transaction_hex: str
    fee: int
    unspents: list[dict[str, Any]] = field(default_factory=list)
    wallet_keychains: list[Keychain] = field(default_factory=list)


@dataclass
class SentTransaction:
    hash: str
    status: str | None = None


@dataclass
class TransactionEntry:
    account: str
    value: int


@dataclass
class TransactionDetail:
    id: str
    fee: int
    entries: list[TransactionEntry]
    confirmations: int = 0


class CustodialBackend(ABC):
    """
    Abstract custodial wallet backend.

    The backend holds the keys and the chain index; this interface exposes
    the capabilities the wallet providers need from it.
    """

    @abstractmethod
    async def add_keychain(
        self, xpub: str, label: str, encrypted_xprv: str | None = None
    ) -> Keychain:
        """Register an externally generated keychain"""

    @abstractmethod
    async def create_backend_keychain(self) -> Keychain:
        """Have the backend generate and hold a keychain"""

    @abstractmethod
    async def add_wallet(
        self,
        label: str,
        m: int,
        n: int,
        keychains: list[str],
        enterprise: str | None = None,
        disable_transaction_notifications: bool = False,
    ) -> BackendWallet:
        """Create an m-of-n multi-signature wallet from the given xpubs"""

    @abstractmethod
    async def add_webhook(
        self, wallet_id: str, url: str, type: str, num_confirmations: int
    ) -> None:
        """Register a webhook on the wallet"""

    @abstractmethod
    async def set_policy_rule(self, wallet_id: str, rule: dict[str, Any]) -> None:
        """Attach or replace a policy rule on the wallet"""

    @abstractmethod
    async def get_wallet(self, wallet_id: str, coin: str = "bitcoin") -> BackendWallet:
        """Get wallet (with balances) by id"""

    @abstractmethod
    async def estimate_fee(self, num_blocks: int = 6) -> FeeEstimate:
        """Estimate fee per kilobyte for confirmation within num_blocks"""

    @abstractmethod
    async def create_transaction(
        self, wallet_id: str, recipients: dict[str, int], fee_rate: int
    ) -> BuiltTransaction:
        """Build an unsigned transaction paying recipients (address -> satoshis)"""

    @abstractmethod
    async def send_transaction(self, wallet_id: str, tx_hex: str) -> SentTransaction:
        """Submit a signed transaction, returns its hash"""

    @abstractmethod
    async def get_transaction(self, txid: str) -> TransactionDetail:
        """Get indexed transaction detail by id"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
