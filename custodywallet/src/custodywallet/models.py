"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from custodywallet.backends.base import BackendWallet


class ProviderId(str, Enum):
    BITGO = "bitgo"
    COINBASE = "coinbase"


class ProviderOperation(str, Enum):
    BALANCES = "balances"
    PAYMENT_INFO = "paymentInfo"
    SUBMIT_TX = "submitTx"
    UNSIGNED_TX = "unsignedTx"


@dataclass(frozen=True)
class WalletInfo:
    """Identifies a backend wallet and the provider that serves it"""

    provider: str
    address: str


@dataclass
class Balances:
    balance: int
    spendable: int
    confirmed: int
    unconfirmed: int


@dataclass
class PaymentInfo:
    buy_url: str


@dataclass
class UnsignedTransaction:
    """Fee-adjusted transaction proposal, handed to an external signer"""

    transaction_hex: str
    unspents: list[dict[str, Any]]
    fee: int
    xpub: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SubmittedTransaction:
    """
    Result of a submission.

    fee/address/satoshis carry confirmed chain detail when the backend's
    indexer returned it, otherwise the placeholder values.
    """

    hash: str
    fee: int
    address: str
    satoshis: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UserKeychain:
    xpub: str
    encrypted_xprv: str | None = None


@dataclass
class CreatedWallet:
    info: WalletInfo
    wallet: BackendWallet
    webhook_registered: bool = False
    policy_applied: bool = False
    xpubs: list[str] = field(default_factory=list)
