"""
custodywallet - Multi-provider custodial wallet facade

Creates custodial wallets, reports balances, builds fee-adjusted unsigned
transactions from fiat amounts and submits signed ones.
"""

__version__ = "0.1.0"

from custodywallet.config import BitGoConfig, FiatLinkConfig, Settings, WalletConfig
from custodywallet.errors import (
    BackendError,
    ConfigurationError,
    UnsupportedCurrency,
    UnsupportedProviderOperation,
    WalletError,
)
from custodywallet.facade import WalletFacade
from custodywallet.models import (
    Balances,
    CreatedWallet,
    PaymentInfo,
    ProviderId,
    ProviderOperation,
    SubmittedTransaction,
    UnsignedTransaction,
    UserKeychain,
    WalletInfo,
)
from custodywallet.rates import RateCache, RateTable

__all__ = [
    "BackendError",
    "Balances",
    "BitGoConfig",
    "ConfigurationError",
    "CreatedWallet",
    "FiatLinkConfig",
    "PaymentInfo",
    "ProviderId",
    "ProviderOperation",
    "RateCache",
    "RateTable",
    "Settings",
    "SubmittedTransaction",
    "UnsignedTransaction",
    "UnsupportedCurrency",
    "UnsupportedProviderOperation",
    "UserKeychain",
    "WalletConfig",
    "WalletError",
    "WalletFacade",
    "WalletInfo",
]
