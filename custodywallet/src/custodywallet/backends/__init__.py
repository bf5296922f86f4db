"""
Custodial backend implementations.

Available backends:
- BitGoBackend: BitGo REST API (keys and chain index held by BitGo)
"""

from custodywallet.backends.base import (
    BackendWallet,
    BuiltTransaction,
    CustodialBackend,
    FeeEstimate,
    Keychain,
    SentTransaction,
    TransactionDetail,
    TransactionEntry,
)
from custodywallet.backends.bitgo import BitGoBackend

__all__ = [
    "BackendWallet",
    "BitGoBackend",
    "BuiltTransaction",
    "CustodialBackend",
    "FeeEstimate",
    "Keychain",
    "SentTransaction",
    "TransactionDetail",
    "TransactionEntry",
]
