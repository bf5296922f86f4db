"""
Wallet provider implementations.

Available providers:
- BitcoinProvider ("bitgo"): balances, unsignedTx, submitTx on a custodial wallet
- FiatLinkProvider ("coinbase"): paymentInfo via a hosted checkout link
"""

from custodywallet.providers.base import Provider
from custodywallet.providers.bitcoin import BitcoinProvider
from custodywallet.providers.fiat_link import FiatLinkProvider
from custodywallet.providers.registry import ProviderRegistry, build_registry

__all__ = [
    "BitcoinProvider",
    "FiatLinkProvider",
    "Provider",
    "ProviderRegistry",
    "build_registry",
]
