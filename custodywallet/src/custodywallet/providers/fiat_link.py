"""
Fiat checkout-link provider.
"""

from __future__ import annotations

from decimal import Decimal

from custodywallet.config import FiatLinkConfig
from custodywallet.errors import UnsupportedCurrency
from custodywallet.models import PaymentInfo, ProviderId, ProviderOperation, WalletInfo
from custodywallet.providers.base import Provider


class FiatLinkProvider(Provider):
    """Builds hosted checkout URLs that buy bitcoin straight into the wallet."""

    provider_id = ProviderId.COINBASE
    capabilities = frozenset({ProviderOperation.PAYMENT_INFO})

    def __init__(self, config: FiatLinkConfig):
        self.config = config

    def payment_info(
        self, info: WalletInfo, amount: Decimal | float | int, currency: str
    ) -> PaymentInfo:
        # Only one fiat currency is accepted by the widget for now
        if currency != self.config.fiat_currency:
            raise UnsupportedCurrency(currency, f"currency {currency} payment not supported")

        return PaymentInfo(
            buy_url=(
                f"{self.config.buy_url}"
                f"?code={self.config.widget_code}"
                f"&amount={amount}"
                f"&address={info.address}"
                f"&crypto_currency={self.config.crypto_currency}"
            )
        )
