"""
Wallet facade: the entry point used by the payment front-end.

Every operation takes a WalletInfo and is dispatched to the provider named
by info.provider.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

from loguru import logger

from custodywallet.backends.base import CustodialBackend
from custodywallet.backends.bitgo import BitGoBackend
from custodywallet.config import Settings, WalletConfig
from custodywallet.errors import UnsupportedProviderOperation
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
from custodywallet.providers.bitcoin import BitcoinProvider
from custodywallet.providers.registry import ProviderRegistry, build_registry
from custodywallet.rates import RateCache


class WalletFacade:
    """
    Multi-provider wallet facade.

    Holds the configuration, the backend client and the rate cache; keeps no
    per-call state.
    """

    def __init__(
        self,
        config: WalletConfig,
        backend: CustodialBackend | None = None,
        rates: RateCache | None = None,
        registry: ProviderRegistry | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        if backend is None:
            backend = BitGoBackend(
                access_token=config.bitgo.access_token,
                environment=config.bitgo.environment,
                api_url=config.bitgo.api_url,
            )
        self.backend = backend
        self.rates = rates if rates is not None else RateCache()
        if registry is None:
            registry = build_registry(config, self.backend, self.rates, sleep=sleep)
        self.registry = registry
        logger.info(f"Wallet environment: {config.environment}")

    @classmethod
    def from_settings(cls, settings: Settings) -> WalletFacade:
        return cls(
            settings.to_wallet_config(),
            rates=RateCache(
                url=settings.rates_url, refresh_interval=settings.rates_refresh_interval
            ),
        )

    async def start(self) -> None:
        """Start background rate refreshes; returns without waiting for a fetch"""
        self.rates.start()

    async def close(self) -> None:
        await self.rates.close()
        await self.backend.close()

    async def __aenter__(self) -> WalletFacade:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def create(self, prefix: str, label: str, keychains: UserKeychain) -> CreatedWallet:
        """Create a custodial multi-signature wallet (always on the BitGo provider)"""
        provider = self.registry.get(ProviderId.BITGO.value)
        if not isinstance(provider, BitcoinProvider):
            raise UnsupportedProviderOperation(ProviderId.BITGO.value, "create")
        return await provider.create_wallet(prefix, label, keychains)

    async def balances(self, info: WalletInfo) -> Balances:
        f = self.registry.capability(info.provider, ProviderOperation.BALANCES)
        if f is None:
            raise UnsupportedProviderOperation(info.provider, ProviderOperation.BALANCES.value)
        return await f(info)

    def payment_info(
        self, info: WalletInfo, amount: Decimal | float | int, currency: str
    ) -> PaymentInfo | None:
        """
        Checkout details for funding the wallet.

        Advisory: falls back to the fiat-link provider, and returns None
        when no provider can offer one.
        """
        f = self.registry.capability(info.provider, ProviderOperation.PAYMENT_INFO)
        if f is None:
            f = self.registry.capability(
                ProviderId.COINBASE.value, ProviderOperation.PAYMENT_INFO
            )
        if f is None:
            return None
        return f(info, amount, currency)

    async def submit_tx(self, info: WalletInfo, signed_tx: str) -> SubmittedTransaction:
        f = self.registry.capability(info.provider, ProviderOperation.SUBMIT_TX)
        if f is None:
            raise UnsupportedProviderOperation(info.provider, ProviderOperation.SUBMIT_TX.value)
        return await f(info, signed_tx)

    async def unsigned_tx(
        self,
        info: WalletInfo,
        amount: Decimal | float | int,
        currency: str,
        balance: int,
    ) -> UnsignedTransaction | None:
        f = self.registry.capability(info.provider, ProviderOperation.UNSIGNED_TX)
        if f is None:
            raise UnsupportedProviderOperation(
                info.provider, ProviderOperation.UNSIGNED_TX.value
            )
        return await f(info, amount, currency, balance)
