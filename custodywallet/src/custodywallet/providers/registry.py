"""
Provider registry: provider identifier -> provider, fixed at startup.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from types import MappingProxyType
from typing import Any

from loguru import logger

from custodywallet.backends.base import CustodialBackend
from custodywallet.config import WalletConfig
from custodywallet.models import ProviderOperation
from custodywallet.providers.base import Provider
from custodywallet.providers.bitcoin import BitcoinProvider
from custodywallet.providers.fiat_link import FiatLinkProvider
from custodywallet.rates import RateCache


class ProviderRegistry:
    """
    Immutable mapping of provider identifiers to providers.

    Lookups are exact and case-sensitive.
    """

    def __init__(self, providers: Iterable[Provider]):
        registered: dict[str, Provider] = {}
        for provider in providers:
            key = provider.provider_id.value
            if key in registered:
                raise ValueError(f"Provider {key} registered twice")
            registered[key] = provider
        self._providers = MappingProxyType(registered)

    def get(self, provider_id: str) -> Provider | None:
        return self._providers.get(provider_id)

    def capability(
        self, provider_id: str, operation: ProviderOperation
    ) -> Callable[..., Any] | None:
        """
        Bound operation of the provider, or None if either the provider is
        unknown or it does not implement the operation.
        """
        provider = self.get(provider_id)
        if provider is None or not provider.supports(operation):
            return None

        operations: dict[ProviderOperation, Callable[..., Any]] = {
            ProviderOperation.BALANCES: provider.balances,
            ProviderOperation.PAYMENT_INFO: provider.payment_info,
            ProviderOperation.SUBMIT_TX: provider.submit_tx,
            ProviderOperation.UNSIGNED_TX: provider.unsigned_tx,
        }
        return operations[operation]

    @property
    def provider_ids(self) -> list[str]:
        return list(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def build_registry(
    config: WalletConfig,
    backend: CustodialBackend,
    rates: RateCache,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> ProviderRegistry:
    providers: list[Provider] = [BitcoinProvider(config.bitgo, backend, rates, sleep=sleep)]
    if config.coinbase is not None:
        providers.append(FiatLinkProvider(config.coinbase))

    registry = ProviderRegistry(providers)
    logger.debug(f"Registered providers: {', '.join(registry.provider_ids)}")
    return registry
