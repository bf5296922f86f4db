"""
Base wallet provider interface.
"""

from __future__ import annotations

from abc import ABC
from decimal import Decimal
from typing import ClassVar

from custodywallet.errors import UnsupportedProviderOperation
from custodywallet.models import (
    Balances,
    PaymentInfo,
    ProviderId,
    ProviderOperation,
    SubmittedTransaction,
    UnsignedTransaction,
    WalletInfo,
)


class Provider(ABC):
    """
    A named wallet provider.

    Subclasses override the operations they implement and list them in
    `capabilities`; the registry only hands out operations listed there.
    """

    provider_id: ClassVar[ProviderId]
    capabilities: ClassVar[frozenset[ProviderOperation]] = frozenset()

    def supports(self, operation: ProviderOperation) -> bool:
        return operation in self.capabilities

    def _unsupported(self, operation: ProviderOperation) -> UnsupportedProviderOperation:
        return UnsupportedProviderOperation(self.provider_id.value, operation.value)

    async def balances(self, info: WalletInfo) -> Balances:
        raise self._unsupported(ProviderOperation.BALANCES)

    def payment_info(
        self, info: WalletInfo, amount: Decimal | float | int, currency: str
    ) -> PaymentInfo:
        raise self._unsupported(ProviderOperation.PAYMENT_INFO)

    async def submit_tx(self, info: WalletInfo, signed_tx: str) -> SubmittedTransaction:
        raise self._unsupported(ProviderOperation.SUBMIT_TX)

    async def unsigned_tx(
        self,
        info: WalletInfo,
        amount: Decimal | float | int,
        currency: str,
        balance: int,
    ) -> UnsignedTransaction | None:
        raise self._unsupported(ProviderOperation.UNSIGNED_TX)
