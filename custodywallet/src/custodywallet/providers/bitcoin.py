"""
Custodial bitcoin provider.

Implements balances, transaction construction with fee bidding, and
submission with confirmation polling against a CustodialBackend.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from loguru import logger

from custodywallet.backends.base import BuiltTransaction, CustodialBackend, TransactionDetail
from custodywallet.config import BitGoConfig
from custodywallet.errors import BackendError, ConfigurationError, UnsupportedCurrency
from custodywallet.models import (
    Balances,
    CreatedWallet,
    ProviderId,
    ProviderOperation,
    SubmittedTransaction,
    UnsignedTransaction,
    UserKeychain,
    WalletInfo,
)
from custodywallet.providers.base import Provider
from custodywallet.rates import RateCache

SATOSHIS_PER_BTC = Decimal(100_000_000)

# Requested spend may exceed the balance by this much before it is refused
DRIFT_SATOSHIS = 50_000

FEE_TARGET_BLOCKS = 6
MAX_FEE_BIDS = 2

CONFIRMATION_ATTEMPTS = 5
CONFIRMATION_RETRY_DELAY = 1.0

# Reported when the chain index never returns the submitted transaction
PLACEHOLDER_FEE = 0
PLACEHOLDER_SATOSHIS = 100

WEBHOOK_PATH = "/callbacks/bitgo/sink"


def fiat_to_satoshis(amount: Decimal | float | int, rate: float) -> int:
    """Convert a fiat amount at `rate` (fiat per BTC) to satoshis, rounding half up"""
    btc = Decimal(str(amount)) / Decimal(str(rate))
    return int((btc * SATOSHIS_PER_BTC).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class BitcoinProvider(Provider):
    """
    Provider backed by a custodial multi-signature bitcoin wallet.

    Transactions are always paid out to the configured escrow address and
    returned unsigned; signing happens outside this library.
    """

    provider_id = ProviderId.BITGO
    capabilities = frozenset(
        {
            ProviderOperation.BALANCES,
            ProviderOperation.SUBMIT_TX,
            ProviderOperation.UNSIGNED_TX,
        }
    )

    def __init__(
        self,
        config: BitGoConfig,
        backend: CustodialBackend,
        rates: RateCache,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.backend = backend
        self.rates = rates
        self._sleep = sleep

    async def create_wallet(
        self, prefix: str, label: str, keychains: UserKeychain
    ) -> CreatedWallet:
        """
        Create a 2-of-3 wallet from the user's key, an unspendable key and a
        backend-held key, then register the webhook and velocity policy.

        Webhook and policy failures are logged; the wallet exists regardless.
        """
        if not self.config.unspendable_xpub:
            raise ConfigurationError("bitgo.unspendable_xpub is required to create wallets")

        user = await self.backend.add_keychain(
            xpub=keychains.xpub, label="user", encrypted_xprv=keychains.encrypted_xprv
        )
        unspendable = await self.backend.add_keychain(
            xpub=self.config.unspendable_xpub, label="unspendable"
        )
        custodian = await self.backend.create_backend_keychain()
        xpubs = [user.xpub, unspendable.xpub, custodian.xpub]

        wallet = await self.backend.add_wallet(
            label=label,
            m=2,
            n=3,
            keychains=xpubs,
            enterprise=self.config.enterprise_id,
            disable_transaction_notifications=True,
        )
        created = CreatedWallet(
            info=WalletInfo(provider=self.provider_id.value, address=wallet.id),
            wallet=wallet,
            xpubs=xpubs,
        )

        try:
            await self.backend.add_webhook(
                wallet.id, url=prefix + WEBHOOK_PATH, type="transaction", num_confirmations=1
            )
            created.webhook_registered = True
        except BackendError as e:
            logger.warning(f"Failed to add webhook for wallet {label}: {e}")

        try:
            await self.backend.set_policy_rule(wallet.id, self._velocity_rule())
            created.policy_applied = True
        except BackendError as e:
            logger.warning(f"Failed to set policy rule for wallet {label}: {e}")

        return created

    def _velocity_rule(self) -> dict[str, Any]:
        return {
            "id": self.config.policy_id,
            "type": "velocityLimit",
            "condition": {
                "type": "velocity",
                "amount": self.config.velocity_limit,
                "timeWindow": self.config.velocity_window,
                "groupTags": [],
                "excludeTags": [],
            },
            "action": {"type": "deny"},
        }

    async def balances(self, info: WalletInfo) -> Balances:
        wallet = await self.backend.get_wallet(info.address, coin="bitcoin")
        return Balances(
            balance=wallet.balance,
            spendable=wallet.spendable,
            confirmed=wallet.confirmed,
            unconfirmed=wallet.unconfirmed,
        )

    async def unsigned_tx(
        self,
        info: WalletInfo,
        amount: Decimal | float | int,
        currency: str,
        balance: int,
    ) -> UnsignedTransaction | None:
        """
        Build an unsigned transaction paying the fiat `amount` to escrow.

        The fee starts at half the per-kB estimate and is raised to the
        backend's computed fee for at most one more round.

        Returns:
            The transaction, or None when the spend exceeds balance plus
            drift or the backend cannot construct it

        Raises:
            UnsupportedCurrency: If no rate is known for currency
        """
        try:
            estimate = await self.backend.estimate_fee(num_blocks=FEE_TARGET_BLOCKS)
        except BackendError as e:
            logger.warning(f"Fee estimation failed: {e}")
            return None
        fee = math.ceil(estimate.fee_per_kb / 2)

        rate = self.rates.get(currency)
        if rate is None:
            raise UnsupportedCurrency(currency.upper())

        satoshis = fiat_to_satoshis(amount, rate)
        logger.debug(f"unsignedTx: available={balance} desired={satoshis}")
        if satoshis > balance + DRIFT_SATOSHIS:
            return None
        if satoshis > balance:
            satoshis = balance

        transaction: BuiltTransaction | None = None
        for bid in range(1, MAX_FEE_BIDS + 1):
            recipients = {self.config.escrow_address: satoshis - fee}
            try:
                transaction = await self.backend.create_transaction(
                    info.address, recipients=recipients, fee_rate=estimate.fee_per_kb
                )
            except BackendError as e:
                logger.warning(f"createTransaction failed for wallet {info.address}: {e}")
                return None

            logger.debug(
                f"unsignedTx bid {bid}/{MAX_FEE_BIDS}: satoshis={satoshis} "
                f"estimate={fee} actual={transaction.fee}"
            )
            if transaction.fee <= fee:
                break
            fee = transaction.fee

        assert transaction is not None
        return UnsignedTransaction(
            transaction_hex=transaction.transaction_hex,
            unspents=transaction.unspents,
            fee=transaction.fee,
            xpub=transaction.wallet_keychains[0].xpub,
        )

    async def submit_tx(self, info: WalletInfo, signed_tx: str) -> SubmittedTransaction:
        """
        Submit a signed transaction and poll the chain index for its detail.

        The submission stands even if the index never returns the
        transaction; placeholder detail is reported in that case.
        """
        sent = await self.backend.send_transaction(info.address, signed_tx)

        detail = await self._poll_transaction(sent.hash)
        if detail is None:
            logger.warning(
                f"No detail for {sent.hash} after {CONFIRMATION_ATTEMPTS} attempts, "
                "reporting placeholder"
            )
            return SubmittedTransaction(
                hash=sent.hash,
                fee=PLACEHOLDER_FEE,
                address=self.config.escrow_address,
                satoshis=PLACEHOLDER_SATOSHIS,
            )

        entry = detail.entries[0]
        return SubmittedTransaction(
            hash=sent.hash, fee=detail.fee, address=entry.account, satoshis=entry.value
        )

    async def _poll_transaction(self, txid: str) -> TransactionDetail | None:
        for attempt in range(1, CONFIRMATION_ATTEMPTS + 1):
            try:
                return await self.backend.get_transaction(txid)
            except BackendError as e:
                logger.debug(f"getTransaction {txid} failed: {e}")
                logger.info(f"getTransaction retry: attempt {attempt}/{CONFIRMATION_ATTEMPTS}")
            if attempt < CONFIRMATION_ATTEMPTS:
                await self._sleep(CONFIRMATION_RETRY_DELAY)
        return None
