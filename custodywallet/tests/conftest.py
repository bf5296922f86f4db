"""
Test configuration for custodywallet tests.
"""

from __future__ import annotations

from collections.abc import Callable
from types import MappingProxyType
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from custodywallet.backends.base import (
    BackendWallet,
    BuiltTransaction,
    FeeEstimate,
    Keychain,
    SentTransaction,
    TransactionDetail,
    TransactionEntry,
)
from custodywallet.config import BitGoConfig, FiatLinkConfig, WalletConfig
from custodywallet.rates import RateCache, RateTable


@pytest.fixture
def escrow_address() -> str:
    return "2NEscrowAddressxxxxxxxxxxxxxxxxxxxx"


@pytest.fixture
def wallet_id() -> str:
    return "2NWalletIdxxxxxxxxxxxxxxxxxxxxxxxxx"


@pytest.fixture
def user_xpub() -> str:
    return "xpub-user"


@pytest.fixture
def wallet_xpub() -> str:
    """First wallet keychain returned by transaction construction."""
    return "xpub-wallet-first"


@pytest.fixture
def bitgo_config(escrow_address: str) -> BitGoConfig:
    return BitGoConfig(
        access_token="v2x-test-token",
        environment="test",
        escrow_address=escrow_address,
        unspendable_xpub="xpub-unspendable",
        enterprise_id="enterprise-1",
    )


@pytest.fixture
def wallet_config(bitgo_config: BitGoConfig) -> WalletConfig:
    return WalletConfig(bitgo=bitgo_config, coinbase=FiatLinkConfig(widget_code="widget-123"))


@pytest.fixture
def sample_feed() -> dict[str, Any]:
    """Ticker payload in the shape served by the rate feed."""
    return {
        "USD": {"ask": 10010.0, "bid": 9990.0, "last": 10000.0, "timestamp": "x"},
        "EUR": {"last": 8500.5},
        "JPY": {"volume_btc": 12.5},
        "timestamp": "Mon, 19 Oct 2026 05:00:00 +0000",
    }


@pytest.fixture
def rate_cache() -> RateCache:
    """Rate cache preloaded with 1 BTC = 10000 USD / 8500 EUR."""
    cache = RateCache(url="https://rates.example/ticker", client=MagicMock())
    cache._table = RateTable(rates=MappingProxyType({"USD": 10000.0, "EUR": 8500.0}))
    return cache


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def make_built_transaction(wallet_xpub: str) -> Callable[[int], BuiltTransaction]:
    """Factory for backend-built transactions with the given fee."""

    def make(fee: int) -> BuiltTransaction:
        return BuiltTransaction(
            transaction_hex="0100000001abcdef",
            fee=fee,
            unspents=[{"tx_hash": "a" * 64, "tx_output_n": 0, "value": 2_000_000}],
            wallet_keychains=[Keychain(xpub=wallet_xpub), Keychain(xpub="xpub-second")],
        )

    return make


@pytest.fixture
def mock_backend(
    wallet_id: str,
    escrow_address: str,
    make_built_transaction: Callable[[int], BuiltTransaction],
) -> MagicMock:
    """Backend double with happy-path responses."""
    backend = MagicMock()
    backend.add_keychain = AsyncMock(
        side_effect=lambda xpub, label, encrypted_xprv=None: Keychain(xpub=xpub, label=label)
    )
    backend.create_backend_keychain = AsyncMock(return_value=Keychain(xpub="xpub-bitgo"))
    backend.add_wallet = AsyncMock(return_value=BackendWallet(id=wallet_id, label="test"))
    backend.add_webhook = AsyncMock(return_value=None)
    backend.set_policy_rule = AsyncMock(return_value=None)
    backend.get_wallet = AsyncMock(
        return_value=BackendWallet(
            id=wallet_id,
            balance=2_000_000,
            spendable=1_900_000,
            confirmed=1_950_000,
            unconfirmed=50_000,
        )
    )
    backend.estimate_fee = AsyncMock(return_value=FeeEstimate(fee_per_kb=20_000))
    backend.create_transaction = AsyncMock(return_value=make_built_transaction(8_000))
    backend.send_transaction = AsyncMock(return_value=SentTransaction(hash="f" * 64))
    backend.get_transaction = AsyncMock(
        return_value=TransactionDetail(
            id="f" * 64,
            fee=9_500,
            entries=[TransactionEntry(account=escrow_address, value=990_500)],
        )
    )
    backend.close = AsyncMock()
    return backend
