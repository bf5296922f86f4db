"""
Tests for BitGoBackend (HTTP client mocked).
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from custodywallet.backends.bitgo import BITGO_PROD_URL, BITGO_TEST_URL, BitGoBackend
from custodywallet.errors import BackendError


def api_response(status_code: int, payload: Any, method: str = "GET") -> httpx.Response:
    return httpx.Response(
        status_code, json=payload, request=httpx.Request(method, f"{BITGO_TEST_URL}/x")
    )


class TestBitGoBackendInit:
    @pytest.mark.asyncio
    async def test_environment_selects_url(self) -> None:
        prod = BitGoBackend(access_token="t")
        test = BitGoBackend(access_token="t", environment="test")
        custom = BitGoBackend(access_token="t", api_url="http://localhost:3080/api/v1/")

        assert prod.api_url == BITGO_PROD_URL
        assert test.api_url == BITGO_TEST_URL
        assert custom.api_url == "http://localhost:3080/api/v1"
        assert prod.client.headers["Authorization"] == "Bearer t"

        for b in (prod, test, custom):
            await b.close()


class TestBitGoBackendCalls:
    """Request shapes and response parsing."""

    @pytest.mark.asyncio
    async def test_get_wallet(self) -> None:
        backend = BitGoBackend(access_token="t", environment="test")
        backend.client.request = AsyncMock(
            return_value=api_response(
                200,
                {
                    "id": "2NWallet",
                    "label": "alice",
                    "balance": 2_000_000,
                    "spendableBalance": 1_900_000,
                    "confirmedBalance": 1_950_000,
                    "unconfirmedReceives": 50_000,
                },
            )
        )

        wallet = await backend.get_wallet("2NWallet")

        backend.client.request.assert_awaited_once_with(
            "GET", f"{BITGO_TEST_URL}/wallet/2NWallet", params=None, json=None
        )
        assert wallet.id == "2NWallet"
        assert wallet.spendable == 1_900_000
        assert wallet.unconfirmed == 50_000
        await backend.close()

    @pytest.mark.asyncio
    async def test_get_wallet_rejects_other_coins(self) -> None:
        backend = BitGoBackend(access_token="t")
        with pytest.raises(BackendError, match="Unsupported wallet type"):
            await backend.get_wallet("2NWallet", coin="ethereum")
        await backend.close()

    @pytest.mark.asyncio
    async def test_estimate_fee(self) -> None:
        backend = BitGoBackend(access_token="t", environment="test")
        backend.client.request = AsyncMock(
            return_value=api_response(200, {"feePerKb": 20_000, "numBlocks": 6})
        )

        estimate = await backend.estimate_fee(6)

        backend.client.request.assert_awaited_once_with(
            "GET", f"{BITGO_TEST_URL}/tx/fee", params={"numBlocks": 6}, json=None
        )
        assert estimate.fee_per_kb == 20_000
        await backend.close()

    @pytest.mark.asyncio
    async def test_create_transaction(self) -> None:
        backend = BitGoBackend(access_token="t", environment="test")
        backend.client.request = AsyncMock(
            return_value=api_response(
                200,
                {
                    "transactionHex": "0100",
                    "fee": 8_000,
                    "unspents": [{"value": 1}],
                    "walletKeychains": [{"xpub": "xpub-a"}, {"xpub": "xpub-b"}],
                },
                method="POST",
            )
        )

        built = await backend.create_transaction("2NWallet", {"2NEscrow": 990_000}, 20_000)

        _, kwargs = backend.client.request.await_args
        assert kwargs["json"] == {
            "recipients": [{"address": "2NEscrow", "amount": 990_000}],
            "feeRate": 20_000,
        }
        assert built.fee == 8_000
        assert built.wallet_keychains[0].xpub == "xpub-a"
        await backend.close()

    @pytest.mark.asyncio
    async def test_create_transaction_requires_keychains(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(
            return_value=api_response(200, {"transactionHex": "0100", "fee": 1}, method="POST")
        )
        with pytest.raises(BackendError, match="wallet keychains"):
            await backend.create_transaction("2NWallet", {"2NEscrow": 1}, 1)
        await backend.close()

    @pytest.mark.asyncio
    async def test_send_transaction(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(
            return_value=api_response(
                200, {"transactionHash": "ab" * 32, "status": "accepted"}, method="POST"
            )
        )

        sent = await backend.send_transaction("2NWallet", "signed")

        assert sent.hash == "ab" * 32
        assert sent.status == "accepted"
        _, kwargs = backend.client.request.await_args
        assert kwargs["json"] == {"tx": "signed"}
        await backend.close()

    @pytest.mark.asyncio
    async def test_get_transaction(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(
            return_value=api_response(
                200,
                {
                    "id": "cd" * 32,
                    "fee": 9_500,
                    "confirmations": 1,
                    "entries": [{"account": "2NEscrow", "value": 990_500}],
                },
            )
        )

        detail = await backend.get_transaction("cd" * 32)

        assert detail.fee == 9_500
        assert detail.entries[0].account == "2NEscrow"
        assert detail.entries[0].value == 990_500
        await backend.close()

    @pytest.mark.asyncio
    async def test_get_transaction_without_entries(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(
            return_value=api_response(200, {"id": "cd" * 32, "fee": 0, "entries": []})
        )
        with pytest.raises(BackendError, match="no entries"):
            await backend.get_transaction("cd" * 32)
        await backend.close()

    @pytest.mark.asyncio
    async def test_add_wallet_payload(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(
            return_value=api_response(200, {"id": "2NNew", "label": "bob"}, method="POST")
        )

        wallet = await backend.add_wallet(
            "bob",
            2,
            3,
            ["x1", "x2", "x3"],
            enterprise="ent",
            disable_transaction_notifications=True,
        )

        _, kwargs = backend.client.request.await_args
        assert kwargs["json"]["keychains"] == [{"xpub": "x1"}, {"xpub": "x2"}, {"xpub": "x3"}]
        assert kwargs["json"]["enterprise"] == "ent"
        assert kwargs["json"]["disableTransactionNotifications"] is True
        assert wallet.id == "2NNew"
        await backend.close()


class TestBitGoBackendErrors:
    """Failures surface as BackendError."""

    @pytest.mark.asyncio
    async def test_http_status_error(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(return_value=api_response(404, {"error": "nope"}))

        with pytest.raises(BackendError, match="status 404") as exc:
            await backend.get_transaction("missing")
        assert isinstance(exc.value.__cause__, httpx.HTTPStatusError)
        await backend.close()

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(side_effect=httpx.ConnectTimeout("timed out"))

        with pytest.raises(BackendError):
            await backend.estimate_fee()
        await backend.close()

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(
            return_value=httpx.Response(
                200, content=b"not json", request=httpx.Request("GET", BITGO_PROD_URL)
            )
        )

        with pytest.raises(BackendError, match="invalid JSON"):
            await backend.get_wallet("2NWallet")
        await backend.close()

    @pytest.mark.asyncio
    async def test_missing_field(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(return_value=api_response(200, {"numBlocks": 6}))

        with pytest.raises(BackendError, match="feePerKb"):
            await backend.estimate_fee()
        await backend.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"id": "cd", "fee": None, "entries": [{"account": "2NEscrow", "value": 1}]},
            {"id": "cd", "fee": 1, "entries": None},
            {"id": "cd", "fee": 1, "entries": [{"account": "2NEscrow", "value": None}]},
        ],
    )
    async def test_malformed_transaction_detail(self, payload: dict[str, Any]) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(return_value=api_response(200, payload))

        with pytest.raises(BackendError, match="malformed transaction") as exc:
            await backend.get_transaction("cd")
        assert isinstance(exc.value.__cause__, TypeError | ValueError)
        await backend.close()

    @pytest.mark.asyncio
    async def test_malformed_build_fee(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(
            return_value=api_response(
                200,
                {"transactionHex": "0100", "fee": "high", "walletKeychains": [{"xpub": "x"}]},
                method="POST",
            )
        )

        with pytest.raises(BackendError, match="malformed transaction"):
            await backend.create_transaction("2NWallet", {"2NEscrow": 1}, 1)
        await backend.close()

    @pytest.mark.asyncio
    async def test_malformed_fee_estimate(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(return_value=api_response(200, {"feePerKb": None}))

        with pytest.raises(BackendError, match="malformed fee"):
            await backend.estimate_fee()
        await backend.close()

    @pytest.mark.asyncio
    async def test_malformed_wallet_balance(self) -> None:
        backend = BitGoBackend(access_token="t")
        backend.client.request = AsyncMock(
            return_value=api_response(200, {"id": "2NWallet", "spendableBalance": "lots"})
        )

        with pytest.raises(BackendError, match="malformed balances"):
            await backend.get_wallet("2NWallet")
        await backend.close()
