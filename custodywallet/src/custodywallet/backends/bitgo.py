"""
BitGo REST custodial backend.
Talks to the BitGo v1 API over HTTPS with a long-lived access token.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

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
from custodywallet.errors import BackendError

# Timeout for regular API calls (seconds)
DEFAULT_API_TIMEOUT = 30.0

BITGO_PROD_URL = "https://www.bitgo.com/api/v1"
BITGO_TEST_URL = "https://test.bitgo.com/api/v1"


def default_api_url(environment: str) -> str:
    return BITGO_PROD_URL if environment == "prod" else BITGO_TEST_URL


class BitGoBackend(CustodialBackend):
    """
    Custodial backend using the BitGo REST API.
    Keys other than the user's are held by BitGo; signing happens elsewhere.
    """

    def __init__(
        self,
        access_token: str,
        environment: str = "prod",
        api_url: str | None = None,
        timeout: float = DEFAULT_API_TIMEOUT,
    ):
        self.environment = environment
        self.api_url = (api_url or default_api_url(environment)).rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    async def _api_call(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an API call to BitGo.

        Raises:
            BackendError: On HTTP, transport or decoding errors
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"

        try:
            response = await self.client.request(method, url, params=params, json=data)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"BitGo API call failed: {method} {endpoint} - {e.response.status_code}")
            raise BackendError(
                f"{method} {endpoint} failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"BitGo API call failed: {method} {endpoint} - {e}")
            raise BackendError(f"{method} {endpoint} failed: {e}") from e
        except ValueError as e:
            raise BackendError(f"{method} {endpoint} returned invalid JSON") from e

    @staticmethod
    def _require(data: Any, key: str, endpoint: str) -> Any:
        if not isinstance(data, dict) or key not in data:
            raise BackendError(f"{endpoint} response missing '{key}'")
        return data[key]

    async def add_keychain(
        self, xpub: str, label: str, encrypted_xprv: str | None = None
    ) -> Keychain:
        payload: dict[str, Any] = {"label": label, "xpub": xpub}
        if encrypted_xprv:
            payload["encryptedXprv"] = encrypted_xprv
        result = await self._api_call("POST", "keychain", data=payload)
        return Keychain(xpub=self._require(result, "xpub", "keychain"), label=label)

    async def create_backend_keychain(self) -> Keychain:
        result = await self._api_call("POST", "keychain/bitgo", data={})
        return Keychain(xpub=self._require(result, "xpub", "keychain/bitgo"), label="bitgo")

    async def add_wallet(
        self,
        label: str,
        m: int,
        n: int,
        keychains: list[str],
        enterprise: str | None = None,
        disable_transaction_notifications: bool = False,
    ) -> BackendWallet:
        payload: dict[str, Any] = {
            "label": label,
            "m": m,
            "n": n,
            "keychains": [{"xpub": xpub} for xpub in keychains],
            "disableTransactionNotifications": disable_transaction_notifications,
        }
        if enterprise:
            payload["enterprise"] = enterprise

        result = await self._api_call("POST", "wallet", data=payload)
        wallet = self._parse_wallet(result, "wallet")
        logger.info(f"Created {m}-of-{n} wallet {wallet.id} ({label})")
        return wallet

    async def add_webhook(
        self, wallet_id: str, url: str, type: str, num_confirmations: int
    ) -> None:
        await self._api_call(
            "POST",
            f"wallet/{wallet_id}/webhooks",
            data={"url": url, "type": type, "numConfirmations": num_confirmations},
        )

    async def set_policy_rule(self, wallet_id: str, rule: dict[str, Any]) -> None:
        await self._api_call("PUT", f"wallet/{wallet_id}/policy/rule", data=rule)

    async def get_wallet(self, wallet_id: str, coin: str = "bitcoin") -> BackendWallet:
        if coin != "bitcoin":
            raise BackendError(f"Unsupported wallet type: {coin}")
        result = await self._api_call("GET", f"wallet/{wallet_id}")
        return self._parse_wallet(result, f"wallet/{wallet_id}")

    async def estimate_fee(self, num_blocks: int = 6) -> FeeEstimate:
        result = await self._api_call("GET", "tx/fee", params={"numBlocks": num_blocks})
        try:
            fee_per_kb = int(self._require(result, "feePerKb", "tx/fee"))
        except (TypeError, ValueError) as e:
            raise BackendError(f"tx/fee returned a malformed fee: {e}") from e
        logger.debug(f"Estimated fee for {num_blocks} blocks: {fee_per_kb} sat/kB")
        return FeeEstimate(fee_per_kb=fee_per_kb, num_blocks=num_blocks)

    async def create_transaction(
        self, wallet_id: str, recipients: dict[str, int], fee_rate: int
    ) -> BuiltTransaction:
        endpoint = f"wallet/{wallet_id}/tx/build"
        result = await self._api_call(
            "POST",
            endpoint,
            data={
                "recipients": [
                    {"address": address, "amount": amount}
                    for address, amount in recipients.items()
                ],
                "feeRate": fee_rate,
            },
        )
        transaction_hex = self._require(result, "transactionHex", endpoint)
        try:
            fee = int(self._require(result, "fee", endpoint))
            keychains = [
                Keychain(xpub=k["xpub"])
                for k in result.get("walletKeychains") or []
                if "xpub" in k
            ]
            unspents = list(result.get("unspents") or [])
        except (KeyError, TypeError, ValueError) as e:
            raise BackendError(f"{endpoint} returned a malformed transaction: {e}") from e

        if not keychains:
            raise BackendError(f"{endpoint} response missing wallet keychains")

        return BuiltTransaction(
            transaction_hex=transaction_hex,
            fee=fee,
            unspents=unspents,
            wallet_keychains=keychains,
        )

    async def send_transaction(self, wallet_id: str, tx_hex: str) -> SentTransaction:
        result = await self._api_call("POST", "tx/send", data={"tx": tx_hex})
        if not isinstance(result, dict):
            raise BackendError("tx/send returned an unexpected payload")

        tx_hash = result.get("hash") or result.get("transactionHash")
        if not tx_hash:
            raise BackendError("tx/send response missing transaction hash")

        logger.info(f"Submitted transaction {tx_hash} from wallet {wallet_id}")
        return SentTransaction(hash=tx_hash, status=result.get("status"))

    async def get_transaction(self, txid: str) -> TransactionDetail:
        endpoint = f"tx/{txid}"
        result = await self._api_call("GET", endpoint)

        try:
            entries = [
                TransactionEntry(account=entry["account"], value=int(entry["value"]))
                for entry in self._require(result, "entries", endpoint)
                if "account" in entry and "value" in entry
            ]
            if not entries:
                raise BackendError(f"Transaction {txid} has no entries yet")

            return TransactionDetail(
                id=result.get("id") or txid,
                fee=int(result.get("fee", 0)),
                entries=entries,
                confirmations=int(result.get("confirmations", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise BackendError(f"{endpoint} returned a malformed transaction: {e}") from e

    def _parse_wallet(self, data: Any, endpoint: str) -> BackendWallet:
        wallet_id = self._require(data, "id", endpoint)
        try:
            return BackendWallet(
                id=wallet_id,
                label=data.get("label") or "",
                balance=int(data.get("balance", 0)),
                spendable=int(data.get("spendableBalance", 0)),
                confirmed=int(data.get("confirmedBalance", 0)),
                unconfirmed=int(data.get("unconfirmedReceives", 0)),
            )
        except (TypeError, ValueError) as e:
            raise BackendError(f"{endpoint} returned malformed balances: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()
