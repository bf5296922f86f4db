"""
Configuration for the wallet facade.

WalletConfig is the immutable, validated form handed to WalletFacade.
Settings reads the same values from the environment (or a .env file)
using pydantic-settings.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from custodywallet.errors import ConfigurationError

DEFAULT_RATES_URL = "https://api.bitcoinaverage.com/ticker/global/all"


class BitGoConfig(BaseModel):
    """Custodial backend credentials and wallet policy."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    environment: Literal["prod", "test"] = "prod"
    escrow_address: str = Field(..., min_length=1)
    unspendable_xpub: str = ""
    enterprise_id: str | None = None
    api_url: str | None = None

    # Spending velocity policy attached to every new wallet
    policy_id: str = "com.brave.limit.velocity.30d"
    velocity_limit: int = Field(default=7_000_000, gt=0, description="Satoshis per window")
    velocity_window: int = Field(default=5 * 86400, gt=0, description="Window in seconds")


class FiatLinkConfig(BaseModel):
    """Hosted checkout widget settings."""

    model_config = ConfigDict(frozen=True)

    widget_code: str = Field(..., min_length=1)
    buy_url: str = "https://buy.coinbase.com"
    fiat_currency: str = "USD"
    crypto_currency: str = "BTC"


class WalletConfig(BaseModel):
    """Configuration for the wallet facade."""

    model_config = ConfigDict(frozen=True)

    bitgo: BitGoConfig
    coinbase: FiatLinkConfig | None = None

    @property
    def environment(self) -> str:
        return self.bitgo.environment

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> WalletConfig:
        """
        Build from an application config mapping.

        Accepts {"wallet": {"bitgo": {...}, "coinbase": {...}}} or the flat
        form {"wallet": {<bitgo keys>}}.

        Raises:
            ConfigurationError: If the wallet section is missing or invalid
        """
        wallet = config.get("wallet")
        if not wallet:
            raise ConfigurationError("config.wallet undefined")

        if "bitgo" not in wallet:
            wallet = {"bitgo": wallet}

        try:
            return cls.model_validate(wallet)
        except ValidationError as e:
            raise ConfigurationError(f"invalid wallet configuration: {e}") from e


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    bitgo_access_token: str = ""
    bitgo_environment: Literal["prod", "test"] = "prod"
    bitgo_escrow_address: str = ""
    bitgo_unspendable_xpub: str = ""
    bitgo_enterprise_id: str | None = None
    bitgo_api_url: str | None = None

    coinbase_widget_code: str = ""

    rates_url: str = DEFAULT_RATES_URL
    rates_refresh_interval: float = 300.0

    log_level: str = "INFO"

    def to_wallet_config(self) -> WalletConfig:
        """
        Raises:
            ConfigurationError: If required BitGo settings are missing
        """
        wallet: dict[str, Any] = {
            "bitgo": {
                "access_token": self.bitgo_access_token,
                "environment": self.bitgo_environment,
                "escrow_address": self.bitgo_escrow_address,
                "unspendable_xpub": self.bitgo_unspendable_xpub,
                "enterprise_id": self.bitgo_enterprise_id,
                "api_url": self.bitgo_api_url,
            }
        }
        if self.coinbase_widget_code:
            wallet["coinbase"] = {"widget_code": self.coinbase_widget_code}

        return WalletConfig.from_mapping({"wallet": wallet})


def get_settings() -> Settings:
    return Settings()
