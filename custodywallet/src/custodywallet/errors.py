"""
Exceptions raised by the wallet facade and its providers.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for all custodywallet errors."""

    pass


class ConfigurationError(WalletError):
    """Missing or invalid wallet configuration."""

    pass


class UnsupportedProviderOperation(WalletError):
    """The requested operation is not implemented by the wallet's provider."""

    def __init__(self, provider: str, operation: str):
        self.provider = provider
        self.operation = operation
        super().__init__(f"provider {provider} {operation} not supported")


class UnsupportedCurrency(WalletError):
    """The requested currency has no known rate or is not accepted by the provider."""

    def __init__(self, currency: str, message: str | None = None):
        self.currency = currency
        super().__init__(message or f"no such currency: {currency}")


class BackendError(WalletError):
    """A call to the custodial backend failed or returned a malformed payload."""

    pass
