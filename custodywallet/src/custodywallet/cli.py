"""
Custody Wallet CLI - Inspect rates, balances and build or submit transactions.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from decimal import Decimal, InvalidOperation
from typing import TypeVar

import typer
from loguru import logger
from pydantic import ValidationError

from custodywallet.config import Settings, get_settings
from custodywallet.errors import WalletError
from custodywallet.facade import WalletFacade
from custodywallet.models import (
    Balances,
    PaymentInfo,
    ProviderId,
    SubmittedTransaction,
    UnsignedTransaction,
    WalletInfo,
)
from custodywallet.rates import RateCache, RateTable

T = TypeVar("T")

app = typer.Typer(
    name="custody-wallet",
    help="Custodial Wallet Facade",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def format_rates(table: RateTable) -> str:
    if not table.rates:
        return "No rates available"

    lines = [f"{code}: {table.rates[code]:.2f}" for code in sorted(table.rates)]
    if table.timestamp is not None:
        lines.append(f"Feed timestamp: {table.timestamp.isoformat()}")
    return "\n".join(lines)


@app.command()
def rates(
    currency: str | None = typer.Option(None, "--currency", "-c", help="Show a single currency"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Fetch the exchange-rate feed once and print it."""
    setup_logging(log_level)
    settings = load_settings()
    asyncio.run(_show_rates(settings.rates_url, currency))


def load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        logger.error(f"Invalid settings: {e}")
        raise typer.Exit(1)


def parse_amount(amount: str) -> Decimal:
    try:
        value = Decimal(amount)
    except InvalidOperation:
        logger.error(f"Invalid amount: {amount}")
        raise typer.Exit(1)
    if not value.is_finite():
        logger.error(f"Invalid amount: {amount}")
        raise typer.Exit(1)
    return value


async def _show_rates(url: str, currency: str | None) -> None:
    cache = RateCache(url=url)
    try:
        if not await cache.refresh():
            logger.error(f"Could not fetch rates from {url}")
            raise typer.Exit(1)

        if currency is None:
            typer.echo(format_rates(cache.table))
            return

        rate = cache.get(currency)
        if rate is None:
            logger.error(f"No rate for {currency.upper()}")
            raise typer.Exit(1)
        typer.echo(f"{currency.upper()}: {rate:.2f}")
    finally:
        await cache.close()


async def _with_facade(operation: Callable[[WalletFacade], Awaitable[T]]) -> T:
    """Run operation(facade) with rates loaded, exiting 1 on wallet errors"""
    settings = load_settings()
    try:
        facade = WalletFacade.from_settings(settings)
    except WalletError as e:
        logger.error(f"Configuration error: {e}")
        raise typer.Exit(1)

    try:
        await facade.rates.refresh()
        return await operation(facade)
    except WalletError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    finally:
        await facade.close()


@app.command()
def balances(
    address: str = typer.Argument(..., help="Wallet id"),
    provider: str = typer.Option(ProviderId.BITGO.value, "--provider", "-p"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Show wallet balances in satoshis."""
    setup_logging(log_level)
    info = WalletInfo(provider=provider, address=address)

    async def op(facade: WalletFacade) -> Balances:
        return await facade.balances(info)

    result = asyncio.run(_with_facade(op))
    typer.echo(f"Balance:     {result.balance:>14,} sats")
    typer.echo(f"Spendable:   {result.spendable:>14,} sats")
    typer.echo(f"Confirmed:   {result.confirmed:>14,} sats")
    typer.echo(f"Unconfirmed: {result.unconfirmed:>14,} sats")


@app.command()
def payment_info(
    address: str = typer.Argument(..., help="Destination address"),
    amount: str = typer.Argument(..., help="Fiat amount"),
    currency: str = typer.Option("USD", "--currency", "-c"),
    provider: str = typer.Option(ProviderId.BITGO.value, "--provider", "-p"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Print a checkout URL for funding the wallet."""
    setup_logging(log_level)
    info = WalletInfo(provider=provider, address=address)
    value = parse_amount(amount)

    async def op(facade: WalletFacade) -> PaymentInfo | None:
        return facade.payment_info(info, value, currency)

    result = asyncio.run(_with_facade(op))
    if result is None:
        typer.echo("No payment provider available")
        return
    typer.echo(result.buy_url)


@app.command()
def unsigned_tx(
    address: str = typer.Argument(..., help="Wallet id"),
    amount: str = typer.Argument(..., help="Fiat amount"),
    balance: int = typer.Argument(..., help="Available balance in satoshis"),
    currency: str = typer.Option("USD", "--currency", "-c"),
    provider: str = typer.Option(ProviderId.BITGO.value, "--provider", "-p"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Build an unsigned transaction paying AMOUNT to escrow."""
    setup_logging(log_level)
    info = WalletInfo(provider=provider, address=address)
    value = parse_amount(amount)

    async def op(facade: WalletFacade) -> UnsignedTransaction | None:
        return await facade.unsigned_tx(info, value, currency, balance)

    result = asyncio.run(_with_facade(op))
    if result is None:
        typer.echo("No transaction (amount exceeds balance or construction failed)")
        return
    typer.echo(json.dumps(result.to_dict(), indent=2))


@app.command()
def submit_tx(
    address: str = typer.Argument(..., help="Wallet id"),
    signed_tx: str = typer.Argument(..., help="Signed transaction hex"),
    provider: str = typer.Option(ProviderId.BITGO.value, "--provider", "-p"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Submit a signed transaction and report its chain detail."""
    setup_logging(log_level)
    info = WalletInfo(provider=provider, address=address)

    async def op(facade: WalletFacade) -> SubmittedTransaction:
        return await facade.submit_tx(info, signed_tx)

    result = asyncio.run(_with_facade(op))
    typer.echo(json.dumps(result.to_dict(), indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
