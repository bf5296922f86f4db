"""
Fiat/BTC exchange-rate cache.

A background task periodically fetches a ticker snapshot, validates it and
swaps in a new immutable RateTable. Readers always see the last complete
table; a failed refresh leaves it untouched.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from types import MappingProxyType
from typing import Annotated, Any

import httpx
from loguru import logger
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    PositiveFloat,
    StringConstraints,
    TypeAdapter,
)

from custodywallet.config import DEFAULT_RATES_URL

DEFAULT_REFRESH_INTERVAL = 5 * 60.0
DEFAULT_FETCH_TIMEOUT = 30.0

TIMESTAMP_KEY = "timestamp"


def _parse_feed_date(value: Any) -> Any:
    # Ticker feeds send RFC 2822 dates; ISO 8601 is left to pydantic
    if isinstance(value, str):
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return value
    return value


FeedKey = Annotated[str, StringConstraints(pattern=r"^(timestamp|[A-Z]{3})$")]
FeedDate = Annotated[datetime, BeforeValidator(_parse_feed_date)]


class Ticker(BaseModel):
    model_config = ConfigDict(extra="allow")

    last: PositiveFloat | None = None


_FEED_ADAPTER: TypeAdapter[dict[str, datetime | Ticker]] = TypeAdapter(
    dict[FeedKey, FeedDate | Ticker]
)


@dataclass(frozen=True)
class RateTable:
    """Immutable snapshot of currency -> BTC price in that currency"""

    rates: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    fetched_at: datetime | None = None
    timestamp: datetime | None = None

    def get(self, currency: str) -> float | None:
        return self.rates.get(currency.upper())

    @property
    def populated(self) -> bool:
        return self.fetched_at is not None

    def __contains__(self, currency: object) -> bool:
        return isinstance(currency, str) and currency.upper() in self.rates

    def __len__(self) -> int:
        return len(self.rates)


def build_rate_table(payload: Any, fetched_at: datetime | None = None) -> RateTable:
    """
    Validate a ticker payload and build a RateTable from it.

    Only currency entries that are objects with a positive `last` are kept.

    Raises:
        pydantic.ValidationError: If the payload does not match the feed schema
    """
    feed = _FEED_ADAPTER.validate_python(payload)

    rates = {
        code: value.last
        for code, value in feed.items()
        if code != TIMESTAMP_KEY and isinstance(value, Ticker) and value.last is not None
    }
    timestamp = feed.get(TIMESTAMP_KEY)

    return RateTable(
        rates=MappingProxyType(rates),
        fetched_at=fetched_at or datetime.now(UTC),
        timestamp=timestamp if isinstance(timestamp, datetime) else None,
    )


class RateCache:
    """
    Self-refreshing exchange-rate cache.

    refresh() is the only writer; it replaces the table reference in one
    assignment, so readers never observe a partial table.
    """

    def __init__(
        self,
        url: str = DEFAULT_RATES_URL,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.url = url
        self.refresh_interval = refresh_interval
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=DEFAULT_FETCH_TIMEOUT)
        self._sleep = sleep
        self._table = RateTable()
        self._task: asyncio.Task[None] | None = None

    @property
    def table(self) -> RateTable:
        return self._table

    def get(self, currency: str) -> float | None:
        """Last successfully fetched rate for currency, None if unknown"""
        return self._table.get(currency)

    async def fetch(self) -> Any:
        response = await self.client.get(self.url)
        response.raise_for_status()
        return response.json()

    async def refresh(self) -> bool:
        """
        Fetch and install a new rate table.

        Returns:
            True if the table was replaced, False if the previous one was kept
        """
        try:
            payload = await self.fetch()
            table = build_rate_table(payload)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning(
                f"Rate refresh failed, keeping {len(self._table)} cached rates: {e}"
            )
            return False

        self._table = table
        logger.info(f"Rates updated: {len(table)} currencies")
        return True

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Error in rate refresh loop: {e}")
            await self._sleep(self.refresh_interval)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Refresh now and every refresh_interval in the background"""
        if self.running:
            return
        logger.info(f"Starting rate refresh every {self.refresh_interval:.0f}s from {self.url}")
        self._task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def close(self) -> None:
        await self.stop()
        if self._owns_client:
            await self.client.aclose()
