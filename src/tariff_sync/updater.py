"""The scoped price update operation run on every scheduler tick."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable

from tariff_sync.core.config import TariffSyncConfig
from tariff_sync.providers.base import PriceDataProvider
from tariff_sync.providers.factory import create_provider_from_config
from tariff_sync.store import PriceSink, SqliteSegmentStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceUpdater:
    """Fetches prices for the lookback window ending now and hands them on.

    Parameters
    ----------
    provider : PriceDataProvider
        Source of price segments.
    sink : PriceSink
        Downstream consumer of the fetched segments.
    lookback : timedelta
        How far back from now each update queries.
    clock : Callable[[], datetime] | None
        Returns the current aware time. Defaults to UTC now.
    """

    def __init__(
        self,
        provider: PriceDataProvider,
        sink: PriceSink,
        lookback: timedelta,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._provider = provider
        self._sink = sink
        self._lookback = lookback
        self._clock = clock or _utcnow

    def window(self) -> tuple[datetime, datetime]:
        """Return ``[start, end)``: the lookback window, start floored to the hour."""
        end = self._clock()
        start = (end - self._lookback).replace(minute=0, second=0, microsecond=0)
        return start, end

    async def update(self) -> int:
        """Fetch the current window and store it. Returns the segment count."""
        start, end = self.window()
        logger.debug(
            "Fetching %s prices for %s - %s",
            self._provider.name, start.isoformat(), end.isoformat(),
        )
        segments = await self._provider.get_price_data(start, end)
        return await self._sink.store_segments(self._provider.name, segments)


@asynccontextmanager
async def updater_scope(
    config: TariffSyncConfig,
    sink: PriceSink | None = None,
) -> AsyncIterator[PriceUpdater]:
    """Build a fresh provider for one run and close it on every exit path."""
    provider = create_provider_from_config(config)
    try:
        yield PriceUpdater(
            provider,
            sink or SqliteSegmentStore(config.storage.sqlite_path),
            timedelta(hours=config.scheduler.lookback_hours),
        )
    finally:
        await provider.aclose()
