"""Fixed daily tariff schedule provider.

Expands a recurring ``HH:MM-HH:MM=price`` table into absolute price segments.
Boundaries are wall-clock times in the configured zone, so a day with a DST
transition yields segments of 23 or 25 hours in total.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from tariff_sync.core.config import FixedPriceConfig
from tariff_sync.core.exceptions import ConfigError
from tariff_sync.core.models import FixedTariffEntry, PriceSegment, check_tariff_tiling
from tariff_sync.providers.base import (
    ProviderBase,
    apply_multiplier,
    check_window,
    normalize_segments,
)

logger = logging.getLogger(__name__)


def _local_to_utc(day: date, at: time, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=zone).astimezone(timezone.utc)


def expand_tariff_table(
    entries: list[FixedTariffEntry],
    zone: ZoneInfo,
    start: datetime,
    end: datetime,
) -> list[PriceSegment]:
    """Emit one segment per table row per local calendar day touching the window.

    Rows are expanded from the local day before ``start`` so that a row
    wrapping past midnight into the window is included. Rows collapsed to zero
    length by a DST gap are skipped. Values are the raw table prices.
    """
    day = start.astimezone(zone).date() - timedelta(days=1)
    last_day = end.astimezone(zone).date()

    segments: list[PriceSegment] = []
    while day <= last_day:
        for entry in entries:
            valid_from = _local_to_utc(day, entry.start, zone)
            end_day = day + timedelta(days=1) if entry.wraps_midnight else day
            valid_to = _local_to_utc(end_day, entry.end, zone)
            if valid_from >= valid_to:
                continue
            if valid_from < end and valid_to > start:
                segments.append(
                    PriceSegment(valid_from=valid_from, valid_to=valid_to, value=entry.price)
                )
        day += timedelta(days=1)

    segments.sort(key=lambda s: s.valid_from)
    return segments


class FixedPriceProvider(ProviderBase):
    """Serves a recurring daily tariff table as price segments.

    Parameters
    ----------
    config : FixedPriceConfig
        Time zone and tariff rows. The rows must tile the full day; a gap or
        overlap raises ConfigError here, not at query time.
    """

    name = "fixed_price"

    def __init__(self, config: FixedPriceConfig) -> None:
        try:
            self._entries = check_tariff_tiling(list(config.prices))
        except ValueError as e:
            raise ConfigError(
                f"Invalid fixed price table: {e}",
                context={"field": "prices", "value": [str(p) for p in config.prices]},
            ) from e
        self._zone = config.zone
        self._multiplier: Decimal = config.vat_multiplier

    async def get_price_data(self, start: datetime, end: datetime) -> list[PriceSegment]:
        check_window(start, end)
        segments = [
            s.model_copy(update={"value": apply_multiplier(s.value, self._multiplier)})
            for s in expand_tariff_table(self._entries, self._zone, start, end)
        ]
        return normalize_segments(segments, start, end, self.name)
