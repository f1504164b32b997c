"""Energi Data Service (Energinet) day-ahead spot price provider.

Spot prices are published per MWh for the DK1/DK2 price areas, hourly in
``Elspotprices`` and per quarter hour in ``DayAheadPrices``. An optional fixed
tariff table (grid fees, levies) is added on top of the spot price; spot
slots are split wherever a tariff row boundary falls inside them. VAT is
applied last, to the sum.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, NamedTuple

from tariff_sync.core.config import EnerginetConfig
from tariff_sync.core.exceptions import UpstreamUnavailableError
from tariff_sync.core.models import EnerginetDataset, PriceSegment
from tariff_sync.providers.base import apply_multiplier, check_window, normalize_segments
from tariff_sync.providers.fixed import expand_tariff_table
from tariff_sync.providers.http import HttpPriceProvider, ProviderHttpClient

logger = logging.getLogger(__name__)

_KWH_PER_MWH = Decimal(1000)
_QUERY_TIME_FORMAT = "%Y-%m-%dT%H:%M"


class _DatasetLayout(NamedTuple):
    time_field: str
    price_prefix: str
    slot: timedelta


_LAYOUTS: dict[EnerginetDataset, _DatasetLayout] = {
    EnerginetDataset.ELSPOTPRICES: _DatasetLayout("HourUTC", "SpotPrice", timedelta(hours=1)),
    EnerginetDataset.DAY_AHEAD_PRICES: _DatasetLayout(
        "TimeUTC", "DayAheadPrice", timedelta(minutes=15)
    ),
}


class EnerginetPriceProvider(HttpPriceProvider):
    """Fetches spot prices for one Danish price area.

    Parameters
    ----------
    config : EnerginetConfig
        Price area, currency (DKK or EUR), dataset, VAT multiplier and an
        optional fixed tariff table in the same currency.
    client : ProviderHttpClient | None
        Pre-built transport. Built from ``config`` if None.
    """

    name = "energinet"

    def __init__(
        self,
        config: EnerginetConfig,
        client: ProviderHttpClient | None = None,
    ) -> None:
        super().__init__(config, client)
        # Rows arrive sorted and tiled by FixedPriceConfig validation
        fixed = config.fixed_prices
        self._fixed = (list(fixed.prices), fixed.zone) if fixed is not None else None
        self._layout = _LAYOUTS[config.dataset]
        self._dataset = config.dataset.value
        self._region = config.region
        self._price_field = f"{self._layout.price_prefix}{config.currency}"
        self._multiplier = config.vat_multiplier

    async def get_price_data(self, start: datetime, end: datetime) -> list[PriceSegment]:
        check_window(start, end)

        slot_seconds = int(self._layout.slot.total_seconds())
        epoch = int(start.timestamp())
        query_start = datetime.fromtimestamp(epoch - epoch % slot_seconds, tz=timezone.utc)
        query_end = end.astimezone(timezone.utc) + self._layout.slot

        data = await self._client.get_json(
            self._dataset,
            params={
                "start": query_start.strftime(_QUERY_TIME_FORMAT),
                "end": query_end.strftime(_QUERY_TIME_FORMAT),
                "filter": json.dumps({"PriceArea": [self._region]}),
                "sort": f"{self._layout.time_field} ASC",
                "timezone": "utc",
                "limit": 0,
            },
        )
        spot = self._parse_records(data)
        segments = self._add_fixed_prices(spot) if self._fixed else spot
        segments = [
            s.model_copy(update={"value": apply_multiplier(s.value, self._multiplier)})
            for s in segments
        ]
        return normalize_segments(segments, start, end, self.name)

    def _parse_records(self, data: Any) -> list[PriceSegment]:
        records = data.get("records") if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise UpstreamUnavailableError(
                "Energinet response has no 'records' list",
                context={"provider": self.name, "dataset": self._dataset},
            )

        segments: list[PriceSegment] = []
        for record in records:
            try:
                valid_from = datetime.fromisoformat(record[self._layout.time_field])
                if valid_from.tzinfo is None:
                    valid_from = valid_from.replace(tzinfo=timezone.utc)
                per_mwh = Decimal(str(record[self._price_field]))
                segments.append(
                    PriceSegment(
                        valid_from=valid_from,
                        valid_to=valid_from + self._layout.slot,
                        value=per_mwh / _KWH_PER_MWH,
                    )
                )
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                raise UpstreamUnavailableError(
                    f"Malformed Energinet record: {record!r}",
                    context={"provider": self.name, "dataset": self._dataset},
                ) from e
        return segments

    def _add_fixed_prices(self, spot: list[PriceSegment]) -> list[PriceSegment]:
        """Split spot slots at tariff boundaries and add the tariff price."""
        if not spot:
            return spot
        entries, zone = self._fixed
        first = min(s.valid_from for s in spot)
        last = max(s.valid_to for s in spot)
        fixed = expand_tariff_table(entries, zone, first, last)

        combined: list[PriceSegment] = []
        for slot in spot:
            for tariff in fixed:
                if not tariff.overlaps(slot.valid_from, slot.valid_to):
                    continue
                combined.append(
                    PriceSegment(
                        valid_from=max(slot.valid_from, tariff.valid_from),
                        valid_to=min(slot.valid_to, tariff.valid_to),
                        value=slot.value + tariff.value,
                    )
                )
        return combined
