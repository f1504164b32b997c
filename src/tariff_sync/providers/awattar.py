"""aWATTar day-ahead market provider.

``GET marketdata?start=<ms>&end=<ms>`` returns EPEX spot prices in EUR/MWh
with explicit start/end timestamps per slot, so slot length is taken from the
payload rather than assumed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from tariff_sync.core.config import AwattarConfig
from tariff_sync.core.exceptions import UpstreamUnavailableError
from tariff_sync.core.models import PriceSegment
from tariff_sync.providers.base import apply_multiplier, check_window, normalize_segments
from tariff_sync.providers.http import HttpPriceProvider, ProviderHttpClient

logger = logging.getLogger(__name__)

_MARKETDATA_PATH = "marketdata"
_KWH_PER_MWH = Decimal(1000)


def _to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class AwattarAdapter:
    """Transforms aWATTar ``marketdata`` items into PriceSegment records."""

    def __init__(self, vat_multiplier: Decimal) -> None:
        self._multiplier = vat_multiplier

    def adapt(self, raw_data: Any) -> list[PriceSegment]:
        items = raw_data.get("data") if isinstance(raw_data, dict) else None
        if not isinstance(items, list):
            raise UpstreamUnavailableError(
                "aWATTar response has no 'data' list", context={"provider": "awattar"}
            )

        segments: list[PriceSegment] = []
        for item in items:
            try:
                per_mwh = Decimal(str(item["marketprice"]))
                segments.append(
                    PriceSegment(
                        valid_from=_from_millis(int(item["start_timestamp"])),
                        valid_to=_from_millis(int(item["end_timestamp"])),
                        value=apply_multiplier(per_mwh / _KWH_PER_MWH, self._multiplier),
                    )
                )
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                raise UpstreamUnavailableError(
                    f"Malformed aWATTar market data item: {item!r}",
                    context={"provider": "awattar"},
                ) from e
        return segments


class AwattarPriceProvider(HttpPriceProvider):
    """Fetches day-ahead market prices from the aWATTar API."""

    name = "awattar"

    def __init__(
        self,
        config: AwattarConfig,
        client: ProviderHttpClient | None = None,
    ) -> None:
        super().__init__(config, client)
        self._adapter = AwattarAdapter(config.vat_multiplier)

    async def get_price_data(self, start: datetime, end: datetime) -> list[PriceSegment]:
        check_window(start, end)
        # Slots are filtered by their start, so ask from the top of the hour
        query_start = start.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)
        data = await self._client.get_json(
            _MARKETDATA_PATH,
            params={"start": _to_millis(query_start), "end": _to_millis(end)},
        )
        return normalize_segments(self._adapter.adapt(data), start, end, self.name)
