"""Octopus Energy time-of-use tariff provider.

Reads half-hourly unit rates from the public ``standard-unit-rates``
endpoint. Rates are quoted in pence per kWh; segments are returned in pounds
per kWh with the configured VAT multiplier applied to the ex-VAT rate.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from tariff_sync.core.config import OctopusConfig
from tariff_sync.core.exceptions import UpstreamUnavailableError
from tariff_sync.core.models import PriceSegment
from tariff_sync.providers.base import apply_multiplier, check_window, normalize_segments
from tariff_sync.providers.http import HttpPriceProvider, ProviderHttpClient

logger = logging.getLogger(__name__)

_RATES_PATH = "products/{product}/electricity-tariffs/{tariff}/standard-unit-rates/"
_PENCE_PER_POUND = Decimal(100)
# Guards against a paginated response whose "next" link never terminates
_MAX_PAGES = 50


def _iso_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class OctopusAdapter:
    """Transforms Octopus unit-rate results into PriceSegment records."""

    def __init__(self, vat_multiplier: Decimal) -> None:
        self._multiplier = vat_multiplier

    def adapt(self, results: list[dict[str, Any]], end: datetime) -> list[PriceSegment]:
        """Parse ``results`` entries.

        A null ``valid_to`` marks the current open-ended rate; it is clamped
        to ``end``.
        """
        segments: list[PriceSegment] = []
        for item in results:
            try:
                valid_from = datetime.fromisoformat(item["valid_from"])
                raw_to = item.get("valid_to")
                if not raw_to and valid_from >= end:
                    continue
                valid_to = datetime.fromisoformat(raw_to) if raw_to else end
                pence = Decimal(str(item["value_exc_vat"]))
                segments.append(
                    PriceSegment(
                        valid_from=valid_from,
                        valid_to=valid_to,
                        value=apply_multiplier(pence / _PENCE_PER_POUND, self._multiplier),
                    )
                )
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                raise UpstreamUnavailableError(
                    f"Malformed Octopus unit rate: {item!r}",
                    context={"provider": "octopus"},
                ) from e
        return segments


class OctopusPriceProvider(HttpPriceProvider):
    """Fetches unit rates for one Octopus product/tariff code pair."""

    name = "octopus"

    def __init__(
        self,
        config: OctopusConfig,
        client: ProviderHttpClient | None = None,
    ) -> None:
        super().__init__(config, client)
        self._path = _RATES_PATH.format(
            product=config.product_code, tariff=config.tariff_code
        )
        self._adapter = OctopusAdapter(config.vat_multiplier)

    async def get_price_data(self, start: datetime, end: datetime) -> list[PriceSegment]:
        check_window(start, end)

        results: list[dict[str, Any]] = []
        url: str | None = self._path
        params: dict[str, Any] | None = {
            "period_from": _iso_utc(start),
            "period_to": _iso_utc(end),
        }
        pages = 0
        while url is not None:
            if pages == _MAX_PAGES:
                raise UpstreamUnavailableError(
                    f"Octopus pagination exceeded {_MAX_PAGES} pages",
                    context={"provider": self.name},
                )
            pages += 1
            data = await self._client.get_json(url, params=params)
            if not isinstance(data, dict) or not isinstance(data.get("results"), list):
                raise UpstreamUnavailableError(
                    "Octopus response has no 'results' list",
                    context={"provider": self.name, "url": url},
                )
            results.extend(data["results"])
            # "next" is an absolute URL that already carries the query string
            url = data.get("next")
            params = None

        logger.debug("Octopus returned %d unit rates", len(results))
        return normalize_segments(self._adapter.adapt(results, end), start, end, self.name)
