"""Tibber time-of-use provider over the GraphQL API.

Tibber exposes historical and upcoming prices as a cursor-paginated
``range`` connection. The cursor is the base64-encoded ISO timestamp of the
node *before* the first one wanted, so a query for ``[start, end)`` asks for
``first: N`` nodes after the slot preceding ``start``.
"""

from __future__ import annotations

import base64
import logging
import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from tariff_sync.core.config import TibberConfig
from tariff_sync.core.exceptions import UnauthorizedError, UpstreamUnavailableError
from tariff_sync.core.models import PriceSegment, TibberResolution
from tariff_sync.providers.base import apply_multiplier, check_window, normalize_segments
from tariff_sync.providers.http import HttpPriceProvider, ProviderHttpClient

logger = logging.getLogger(__name__)

_STEP: dict[TibberResolution, timedelta] = {
    TibberResolution.HOURLY: timedelta(hours=1),
    TibberResolution.QUARTER_HOURLY: timedelta(minutes=15),
}

_PRICE_QUERY = """
query PriceRange($resolution: PriceResolution!, $first: Int!, $after: String!) {
  viewer {
    homes {
      id
      currentSubscription {
        priceInfo {
          range(resolution: $resolution, first: $first, after: $after) {
            nodes {
              total
              startsAt
            }
          }
        }
      }
    }
  }
}
"""

_UNAUTHENTICATED_CODES = frozenset({"UNAUTHENTICATED", "UNAUTHORIZED"})


def _encode_cursor(value: datetime) -> str:
    return base64.b64encode(value.isoformat().encode()).decode()


class TibberPriceProvider(HttpPriceProvider):
    """Fetches spot-linked retail prices for one Tibber home.

    Parameters
    ----------
    config : TibberConfig
        Access token, optional home id (first home otherwise) and resolution.
    client : ProviderHttpClient | None
        Pre-built transport. Built from ``config`` with a bearer token if None.
    """

    name = "tibber"

    def __init__(
        self,
        config: TibberConfig,
        client: ProviderHttpClient | None = None,
    ) -> None:
        super().__init__(
            config,
            client,
            headers={"Authorization": f"Bearer {config.access_token}"},
        )
        self._endpoint = config.base_url.rstrip("/")
        self._home_id = config.home_id
        self._resolution = config.resolution
        self._step = _STEP[config.resolution]
        self._multiplier = config.vat_multiplier

    async def get_price_data(self, start: datetime, end: datetime) -> list[PriceSegment]:
        check_window(start, end)

        first_slot = self._floor_to_step(start.astimezone(timezone.utc))
        count = math.ceil((end - first_slot) / self._step)
        variables = {
            "resolution": self._resolution.value,
            "first": count,
            "after": _encode_cursor(first_slot - self._step),
        }
        data = await self._client.post_json(
            self._endpoint, {"query": _PRICE_QUERY, "variables": variables}
        )
        self._raise_for_errors(data)

        nodes = self._select_home_nodes(data)
        segments = [self._node_to_segment(node) for node in nodes]
        return normalize_segments(segments, start, end, self.name)

    def _floor_to_step(self, value: datetime) -> datetime:
        step_seconds = int(self._step.total_seconds())
        epoch = int(value.timestamp())
        return datetime.fromtimestamp(epoch - epoch % step_seconds, tz=timezone.utc)

    def _raise_for_errors(self, data: Any) -> None:
        if not isinstance(data, dict):
            raise UpstreamUnavailableError(
                "Tibber response is not a JSON object", context={"provider": self.name}
            )
        errors = data.get("errors")
        if not errors:
            return
        codes = {
            (err.get("extensions") or {}).get("code")
            for err in errors
            if isinstance(err, dict)
        }
        messages = "; ".join(
            str(err.get("message")) for err in errors if isinstance(err, dict)
        )
        if codes & _UNAUTHENTICATED_CODES:
            raise UnauthorizedError(
                f"Tibber rejected the access token: {messages}",
                context={"provider": self.name},
            )
        raise UpstreamUnavailableError(
            f"Tibber GraphQL error: {messages}",
            context={"provider": self.name},
        )

    def _select_home_nodes(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            homes = data["data"]["viewer"]["homes"]
        except (KeyError, TypeError) as e:
            raise UpstreamUnavailableError(
                "Tibber response has no homes", context={"provider": self.name}
            ) from e

        if self._home_id is not None:
            homes = [h for h in homes if h.get("id") == self._home_id]
        if not homes:
            raise UpstreamUnavailableError(
                f"Tibber home not found: {self._home_id or '<first>'}",
                context={"provider": self.name, "home_id": self._home_id},
            )

        try:
            return homes[0]["currentSubscription"]["priceInfo"]["range"]["nodes"]
        except (KeyError, TypeError) as e:
            raise UpstreamUnavailableError(
                "Tibber home has no active subscription price info",
                context={"provider": self.name, "home_id": homes[0].get("id")},
            ) from e

    def _node_to_segment(self, node: dict[str, Any]) -> PriceSegment:
        try:
            valid_from = datetime.fromisoformat(node["startsAt"])
            total = Decimal(str(node["total"]))
            return PriceSegment(
                valid_from=valid_from,
                valid_to=valid_from + self._step,
                value=apply_multiplier(total, self._multiplier),
            )
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise UpstreamUnavailableError(
                f"Malformed Tibber price node: {node!r}",
                context={"provider": self.name},
            ) from e
