"""Price data provider protocol — the source-agnostic interface layer.

Architecture
------------
Every pricing source (time-of-use retailer, fixed daily schedule, day-ahead
market feed) sits behind one consumer-facing protocol:

    RawSource → provider normalisation → list[PriceSegment] → Consumer

- **PriceDataProvider** is the protocol the scheduler and any consumer
  depend on. Implementations live next to this module, one per
  ``EnergyProvider`` value.

- ``check_window`` and ``normalize_segments`` enforce the contract every
  implementation shares: a valid query window in, and an ordered,
  non-overlapping, gap-free sequence covering that window out.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Protocol, runtime_checkable

from tariff_sync.core.exceptions import InvalidArgumentError, UpstreamUnavailableError
from tariff_sync.core.models import PriceSegment

logger = logging.getLogger(__name__)


@runtime_checkable
class PriceDataProvider(Protocol):
    """Consumer-facing interface for fetching price segments.

    All code that needs prices should depend on this protocol, never on a
    concrete implementation.
    """

    @property
    def name(self) -> str: ...

    async def get_price_data(self, start: datetime, end: datetime) -> list[PriceSegment]:
        """Fetch price segments covering ``[start, end)``.

        Returns
        -------
        list[PriceSegment]
            Sorted by ``valid_from``, non-overlapping, with no gaps, the first
            starting at or before ``start`` and the last ending at or after
            ``end``.

        Raises
        ------
        InvalidArgumentError
            ``start`` is not before ``end`` or either is naive.
        UpstreamUnavailableError
            The source is unreachable or returned a malformed/incomplete payload.
        UnauthorizedError
            The source rejected the configured credentials.
        """
        ...

    async def aclose(self) -> None:
        """Release any transport held by the provider."""
        ...


def check_window(start: datetime, end: datetime) -> None:
    """Reject naive timestamps and empty or inverted windows."""
    for argument, value in (("start", start), ("end", end)):
        if value.tzinfo is None or value.utcoffset() is None:
            raise InvalidArgumentError(
                f"{argument} must be timezone-aware, got {value.isoformat()}",
                context={"argument": argument, "value": value.isoformat()},
            )
    if start >= end:
        raise InvalidArgumentError(
            f"start ({start.isoformat()}) must be before end ({end.isoformat()})",
            context={"argument": "start", "value": start.isoformat()},
        )


def apply_multiplier(value: Decimal, multiplier: Decimal) -> Decimal:
    """Apply a VAT/tax multiplier to a per-kWh price."""
    return value * multiplier


def normalize_segments(
    segments: Iterable[PriceSegment],
    start: datetime,
    end: datetime,
    provider: str,
) -> list[PriceSegment]:
    """Order segments, drop those outside the window, and verify coverage.

    Segments are never merged or re-binned; the source's granularity is kept.

    Raises
    ------
    UpstreamUnavailableError
        The remaining segments overlap, leave a gap, or do not cover
        ``[start, end)``.
    """
    ordered = sorted(
        (s for s in segments if s.overlaps(start, end)),
        key=lambda s: s.valid_from,
    )
    context = {"provider": provider, "start": start.isoformat(), "end": end.isoformat()}

    if not ordered:
        raise UpstreamUnavailableError(
            f"{provider} returned no prices for {start.isoformat()} - {end.isoformat()}",
            context=context,
        )

    for previous, current in zip(ordered, ordered[1:]):
        if current.valid_from < previous.valid_to:
            raise UpstreamUnavailableError(
                f"{provider} returned overlapping prices at {current.valid_from.isoformat()}",
                context=context,
            )
        if current.valid_from > previous.valid_to:
            raise UpstreamUnavailableError(
                f"{provider} returned no prices between "
                f"{previous.valid_to.isoformat()} and {current.valid_from.isoformat()}",
                context=context,
            )

    if ordered[0].valid_from > start or ordered[-1].valid_to < end:
        raise UpstreamUnavailableError(
            f"{provider} prices cover {ordered[0].valid_from.isoformat()} - "
            f"{ordered[-1].valid_to.isoformat()}, not the requested window",
            context=context,
        )

    logger.debug("%s returned %d price segments", provider, len(ordered))
    return ordered


class ProviderBase:
    """Shared lifecycle for concrete providers.

    Subclasses set ``name`` and implement ``get_price_data``; those holding a
    transport override ``aclose``.
    """

    name: str = "unknown"

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        return None
