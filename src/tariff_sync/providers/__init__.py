"""Source-agnostic electricity price providers.

Architecture
------------
Every pricing source is normalised into the same segment timeline:

    Remote API / tariff table → provider → list[PriceSegment] → Consumer

Key abstractions:

- ``PriceSegment``: a half-open interval with one price (in ``core.models``).
- ``PriceDataProvider``: consumer-facing async protocol.
- ``create_provider``: the single mapping from ``EnergyProvider`` to an
  implementation.

Built-in implementations:

- ``OctopusPriceProvider``: Octopus Energy time-of-use unit rates.
- ``TibberPriceProvider``: Tibber GraphQL price range.
- ``FixedPriceProvider``: recurring daily tariff table.
- ``AwattarPriceProvider``: aWATTar day-ahead market.
- ``EnerginetPriceProvider``: Energi Data Service day-ahead spot prices.
"""

from tariff_sync.providers.awattar import AwattarPriceProvider
from tariff_sync.providers.base import (
    PriceDataProvider,
    ProviderBase,
    check_window,
    normalize_segments,
)
from tariff_sync.providers.energinet import EnerginetPriceProvider
from tariff_sync.providers.factory import create_provider, create_provider_from_config
from tariff_sync.providers.fixed import FixedPriceProvider, expand_tariff_table
from tariff_sync.providers.http import HttpPriceProvider, ProviderHttpClient
from tariff_sync.providers.octopus import OctopusPriceProvider
from tariff_sync.providers.tibber import TibberPriceProvider

__all__ = [
    # Protocol and helpers
    "PriceDataProvider",
    "ProviderBase",
    "HttpPriceProvider",
    "ProviderHttpClient",
    "check_window",
    "normalize_segments",
    "expand_tariff_table",
    # Selection
    "create_provider",
    "create_provider_from_config",
    # Implementations
    "OctopusPriceProvider",
    "TibberPriceProvider",
    "FixedPriceProvider",
    "AwattarPriceProvider",
    "EnerginetPriceProvider",
]
