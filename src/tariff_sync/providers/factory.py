"""Provider selection: configured provider id → one concrete provider.

This is the only place that maps an ``EnergyProvider`` value to an
implementation. Everything downstream sees a ``PriceDataProvider``.
"""

from __future__ import annotations

import logging

from tariff_sync.core.config import (
    AwattarConfig,
    EnerginetConfig,
    FixedPriceConfig,
    OctopusConfig,
    ProviderConfig,
    TariffSyncConfig,
    TibberConfig,
)
from tariff_sync.core.exceptions import ConfigError
from tariff_sync.core.models import EnergyProvider
from tariff_sync.providers.awattar import AwattarPriceProvider
from tariff_sync.providers.base import PriceDataProvider
from tariff_sync.providers.energinet import EnerginetPriceProvider
from tariff_sync.providers.fixed import FixedPriceProvider
from tariff_sync.providers.http import HttpPriceProvider, ProviderHttpClient
from tariff_sync.providers.octopus import OctopusPriceProvider
from tariff_sync.providers.tibber import TibberPriceProvider

logger = logging.getLogger(__name__)

ProviderFactory = type[PriceDataProvider]

_REGISTRY: dict[EnergyProvider, tuple[type[ProviderConfig], ProviderFactory]] = {
    EnergyProvider.OCTOPUS: (OctopusConfig, OctopusPriceProvider),
    EnergyProvider.TIBBER: (TibberConfig, TibberPriceProvider),
    EnergyProvider.FIXED_PRICE: (FixedPriceConfig, FixedPriceProvider),
    EnergyProvider.AWATTAR: (AwattarConfig, AwattarPriceProvider),
    EnergyProvider.ENERGINET: (EnerginetConfig, EnerginetPriceProvider),
}


def create_provider(
    provider_id: EnergyProvider | str,
    settings: ProviderConfig | None,
    *,
    client: ProviderHttpClient | None = None,
) -> PriceDataProvider:
    """Construct the provider named by ``provider_id`` from its settings.

    Args:
        provider_id: An ``EnergyProvider`` or its string value.
        settings: The provider's validated settings block.
        client: Optional pre-built HTTP transport for remote providers.
            Ignored for providers that make no requests.

    Raises:
        ConfigError: Unknown provider id, missing settings, or settings of
            the wrong type for the provider.
    """
    try:
        provider = EnergyProvider(provider_id)
    except ValueError as e:
        raise ConfigError(
            f"Unknown energy provider: {provider_id!r}. "
            f"Expected one of: {', '.join(p.value for p in EnergyProvider)}",
            context={"field": "provider", "value": str(provider_id)},
        ) from e

    config_type, factory = _REGISTRY[provider]
    if settings is None:
        raise ConfigError(
            f"'{provider.value}' settings are required",
            context={"field": provider.value},
        )
    if not isinstance(settings, config_type):
        raise ConfigError(
            f"'{provider.value}' requires {config_type.__name__}, "
            f"got {type(settings).__name__}",
            context={"field": provider.value},
        )

    # Only remote providers hold a transport
    if client is not None and issubclass(factory, HttpPriceProvider):
        instance = factory(settings, client=client)
    else:
        instance = factory(settings)
    logger.debug("Constructed %s price provider", provider.value)
    return instance


def create_provider_from_config(config: TariffSyncConfig) -> PriceDataProvider:
    """Construct the provider selected by the root configuration."""
    return create_provider(config.provider, config.provider_settings)
