"""tariff_sync.core — Foundation types, config, and exceptions."""

from tariff_sync.core.config import (
    AwattarConfig,
    EnerginetConfig,
    FixedPriceConfig,
    HttpProviderConfig,
    OctopusConfig,
    ProviderConfig,
    SchedulerConfig,
    StorageConfig,
    TariffSyncConfig,
    TibberConfig,
    load_config,
)
from tariff_sync.core.exceptions import (
    ConfigError,
    InvalidArgumentError,
    ProviderError,
    TariffSyncError,
    UnauthorizedError,
    UpstreamUnavailableError,
)
from tariff_sync.core.models import (
    EnergyProvider,
    EnerginetDataset,
    FixedTariffEntry,
    PriceSegment,
    SchedulerState,
    TibberResolution,
    check_tariff_tiling,
)

__all__ = [
    # Enums
    "EnergyProvider",
    "EnerginetDataset",
    "SchedulerState",
    "TibberResolution",
    # Models
    "PriceSegment",
    "FixedTariffEntry",
    "check_tariff_tiling",
    # Config
    "TariffSyncConfig",
    "SchedulerConfig",
    "StorageConfig",
    "ProviderConfig",
    "HttpProviderConfig",
    "OctopusConfig",
    "TibberConfig",
    "FixedPriceConfig",
    "AwattarConfig",
    "EnerginetConfig",
    "load_config",
    # Exceptions
    "TariffSyncError",
    "ConfigError",
    "InvalidArgumentError",
    "ProviderError",
    "UpstreamUnavailableError",
    "UnauthorizedError",
]
