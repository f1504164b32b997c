"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from tariff_sync.core.exceptions import ConfigError
from tariff_sync.core.models import (
    EnergyProvider,
    EnerginetDataset,
    FixedTariffEntry,
    TibberResolution,
    check_tariff_tiling,
)


class ProviderConfig(BaseModel):
    """Settings shared by every price data provider."""

    model_config = ConfigDict(frozen=True)

    currency: str = "EUR"
    vat_multiplier: Decimal = Decimal("1")

    @field_validator("currency")
    @classmethod
    def currency_is_iso_code(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f"currency must be a 3-letter ISO code, got {v!r}")
        return v

    @field_validator("vat_multiplier")
    @classmethod
    def vat_multiplier_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("vat_multiplier must be > 0")
        return v


class HttpProviderConfig(ProviderConfig):
    """Settings for providers backed by a remote HTTP API."""

    base_url: str
    request_timeout: int = 30
    rate_limit: int = 5

    @field_validator("base_url")
    @classmethod
    def base_url_is_http(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        # Relative request paths are joined onto the base URL
        if not v.endswith("/"):
            v += "/"
        return v

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("request_timeout must be >= 1")
        return v

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limit must be >= 1")
        return v


class OctopusConfig(HttpProviderConfig):
    """Octopus Energy time-of-use tariff (e.g. Agile)."""

    base_url: str = "https://api.octopus.energy/v1/"
    product_code: str
    tariff_code: str
    currency: str = "GBP"
    vat_multiplier: Decimal = Decimal("1.05")


class TibberConfig(HttpProviderConfig):
    """Tibber GraphQL API."""

    base_url: str = "https://api.tibber.com/v1-beta/gql"
    access_token: str
    home_id: str | None = None
    resolution: TibberResolution = TibberResolution.HOURLY

    @field_validator("access_token", mode="before")
    @classmethod
    def access_token_present(cls, v: Any) -> str:
        v = "" if v is None else str(v).strip()
        if not v:
            raise ValueError("access_token must not be empty")
        return v


class FixedPriceConfig(ProviderConfig):
    """Recurring daily tariff table in a local time zone."""

    time_zone: str
    prices: list[FixedTariffEntry]

    @field_validator("time_zone")
    @classmethod
    def time_zone_exists(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown time zone {v!r}") from e
        return v

    @field_validator("prices", mode="before")
    @classmethod
    def parse_tariff_rows(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = [row for row in v.split(",") if row.strip()]
        if isinstance(v, list):
            return [FixedTariffEntry.parse(row) if isinstance(row, str) else row for row in v]
        return v

    @field_validator("prices")
    @classmethod
    def prices_tile_the_day(cls, v: list[FixedTariffEntry]) -> list[FixedTariffEntry]:
        return check_tariff_tiling(v)

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)


class AwattarConfig(HttpProviderConfig):
    """aWATTar day-ahead market prices (EUR/MWh)."""

    base_url: str = "https://api.awattar.de/v1/"


class EnerginetConfig(HttpProviderConfig):
    """Energi Data Service day-ahead spot prices for the Danish price areas."""

    base_url: str = "https://api.energidataservice.dk/dataset/"
    region: str = "DK1"
    currency: str = "DKK"
    vat_multiplier: Decimal = Decimal("1.25")
    dataset: EnerginetDataset = EnerginetDataset.ELSPOTPRICES
    fixed_prices: FixedPriceConfig | None = None

    @field_validator("region")
    @classmethod
    def region_is_price_area(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("DK1", "DK2"):
            raise ValueError(f"region must be 'DK1' or 'DK2', got {v!r}")
        return v

    @model_validator(mode="after")
    def currency_is_published(self) -> EnerginetConfig:
        if self.currency not in ("DKK", "EUR"):
            raise ValueError(f"currency must be 'DKK' or 'EUR', got {self.currency!r}")
        return self


class SchedulerConfig(BaseModel):
    """Periodic update settings."""

    model_config = ConfigDict(frozen=True)

    update_interval_seconds: int = 300
    lookback_hours: int = 24

    @field_validator("update_interval_seconds")
    @classmethod
    def interval_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("update_interval_seconds must be >= 1")
        return v

    @field_validator("lookback_hours")
    @classmethod
    def lookback_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("lookback_hours must be >= 1")
        return v


class StorageConfig(BaseModel):
    """Price segment store configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/tariff_sync.db"


class TariffSyncConfig(BaseModel):
    """Root configuration for the entire tariff-sync system."""

    model_config = ConfigDict(frozen=True)

    provider: EnergyProvider = EnergyProvider.OCTOPUS
    log_level: str = "INFO"
    scheduler: SchedulerConfig = SchedulerConfig()
    storage: StorageConfig = StorageConfig()
    octopus: OctopusConfig | None = None
    tibber: TibberConfig | None = None
    fixed_price: FixedPriceConfig | None = None
    awattar: AwattarConfig | None = None
    energinet: EnerginetConfig | None = None

    @field_validator("log_level")
    @classmethod
    def log_level_known(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log_level {v!r}")
        return v

    @model_validator(mode="after")
    def selected_provider_configured(self) -> TariffSyncConfig:
        if self.provider_settings is None:
            raise ValueError(
                f"'{self.provider.value}' settings are required when provider is "
                f"'{self.provider.value}'"
            )
        return self

    @property
    def provider_settings(self) -> ProviderConfig | None:
        """The settings block belonging to the selected provider."""
        return getattr(self, self.provider.value)


_DEFAULT_CONFIG_FILE = "tariff-sync.yml"
_CONFIG_PATH_ENV = "TARIFF_SYNC_CONFIG"

# Env values for these keys are taken verbatim: tokens and tariff codes can
# look numeric or boolean
_VERBATIM_KEYS = frozenset({"access_token", "home_id", "product_code", "tariff_code", "time_zone"})
# Env values for these keys are comma-separated lists
_LIST_KEYS = frozenset({"prices"})


def load_config(
    config_path: str | None = None,
    env_prefix: str = "TARIFF_SYNC_",
) -> TariffSyncConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (TARIFF_SYNC_TIBBER__ACCESS_TOKEN, etc.)
    2. YAML file: ``config_path``, else $TARIFF_SYNC_CONFIG, else
       ./tariff-sync.yml if present
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        TARIFF_SYNC_SCHEDULER__UPDATE_INTERVAL_SECONDS=60
            ->  scheduler.update_interval_seconds = 60
        TARIFF_SYNC_FIXED_PRICE__PRICES=00:00-12:00=0.25,12:00-00:00=0.5
            ->  fixed_price.prices = ["00:00-12:00=0.25", "12:00-00:00=0.5"]

    Raises:
        ConfigError: Missing or unparseable file, or a settings value that
            fails validation. ``context["source"]`` is ``"load_config"`` for
            validation failures.
    """
    try:
        settings = _read_settings_file(_find_settings_file(config_path))
        settings = _apply_env_overrides(settings, env_prefix)
        return TariffSyncConfig.model_validate(settings)
    except ConfigError:
        raise
    except Exception as e:
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _find_settings_file(explicit: str | None) -> Path | None:
    """Pick the YAML file to load, or None when running on env and defaults."""
    if explicit is not None:
        candidate, origin = explicit, "config_path"
    elif os.environ.get(_CONFIG_PATH_ENV):
        candidate, origin = os.environ[_CONFIG_PATH_ENV], _CONFIG_PATH_ENV
    else:
        default = Path(_DEFAULT_CONFIG_FILE)
        return default if default.is_file() else None

    path = Path(candidate)
    if not path.is_file():
        raise ConfigError(
            f"Config file not found: {candidate} (from {origin})",
            context={"field": origin, "value": candidate},
        )
    return path


def _read_settings_file(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"YAML config must be a mapping, got {type(data).__name__}",
            context={"field": "config_file", "value": str(path)},
        )
    return data


def _apply_env_overrides(settings: dict[str, Any], prefix: str) -> dict[str, Any]:
    """Return a copy of ``settings`` with ``<prefix>A__B=value`` set at a.b."""
    result = dict(settings)
    for name, raw in os.environ.items():
        if not name.startswith(prefix):
            continue
        path = name[len(prefix) :].lower().split("__")
        if path == ["config"]:
            continue

        section = result
        for key in path[:-1]:
            # A YAML scalar or null at this key is replaced by a mapping
            if not isinstance(section.get(key), dict):
                section[key] = {}
            else:
                section[key] = dict(section[key])
            section = section[key]
        section[path[-1]] = _env_value(path[-1], raw)
    return result


def _env_value(key: str, raw: str) -> Any:
    """Convert one environment string according to the key it sets."""
    if key in _VERBATIM_KEYS:
        return raw
    if key in _LIST_KEYS:
        return [item.strip() for item in raw.split(",") if item.strip()]
    return _auto_cast(raw)


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value
