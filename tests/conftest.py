"""Shared pytest fixtures for tariff-sync."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from tariff_sync.core.config import (
    AwattarConfig,
    EnerginetConfig,
    FixedPriceConfig,
    OctopusConfig,
    TibberConfig,
)
from tariff_sync.core.models import PriceSegment

CET = timezone(timedelta(hours=1))


def _assert_covers(segments: list[PriceSegment], start: datetime, end: datetime) -> None:
    """Assert ordering, non-overlap, no gaps, and full coverage of [start, end)."""
    assert segments, "expected at least one segment"
    for previous, current in zip(segments, segments[1:]):
        assert previous.valid_from < current.valid_from
        assert previous.valid_to == current.valid_from
    assert segments[0].valid_from <= start
    assert segments[-1].valid_to >= end


@pytest.fixture
def fixed_price_config() -> FixedPriceConfig:
    return FixedPriceConfig(
        time_zone="Europe/Berlin",
        prices=["00:00-12:00=0.25", "12:00-00:00=0.50"],
    )


@pytest.fixture
def octopus_config() -> OctopusConfig:
    return OctopusConfig(
        product_code="AGILE-FLEX-22-11-25",
        tariff_code="E-1R-AGILE-FLEX-22-11-25-C",
        vat_multiplier=Decimal("1.05"),
    )


@pytest.fixture
def tibber_config() -> TibberConfig:
    return TibberConfig(access_token="test-token")


@pytest.fixture
def awattar_config() -> AwattarConfig:
    return AwattarConfig(vat_multiplier=Decimal("1.2"))


@pytest.fixture
def energinet_config() -> EnerginetConfig:
    return EnerginetConfig(region="DK1", currency="DKK", vat_multiplier=Decimal("1.25"))


@pytest.fixture
def sample_segments() -> list[PriceSegment]:
    base = datetime(2022, 2, 20, 0, 0, tzinfo=timezone.utc)
    return [
        PriceSegment(
            valid_from=base + timedelta(hours=i),
            valid_to=base + timedelta(hours=i + 1),
            value=Decimal("0.10") + Decimal(i) / 100,
        )
        for i in range(3)
    ]


@pytest.fixture
def assert_covers():
    """The segment timeline contract as a reusable assertion."""
    return _assert_covers
