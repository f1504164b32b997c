"""Tests for tariff_sync.core.models."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from tariff_sync.core.models import (
    EnergyProvider,
    FixedTariffEntry,
    PriceSegment,
    SchedulerState,
    check_tariff_tiling,
)

UTC = timezone.utc


class TestPriceSegment:
    def test_valid_construction(self):
        seg = PriceSegment(
            valid_from=datetime(2022, 2, 20, 0, tzinfo=UTC),
            valid_to=datetime(2022, 2, 20, 1, tzinfo=UTC),
            value=Decimal("0.25"),
        )
        assert seg.value == Decimal("0.25")

    def test_from_must_precede_to(self):
        at = datetime(2022, 2, 20, tzinfo=UTC)
        with pytest.raises(ValidationError, match="must be before valid_to"):
            PriceSegment(valid_from=at, valid_to=at, value=Decimal("1"))

    def test_naive_timestamps_rejected(self):
        with pytest.raises(ValidationError, match="timezone-aware"):
            PriceSegment(
                valid_from=datetime(2022, 2, 20, 0),
                valid_to=datetime(2022, 2, 20, 1),
                value=Decimal("1"),
            )

    def test_frozen(self):
        seg = PriceSegment(
            valid_from=datetime(2022, 2, 20, 0, tzinfo=UTC),
            valid_to=datetime(2022, 2, 20, 1, tzinfo=UTC),
            value=Decimal("1"),
        )
        with pytest.raises(ValidationError):
            seg.value = Decimal("2")

    def test_overlaps_is_half_open(self):
        seg = PriceSegment(
            valid_from=datetime(2022, 2, 20, 0, tzinfo=UTC),
            valid_to=datetime(2022, 2, 20, 1, tzinfo=UTC),
            value=Decimal("1"),
        )
        assert seg.overlaps(datetime(2022, 2, 20, 0, 30, tzinfo=UTC), datetime(2022, 2, 20, 2, tzinfo=UTC))
        assert not seg.overlaps(datetime(2022, 2, 20, 1, tzinfo=UTC), datetime(2022, 2, 20, 2, tzinfo=UTC))
        assert not seg.overlaps(datetime(2022, 2, 19, 23, tzinfo=UTC), datetime(2022, 2, 20, 0, tzinfo=UTC))

    def test_mixed_offsets_compare_as_instants(self):
        cet = timezone(timedelta(hours=1))
        seg = PriceSegment(
            valid_from=datetime(2022, 2, 20, 1, tzinfo=cet),
            valid_to=datetime(2022, 2, 20, 1, tzinfo=UTC),
            value=Decimal("1"),
        )
        assert seg.valid_to - seg.valid_from == timedelta(hours=1)


class TestFixedTariffEntry:
    def test_parse(self):
        entry = FixedTariffEntry.parse("00:00-12:00=0.25")
        assert entry.start == time(0, 0)
        assert entry.end == time(12, 0)
        assert entry.price == Decimal("0.25")
        assert entry.duration_minutes == 720
        assert not entry.wraps_midnight

    def test_parse_wrapping_row(self):
        entry = FixedTariffEntry.parse("22:30-06:00=0.1")
        assert entry.wraps_midnight
        assert entry.duration_minutes == 7 * 60 + 30

    def test_parse_end_of_day_as_midnight(self):
        entry = FixedTariffEntry.parse("12:00-24:00=0.5")
        assert entry.end == time(0, 0)
        assert entry.duration_minutes == 720

    def test_same_start_and_end_is_whole_day(self):
        entry = FixedTariffEntry.parse("07:00-07:00=0.3")
        assert entry.duration_minutes == 24 * 60

    def test_parse_tolerates_whitespace(self):
        entry = FixedTariffEntry.parse(" 06:00 - 07:00 = 0.125 ")
        assert entry.price == Decimal("0.125")

    @pytest.mark.parametrize(
        "row",
        ["", "0000-1200=0.25", "00:00-12:00", "00:00-12:00=abc", "25:00-12:00=1", "00:00-12:61=1"],
    )
    def test_parse_rejects_malformed(self, row):
        with pytest.raises(ValueError):
            FixedTariffEntry.parse(row)


class TestTariffTiling:
    def test_two_rows_tile(self):
        rows = [FixedTariffEntry.parse("12:00-00:00=0.5"), FixedTariffEntry.parse("00:00-12:00=0.25")]
        ordered = check_tariff_tiling(rows)
        assert [r.start for r in ordered] == [time(0), time(12)]

    def test_single_whole_day_row(self):
        assert len(check_tariff_tiling([FixedTariffEntry.parse("00:00-00:00=0.3")])) == 1

    def test_wrapping_rows_tile(self):
        rows = [
            FixedTariffEntry.parse("07:00-23:00=0.4"),
            FixedTariffEntry.parse("23:00-07:00=0.1"),
        ]
        assert len(check_tariff_tiling(rows)) == 2

    def test_gap_rejected(self):
        rows = [FixedTariffEntry.parse("00:00-11:00=0.25"), FixedTariffEntry.parse("12:00-00:00=0.5")]
        with pytest.raises(ValueError, match="gap"):
            check_tariff_tiling(rows)

    def test_overlap_rejected(self):
        rows = [FixedTariffEntry.parse("00:00-13:00=0.25"), FixedTariffEntry.parse("12:00-00:00=0.5")]
        with pytest.raises(ValueError, match="overlap"):
            check_tariff_tiling(rows)

    def test_empty_rejected(self):
        with pytest.raises(ValueError, match="at least one row"):
            check_tariff_tiling([])


class TestEnums:
    def test_provider_values(self):
        assert EnergyProvider("fixed_price") is EnergyProvider.FIXED_PRICE
        assert {p.value for p in EnergyProvider} == {
            "octopus", "tibber", "fixed_price", "awattar", "energinet",
        }

    def test_scheduler_states(self):
        assert [s.value for s in SchedulerState] == [
            "not_started", "running", "stopping", "stopped",
        ]
