"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

import re
from datetime import datetime, time
from decimal import Decimal, InvalidOperation
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

MINUTES_PER_DAY = 24 * 60

_TARIFF_ROW_RE = re.compile(
    r"^\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*=\s*(\S+)\s*$"
)

# --- Enumerations ---


class EnergyProvider(StrEnum):
    """Price data providers selectable by configuration."""

    OCTOPUS = "octopus"
    TIBBER = "tibber"
    FIXED_PRICE = "fixed_price"
    AWATTAR = "awattar"
    ENERGINET = "energinet"


class TibberResolution(StrEnum):
    """Price granularity requested from the Tibber API."""

    HOURLY = "HOURLY"
    QUARTER_HOURLY = "QUARTER_HOURLY"


class EnerginetDataset(StrEnum):
    """Energi Data Service datasets carrying day-ahead spot prices."""

    ELSPOTPRICES = "Elspotprices"
    DAY_AHEAD_PRICES = "DayAheadPrices"


class SchedulerState(StrEnum):
    """Lifecycle of the price scheduler."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


# --- Price Models ---


class PriceSegment(BaseModel):
    """A half-open interval ``[valid_from, valid_to)`` with a constant price.

    Every provider produces data in this format. ``value`` is per kWh in the
    provider's configured currency, with its VAT multiplier applied.
    """

    model_config = ConfigDict(frozen=True)

    valid_from: datetime
    valid_to: datetime
    value: Decimal

    @field_validator("valid_from", "valid_to")
    @classmethod
    def must_be_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError("price segment timestamps must be timezone-aware")
        return v

    @model_validator(mode="after")
    def from_before_to(self) -> PriceSegment:
        if self.valid_from >= self.valid_to:
            raise ValueError(
                f"valid_from ({self.valid_from}) must be before valid_to ({self.valid_to})"
            )
        return self

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """True if this segment shares any instant with ``[start, end)``."""
        return self.valid_from < end and self.valid_to > start


class FixedTariffEntry(BaseModel):
    """One row of a recurring daily tariff table.

    ``end <= start`` wraps past midnight; ``end == start`` covers the whole day.
    """

    model_config = ConfigDict(frozen=True)

    start: time
    end: time
    price: Decimal

    @field_validator("start", "end")
    @classmethod
    def minute_resolution(cls, v: time) -> time:
        if v.second or v.microsecond or v.tzinfo is not None:
            raise ValueError(f"tariff boundaries must be whole minutes, got {v}")
        return v

    @classmethod
    def parse(cls, row: str) -> FixedTariffEntry:
        """Parse a ``"HH:MM-HH:MM=price"`` row."""
        match = _TARIFF_ROW_RE.match(row)
        if match is None:
            raise ValueError(f"tariff row must look like 'HH:MM-HH:MM=price', got {row!r}")
        sh, sm, eh, em, raw_price = match.groups()
        try:
            price = Decimal(raw_price)
        except InvalidOperation as e:
            raise ValueError(f"invalid price in tariff row {row!r}") from e
        # "24:00" is accepted as an alias for midnight at the end of a row
        if (eh, em) == ("24", "00"):
            eh = "0"
        try:
            start = time(int(sh), int(sm))
            end = time(int(eh), int(em))
        except ValueError as e:
            raise ValueError(f"invalid time in tariff row {row!r}: {e}") from e
        return cls(start=start, end=end, price=price)

    @property
    def start_minute(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def duration_minutes(self) -> int:
        end_minute = self.end.hour * 60 + self.end.minute
        return (end_minute - self.start_minute) % MINUTES_PER_DAY or MINUTES_PER_DAY

    @property
    def wraps_midnight(self) -> bool:
        return self.end <= self.start


def check_tariff_tiling(entries: list[FixedTariffEntry]) -> list[FixedTariffEntry]:
    """Verify that tariff rows tile 24 hours exactly and return them sorted.

    Raises ValueError naming the first gap or overlap found.
    """
    if not entries:
        raise ValueError("tariff table must contain at least one row")

    ordered = sorted(entries, key=lambda e: e.start_minute)
    total = sum(e.duration_minutes for e in ordered)

    for current, following in zip(ordered, ordered[1:] + ordered[:1]):
        end_minute = (current.start_minute + current.duration_minutes) % MINUTES_PER_DAY
        if end_minute != following.start_minute:
            kind = "a gap" if total < MINUTES_PER_DAY else "an overlap"
            raise ValueError(
                f"tariff table has {kind} between {current.end:%H:%M} "
                f"and {following.start:%H:%M}"
            )

    if total != MINUTES_PER_DAY:
        raise ValueError(
            f"tariff table covers {total} minutes, expected {MINUTES_PER_DAY}"
        )
    return ordered
