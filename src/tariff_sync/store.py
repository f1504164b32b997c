"""SQLite-backed price segment storage.

The downstream consumer of each scheduled update. Segments are keyed by
provider and start instant, so re-fetching an overlapping window replaces
rather than duplicates rows.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite

from tariff_sync.core.models import PriceSegment

logger = logging.getLogger(__name__)


@runtime_checkable
class PriceSink(Protocol):
    """Protocol for consumers of fetched price segments."""

    async def store_segments(self, provider: str, segments: list[PriceSegment]) -> int:
        """Persist segments. Returns count of rows upserted."""
        ...


def _to_key(value: datetime) -> str:
    # UTC ISO strings sort chronologically
    return value.astimezone(timezone.utc).isoformat()


class SqliteSegmentStore:
    """SQLite-backed implementation of PriceSink.

    Parameters
    ----------
    db_path : str
        Path to the SQLite database file.
        Created automatically if it doesn't exist.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._initialized = False

    async def _ensure_table(self) -> None:
        """Create the price_segments table if it doesn't exist."""
        if self._initialized:
            return

        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute(
                """CREATE TABLE IF NOT EXISTS price_segments (
                    provider TEXT NOT NULL,
                    valid_from TEXT NOT NULL,
                    valid_to TEXT NOT NULL,
                    value TEXT NOT NULL,
                    fetched_at TEXT NOT NULL,
                    PRIMARY KEY (provider, valid_from)
                )"""
            )
            await db.commit()
        self._initialized = True

    async def store_segments(self, provider: str, segments: list[PriceSegment]) -> int:
        """Store segments with upsert semantics (replace on conflict)."""
        if not segments:
            return 0

        await self._ensure_table()

        fetched_at = datetime.now(timezone.utc).isoformat()
        rows = [
            (
                provider,
                _to_key(segment.valid_from),
                _to_key(segment.valid_to),
                str(segment.value),
                fetched_at,
            )
            for segment in segments
        ]
        async with aiosqlite.connect(self._db_path) as db:
            await db.executemany(
                """INSERT OR REPLACE INTO price_segments
                   (provider, valid_from, valid_to, value, fetched_at)
                   VALUES (?, ?, ?, ?, ?)""",
                rows,
            )
            await db.commit()

        logger.info("Stored %d price segments from %s", len(segments), provider)
        return len(segments)

    async def get_segments(
        self, provider: str, start: datetime, end: datetime
    ) -> list[PriceSegment]:
        """Retrieve stored segments overlapping ``[start, end)``, ordered by start."""
        await self._ensure_table()

        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                """SELECT valid_from, valid_to, value
                   FROM price_segments
                   WHERE provider = ? AND valid_to > ? AND valid_from < ?
                   ORDER BY valid_from""",
                (provider, _to_key(start), _to_key(end)),
            )
            rows = await cursor.fetchall()

        return [
            PriceSegment(
                valid_from=datetime.fromisoformat(row[0]),
                valid_to=datetime.fromisoformat(row[1]),
                value=Decimal(row[2]),
            )
            for row in rows
        ]
