from __future__ import annotations

import logging

from chart_intake.batch import run_bounded
from chart_intake.errors import UniqueViolationError
from chart_intake.models import (
    PLATFORM,
    CanonicalRow,
    ChartEntryRecord,
    EntryKey,
    IngestionResult,
    IngestionScope,
    RegionType,
)
from chart_intake.resolver import ResolvedEntities
from chart_intake.store.base import ChartStore

logger = logging.getLogger(__name__)


def build_entry_record(
    row: CanonicalRow,
    track_id: str,
    artist_id: str,
    scope: IngestionScope,
    region_type: RegionType | None = None,
    run_id: str | None = None,
) -> ChartEntryRecord:
    """Build the stored form of a row inside a scope."""
    key = EntryKey(
        track_id=track_id,
        artist_id=artist_id,
        date=scope.date,
        chart_type=scope.chart_type,
        chart_period=scope.chart_period,
        region=scope.region,
        platform=PLATFORM,
    )
    return ChartEntryRecord(
        key=key,
        position=row.rank,
        region_type=region_type,
        source=row.source,
        peak_rank=row.peak_rank,
        previous_rank=row.previous_rank,
        days_on_chart=row.days_on_chart,
        streams=row.streams,
        run_id=run_id,
    )


class EntryWriter:
    """Creates or updates chart entries keyed by their identity key."""

    def __init__(self, store: ChartStore, fan_out: int = 10):
        self.store = store
        self.fan_out = fan_out

    async def write(
        self,
        rows: list[CanonicalRow],
        resolved: ResolvedEntities,
        scope: IngestionScope,
        result: IngestionResult,
        region_type: RegionType | None = None,
        run_id: str | None = None,
    ) -> None:
        async def write_row(row: CanonicalRow) -> None:
            ref = resolved.tracks[row.uri]
            record = build_entry_record(row, ref.track_id, ref.artist_id, scope, region_type, run_id)
            await self._upsert(record, result)

        await run_bounded(rows, write_row, self.fan_out)

    async def _upsert(self, record: ChartEntryRecord, result: IngestionResult) -> None:
        entry_id = await self.store.find_entry(record.key)
        if entry_id is None:
            try:
                await self.store.insert_entry(record)
                result.entries_created += 1
                return
            except UniqueViolationError:
                entry_id = await self.store.find_entry(record.key)
                if entry_id is None:
                    raise
                logger.debug(f"Entry for track {record.key.track_id} inserted concurrently; updating")

        await self.store.update_entry(entry_id, record)
        result.entries_updated += 1
