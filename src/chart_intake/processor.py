"""
Chart ingestion pipeline.

Rows are split into fixed-size batches that run one after another. Inside a
batch, artists and tracks are resolved and then entries are written. A batch
that raises is recorded in the result and the next batch still runs, so a
partial failure leaves earlier batches committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from chart_intake.batch import batch_iter
from chart_intake.dates_cache import AvailableDatesCache
from chart_intake.dedup import ConflictResolver, DuplicateChecker, ResolveOutcome
from chart_intake.models import (
    CanonicalRow,
    DuplicateCheck,
    DuplicatePolicy,
    IngestionResult,
    IngestionScope,
    ParsedChart,
    RegionType,
    SourceKind,
)
from chart_intake.regions import region_type as derive_region_type
from chart_intake.resolver import EntityResolver
from chart_intake.store.base import ChartStore
from chart_intake.writer import EntryWriter

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_FAN_OUT = 10


class ChartProcessor:
    """Runs resolve-then-write over a scope's rows, batch by batch."""

    def __init__(
        self,
        store: ChartStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        fan_out: int = DEFAULT_FAN_OUT,
    ):
        self.store = store
        self.batch_size = batch_size
        self.resolver = EntityResolver(store, fan_out=fan_out)
        self.writer = EntryWriter(store, fan_out=fan_out)

    async def ingest(
        self,
        rows: list[CanonicalRow],
        scope: IngestionScope,
        region_type: RegionType | None = None,
        run_id: str | None = None,
    ) -> IngestionResult:
        result = IngestionResult()
        logger.info(f"Processing {len(rows)} chart entries for {scope}")

        for start, batch in batch_iter(rows, self.batch_size):
            end = start + len(batch)
            try:
                logger.debug(f"Processing batch {start}-{end} of {len(rows)}")
                resolved = await self.resolver.resolve(batch, result)
                await self.writer.write(batch, resolved, scope, result, region_type, run_id)
            except Exception as e:
                logger.error(f"Error processing batch {start}-{end}: {e}")
                result.record_failure(f"Batch {start}-{end}: {e}")

        logger.info(
            f"Processing complete for {scope}: "
            f"artists={result.artists_created + result.artists_updated}, "
            f"tracks={result.tracks_created + result.tracks_updated}, "
            f"entries={result.entries_written}, errors={len(result.errors)}"
        )
        return result


async def process_chart_data(
    store: ChartStore,
    parsed: ParsedChart,
    region: str | None = None,
    region_type: RegionType | None = None,
    run_id: str | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    fan_out: int = DEFAULT_FAN_OUT,
) -> IngestionResult:
    """
    Ingest a parsed chart into the store.

    Args:
        store: Chart store
        parsed: Adapter output
        region: Region code; 'global', '' and None all mean the global chart
        region_type: country/city; derived from the region when omitted
        run_id: Upload or job id recorded on every written entry

    Returns:
        IngestionResult with counts and per-batch errors
    """
    scope = IngestionScope.create(parsed.date, parsed.chart_type, parsed.chart_period, region)
    if region_type is None:
        region_type = derive_region_type(scope.region)

    processor = ChartProcessor(store, batch_size=batch_size, fan_out=fan_out)
    result = await processor.ingest(parsed.rows, scope, region_type, run_id)
    result.skipped_rows = parsed.skipped_rows
    return result


@dataclass
class IngestOutcome:
    """Duplicate handling plus ingestion for one parsed chart."""

    scope: IngestionScope
    duplicate: DuplicateCheck
    resolution: ResolveOutcome
    result: IngestionResult | None = None

    @property
    def skipped(self) -> bool:
        return self.resolution.should_skip_ingestion


class ChartIngestor:
    """
    Checks a scope for duplicates, applies the policy, then ingests.

    Invalidates the available-dates cache whenever entries were written.
    """

    def __init__(
        self,
        store: ChartStore,
        dates_cache: AvailableDatesCache | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        fan_out: int = DEFAULT_FAN_OUT,
    ):
        self.store = store
        self.dates_cache = dates_cache
        self.batch_size = batch_size
        self.fan_out = fan_out
        self.checker = DuplicateChecker(store)
        self.conflicts = ConflictResolver(store)

    async def ingest_parsed(
        self,
        parsed: ParsedChart,
        region: str | None,
        policy: DuplicatePolicy,
        source_kind: SourceKind | None = None,
        run_id: str | None = None,
        region_type: RegionType | None = None,
    ) -> IngestOutcome:
        scope = IngestionScope.create(parsed.date, parsed.chart_type, parsed.chart_period, region)
        duplicate = await self.checker.check(scope)

        resolution = ResolveOutcome()
        if duplicate.exists:
            resolution = await self.conflicts.resolve(scope, policy)
            if resolution.should_skip_ingestion:
                logger.info(f"Skipped duplicate {source_kind or 'chart'} data for {scope}")
                return IngestOutcome(scope=scope, duplicate=duplicate, resolution=resolution)

        result = await process_chart_data(
            self.store,
            parsed,
            region=scope.region,
            region_type=region_type,
            run_id=run_id,
            batch_size=self.batch_size,
            fan_out=self.fan_out,
        )
        if (result.entries_written or resolution.deleted_count) and self.dates_cache:
            self.dates_cache.invalidate()

        return IngestOutcome(
            scope=scope, duplicate=duplicate, resolution=resolution, result=result
        )
