"""
Manual chart file uploads.

Each file's name carries its scope (see ``chart_intake.regions``). With the
'ask' action an attended upload that hits an existing scope writes nothing
and returns a duplicate report so a human can pick skip/update/replace.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from chart_intake.dates_cache import AvailableDatesCache
from chart_intake.dedup import ConflictResolver, DuplicateChecker
from chart_intake.errors import ChartIntakeError, FormatError
from chart_intake.models import IngestionResult, IngestionScope
from chart_intake.policy import UploadAction, to_duplicate_policy
from chart_intake.processor import DEFAULT_BATCH_SIZE, DEFAULT_FAN_OUT, process_chart_data
from chart_intake.regions import ChartFileInfo, parse_chart_filename
from chart_intake.sources.flatfile import parse_flatfile
from chart_intake.store.base import ChartStore, StoredEntry, UploadRecord, UploadStatus

logger = logging.getLogger(__name__)

DUPLICATE_SAMPLE_SIZE = 10


@dataclass
class DuplicateReport:
    """What an upload would overwrite."""

    scope: IngestionScope
    existing_entry_count: int
    sample_entries: list[StoredEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.scope.date,
            "chart_type": str(self.scope.chart_type),
            "chart_period": str(self.scope.chart_period),
            "region": self.scope.region,
            "existing_entry_count": self.existing_entry_count,
            "sample_entries": [
                {"position": e.position, "track_name": e.track_name, "artist_name": e.artist_name}
                for e in self.sample_entries
            ],
        }


@dataclass
class UploadOutcome:
    """Result of uploading one chart file."""

    file_name: str
    success: bool
    upload_id: str | None = None
    status: UploadStatus | None = None
    records_processed: int = 0
    result: IngestionResult | None = None
    duplicate: bool = False
    duplicate_info: DuplicateReport | None = None
    skipped: bool = False
    deleted: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_name": self.file_name,
            "success": self.success,
            "upload_id": self.upload_id,
            "status": str(self.status) if self.status else None,
            "records_processed": self.records_processed,
            "result": self.result.to_dict() if self.result else None,
            "duplicate": self.duplicate,
            "duplicate_info": self.duplicate_info.to_dict() if self.duplicate_info else None,
            "skipped": self.skipped,
            "deleted": self.deleted,
            "error": self.error,
        }


def final_status(result: IngestionResult) -> UploadStatus:
    """success when nothing failed, partial when some entries landed, else failed."""
    if not result.errors:
        return UploadStatus.SUCCESS
    if result.entries_written:
        return UploadStatus.PARTIAL
    return UploadStatus.FAILED


class UploadService:
    """Validates, deduplicates, ingests and records uploaded chart files."""

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

    async def upload_file(
        self,
        file_name: str,
        text: str,
        action: UploadAction | str = UploadAction.ASK,
        unattended: bool = False,
    ) -> UploadOutcome:
        """
        Upload one chart CSV.

        Args:
            file_name: ``{chartType}-{region}-{period}-{date}.csv``
            text: File contents
            action: Duplicate action; 'ask' reports duplicates instead of writing
            unattended: Resolve 'ask' without a human

        Returns:
            UploadOutcome; validation problems are reported, not raised
        """
        if not file_name.endswith(".csv"):
            return UploadOutcome(file_name=file_name, success=False, error="File must be a CSV file")

        try:
            info = parse_chart_filename(file_name)
        except ChartIntakeError as e:
            return UploadOutcome(file_name=file_name, success=False, error=str(e))

        action = UploadAction(action)

        # Parse before touching the store so a malformed file never deletes a scope
        try:
            parsed = parse_flatfile(text, info.chart_type, info.chart_period, info.date)
        except FormatError as e:
            logger.error(f"Upload {file_name} rejected: {e}")
            upload_id = await self._record_upload(file_name, info)
            await self.store.finish_upload(upload_id, UploadStatus.FAILED, error=str(e))
            return UploadOutcome(
                file_name=file_name,
                success=False,
                upload_id=upload_id,
                status=UploadStatus.FAILED,
                error=str(e),
            )
        logger.info(f"Parsed {len(parsed.rows)} rows from {file_name}")

        scope = IngestionScope.create(info.date, info.chart_type, info.chart_period, info.region)
        duplicate = await self.checker.check(scope)

        if duplicate.exists and action is UploadAction.ASK and not unattended:
            sample = await self.store.list_scope_entries(scope, limit=DUPLICATE_SAMPLE_SIZE)
            report = DuplicateReport(scope, duplicate.count, sample)
            return UploadOutcome(
                file_name=file_name,
                success=False,
                duplicate=True,
                duplicate_info=report,
                error=(
                    f"Duplicate entries found. {duplicate.count} existing entries for this "
                    "date/chart combination will be overwritten if you proceed."
                ),
            )

        # Past this point 'ask' has nothing left to ask
        policy = to_duplicate_policy(action, unattended=True)
        deleted = 0
        if duplicate.exists:
            resolution = await self.conflicts.resolve(scope, policy)
            deleted = resolution.deleted_count
            if resolution.should_skip_ingestion:
                return UploadOutcome(file_name=file_name, success=True, skipped=True)

        upload_id = await self._record_upload(file_name, info)

        try:
            result = await process_chart_data(
                self.store,
                parsed,
                region=info.region,
                region_type=info.region_type,
                run_id=upload_id,
                batch_size=self.batch_size,
                fan_out=self.fan_out,
            )
        except Exception as e:
            logger.error(f"Upload {file_name} failed: {e}")
            await self.store.finish_upload(upload_id, UploadStatus.FAILED, error=str(e))
            if deleted and self.dates_cache:
                self.dates_cache.invalidate()
            return UploadOutcome(
                file_name=file_name,
                success=False,
                upload_id=upload_id,
                status=UploadStatus.FAILED,
                deleted=deleted,
                error=str(e),
            )

        status = final_status(result)
        if (result.entries_written or deleted) and self.dates_cache:
            self.dates_cache.invalidate()

        await self.store.finish_upload(
            upload_id,
            status,
            records_processed=len(parsed.rows),
            records_created=result.entries_created + result.artists_created + result.tracks_created,
            records_updated=result.entries_updated + result.artists_updated + result.tracks_updated,
            records_skipped=result.skipped_rows,
            error="; ".join(result.errors) or None,
        )

        return UploadOutcome(
            file_name=file_name,
            success=status is not UploadStatus.FAILED,
            upload_id=upload_id,
            status=status,
            records_processed=len(parsed.rows),
            result=result,
            deleted=deleted,
            error="; ".join(result.errors) or None,
        )

    async def _record_upload(self, file_name: str, info: ChartFileInfo) -> str:
        upload_id = str(uuid.uuid4())
        await self.store.create_upload(
            UploadRecord(
                id=upload_id,
                file_name=file_name,
                chart_type=info.chart_type,
                chart_period=info.chart_period,
                date=info.date,
                region=info.region,
                region_type=info.region_type,
                uploaded_at=time.time(),
            )
        )
        return upload_id

    async def upload_files(
        self,
        files: list[tuple[str, str]],
        action: UploadAction | str = UploadAction.ASK,
        unattended: bool = False,
    ) -> list[UploadOutcome]:
        """Upload several (file name, text) pairs; each file succeeds or fails on its own."""
        return [
            await self.upload_file(name, text, action=action, unattended=unattended)
            for name, text in files
        ]
