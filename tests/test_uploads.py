"""Tests for manual chart file uploads."""

from __future__ import annotations

import asyncio

import pytest
from conftest import build_csv, build_rows

from chart_intake.dates_cache import AvailableDatesCache
from chart_intake.models import ChartType, IngestionResult, IngestionScope
from chart_intake.policy import UploadAction
from chart_intake.store import UploadStatus
from chart_intake.uploads import UploadService, final_status

FILE_NAME = "regional-global-daily-2025-12-03.csv"


def upload(service, text, name=FILE_NAME, action=UploadAction.ASK, unattended=False):
    return asyncio.run(service.upload_file(name, text, action=action, unattended=unattended))


def count(store, region=None):
    return asyncio.run(store.count_scope(IngestionScope.create("2025-12-03", "regional", "daily", region)))


class TestUploadValidation:
    def test_rejects_non_csv(self, store):
        outcome = upload(UploadService(store), "rank\n", name="charts.xlsx")

        assert outcome.success is False
        assert outcome.error == "File must be a CSV file"

    def test_rejects_bad_filename(self, store):
        outcome = upload(UploadService(store), build_csv(build_rows(2)), name="charts.csv")

        assert outcome.success is False
        assert "Invalid filename format" in outcome.error
        assert asyncio.run(store.list_uploads()).total == 0

    def test_missing_headers_fail_the_upload_record(self, store):
        outcome = upload(UploadService(store), "rank,uri\n1,spotify:track:a\n")

        assert outcome.success is False
        assert outcome.status == UploadStatus.FAILED
        assert "Missing required headers" in outcome.error
        record = asyncio.run(store.get_upload(outcome.upload_id))
        assert record.status == UploadStatus.FAILED
        assert "Missing required headers" in record.error


class TestUploadIngestion:
    def test_fresh_upload_records_counts(self, store):
        text = build_csv(build_rows(12, artists=3)) + "13,,Nobody,Nothing,,,,,\n"

        outcome = upload(UploadService(store), text)

        assert outcome.success is True
        assert outcome.status == UploadStatus.SUCCESS
        assert outcome.records_processed == 12
        assert outcome.result.skipped_rows == 1
        record = asyncio.run(store.get_upload(outcome.upload_id))
        assert record.status == UploadStatus.SUCCESS
        assert record.records_processed == 12
        assert record.records_created == 12 + 12 + 3
        assert record.records_skipped == 1
        assert record.completed_at is not None
        assert count(store) == 12

    def test_viral_city_upload(self, store):
        text = build_csv(build_rows(4), chart_type=ChartType.VIRAL)

        outcome = upload(UploadService(store), text, name="viral-nyc-weekly-2025-11-27.csv")

        assert outcome.success is True
        record = asyncio.run(store.get_upload(outcome.upload_id))
        assert record.region == "nyc"
        assert str(record.region_type) == "city"

    def test_partial_failure_is_partial(self, failing_store_factory):
        store = failing_store_factory({"Track 00075"})

        outcome = upload(UploadService(store), build_csv(build_rows(120)))

        assert outcome.success is True
        assert outcome.status == UploadStatus.PARTIAL
        assert outcome.error == "Batch 50-100: Failed to create track Track 00075"
        assert asyncio.run(store.get_upload(outcome.upload_id)).status == UploadStatus.PARTIAL


class TestUploadDuplicates:
    def test_ask_reports_duplicate_without_writing(self, store):
        service = UploadService(store)
        upload(service, build_csv(build_rows(15)))

        outcome = upload(service, build_csv(build_rows(5, start=200)))

        assert outcome.success is False
        assert outcome.duplicate is True
        assert outcome.upload_id is None
        info = outcome.duplicate_info
        assert info.existing_entry_count == 15
        assert len(info.sample_entries) == 10
        assert info.sample_entries[0].position == 1
        assert outcome.to_dict()["duplicate_info"]["region"] is None
        assert count(store) == 15
        assert asyncio.run(store.list_uploads()).total == 1

    @pytest.mark.parametrize(
        "text, error",
        [
            ("rank,uri\n1,spotify:track:x\n", "Missing required headers"),
            ("rank,uri,artist_names,track_name,source,peak_rank,previous_rank,days_on_chart,streams\n", "header row"),
        ],
    )
    def test_malformed_replace_keeps_existing_scope(self, store, text, error):
        service = UploadService(store)
        upload(service, build_csv(build_rows(5)))

        outcome = upload(service, text, action="replace")

        assert outcome.success is False
        assert outcome.deleted == 0
        assert error in outcome.error
        assert asyncio.run(store.get_upload(outcome.upload_id)).status == UploadStatus.FAILED
        assert count(store) == 5

    def test_ask_unattended_replaces(self, store):
        service = UploadService(store)
        upload(service, build_csv(build_rows(15)))

        outcome = upload(service, build_csv(build_rows(5, start=200)), unattended=True)

        assert outcome.success is True
        assert outcome.deleted == 15
        assert count(store) == 5

    def test_skip_writes_nothing(self, store):
        service = UploadService(store)
        upload(service, build_csv(build_rows(15)))

        outcome = upload(service, build_csv(build_rows(5, start=200)), action="skip")

        assert outcome.success is True
        assert outcome.skipped is True
        assert count(store) == 15

    def test_update_keeps_existing_rows(self, store):
        service = UploadService(store)
        upload(service, build_csv(build_rows(10)))

        outcome = upload(service, build_csv(build_rows(10, start=6)), action=UploadAction.UPDATE)

        assert outcome.result.entries_updated == 5
        assert outcome.result.entries_created == 5
        assert count(store) == 15

    def test_other_region_is_not_a_duplicate(self, store):
        service = UploadService(store)
        upload(service, build_csv(build_rows(10)))

        outcome = upload(service, build_csv(build_rows(10)), name="regional-us-daily-2025-12-03.csv")

        assert outcome.duplicate is False
        assert count(store, "us") == 10

    def test_upload_invalidates_dates_cache(self, store):
        cache = AvailableDatesCache(store, ttl_seconds=300)
        asyncio.run(cache.get())

        upload(UploadService(store, dates_cache=cache), build_csv(build_rows(3)))

        assert cache.is_fresh is False


def test_upload_files_handles_each_file(store):
    service = UploadService(store)

    outcomes = asyncio.run(
        service.upload_files(
            [(FILE_NAME, build_csv(build_rows(3))), ("broken.csv", "rank\n")],
            action="replace",
        )
    )

    assert [o.success for o in outcomes] == [True, False]


@pytest.mark.parametrize(
    ("errors", "written", "status"),
    [
        ([], 0, UploadStatus.SUCCESS),
        (["Batch 0-50: boom"], 3, UploadStatus.PARTIAL),
        (["Batch 0-50: boom"], 0, UploadStatus.FAILED),
    ],
)
def test_final_status(errors, written, status):
    result = IngestionResult(entries_created=written, errors=errors)

    assert final_status(result) is status
