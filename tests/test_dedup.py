"""Tests for duplicate scope detection and conflict resolution."""

from __future__ import annotations

import asyncio

import pytest
from conftest import build_parsed, build_rows

from chart_intake.dedup import ConflictResolver, DuplicateChecker, check_duplicates, handle_duplicates
from chart_intake.models import DuplicatePolicy, IngestionScope
from chart_intake.processor import process_chart_data

DATE = "2025-12-03"


def seed(store, count=5, region=None, date=DATE, chart_type="regional"):
    parsed = build_parsed(build_rows(count), date=date)
    parsed.chart_type = chart_type
    return asyncio.run(process_chart_data(store, parsed, region=region))


class TestDuplicateChecker:
    def test_empty_scope(self, store):
        scope = IngestionScope.create(DATE, "regional", "daily")

        check = asyncio.run(DuplicateChecker(store).check(scope))

        assert check.exists is False
        assert check.count == 0

    def test_counts_existing_entries(self, store):
        seed(store, count=5)

        check = asyncio.run(check_duplicates(store, DATE, "regional", "daily", "global"))

        assert check.exists is True
        assert check.count == 5

    def test_global_does_not_match_regions(self, store):
        seed(store, count=4, region="us")

        global_check = asyncio.run(check_duplicates(store, DATE, "regional", "daily", None))
        us_check = asyncio.run(check_duplicates(store, DATE, "regional", "daily", "us"))

        assert global_check.exists is False
        assert us_check.count == 4

    def test_other_fields_scope_the_count(self, store):
        seed(store, count=3)

        assert not asyncio.run(check_duplicates(store, "2025-12-04", "regional", "daily", None)).exists
        assert not asyncio.run(check_duplicates(store, DATE, "viral", "daily", None)).exists
        assert not asyncio.run(check_duplicates(store, DATE, "regional", "weekly", None)).exists


class TestConflictResolver:
    def test_skip_on_existing_scope(self, store):
        seed(store, count=3)
        scope = IngestionScope.create(DATE, "regional", "daily")

        outcome = asyncio.run(ConflictResolver(store).resolve(scope, DuplicatePolicy.SKIP))

        assert outcome.should_skip_ingestion is True
        assert outcome.deleted_count == 0
        assert asyncio.run(store.count_scope(scope)) == 3

    def test_skip_on_empty_scope_proceeds(self, store):
        scope = IngestionScope.create(DATE, "regional", "daily")

        outcome = asyncio.run(ConflictResolver(store).resolve(scope, DuplicatePolicy.SKIP))

        assert outcome.should_skip_ingestion is False

    def test_replace_deletes_only_its_scope(self, store):
        seed(store, count=3)
        seed(store, count=2, region="us")
        seed(store, count=2, date="2025-12-04")

        result = asyncio.run(
            handle_duplicates(store, DATE, "regional", "daily", "global", DuplicatePolicy.REPLACE)
        )

        assert result.deleted == 3
        assert result.skipped is False
        assert asyncio.run(check_duplicates(store, DATE, "regional", "daily", "us")).count == 2
        assert asyncio.run(check_duplicates(store, "2025-12-04", "regional", "daily", None)).count == 2

    def test_update_does_nothing_in_bulk(self, store):
        seed(store, count=3)

        result = asyncio.run(
            handle_duplicates(store, DATE, "regional", "daily", None, DuplicatePolicy.UPDATE)
        )

        assert (result.deleted, result.skipped) == (0, False)
        assert asyncio.run(check_duplicates(store, DATE, "regional", "daily", None)).count == 3

    def test_rejects_caller_actions(self, store):
        scope = IngestionScope.create(DATE, "regional", "daily")

        with pytest.raises(TypeError):
            asyncio.run(ConflictResolver(store).resolve(scope, "ask"))


class TestHandleDuplicates:
    def test_skip_on_existing_scope_writes_nothing(self, store):
        seed(store, count=4)

        result = asyncio.run(handle_duplicates(store, DATE, "regional", "daily", None, DuplicatePolicy.SKIP))

        assert (result.deleted, result.skipped) == (0, True)
        assert asyncio.run(check_duplicates(store, DATE, "regional", "daily", None)).count == 4

    @pytest.mark.parametrize("region", [None, "", "global"])
    def test_replace_normalizes_global_region(self, store, region):
        seed(store, count=3)
        seed(store, count=2, region="us")

        result = asyncio.run(handle_duplicates(store, DATE, "regional", "daily", region, DuplicatePolicy.REPLACE))

        assert (result.deleted, result.skipped) == (3, False)
        assert not asyncio.run(check_duplicates(store, DATE, "regional", "daily", None)).exists
        assert asyncio.run(check_duplicates(store, DATE, "regional", "daily", "us")).count == 2

    @pytest.mark.parametrize("policy", list(DuplicatePolicy))
    def test_empty_scope_is_untouched(self, store, policy):
        seed(store, count=2, region="us")

        result = asyncio.run(handle_duplicates(store, DATE, "regional", "daily", "global", policy))

        assert (result.deleted, result.skipped) == (0, False)
        assert asyncio.run(check_duplicates(store, DATE, "regional", "daily", "us")).count == 2
