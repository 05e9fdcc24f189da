"""Tests for region handling and the upload filename contract."""

from __future__ import annotations

import pytest

from chart_intake.errors import ChartRequestError
from chart_intake.models import ChartPeriod, ChartType, IngestionScope, RegionType
from chart_intake.regions import (
    AVAILABLE_REGIONS,
    normalize_region,
    parse_chart_filename,
    region_type,
    validate_chart_request,
)


class TestNormalizeRegion:
    @pytest.mark.parametrize("value", [None, "", "global"])
    def test_global_forms_become_none(self, value):
        assert normalize_region(value) is None

    @pytest.mark.parametrize("value", ["us", "nyc", "GB"])
    def test_other_values_pass_through(self, value):
        assert normalize_region(value) == value

    def test_scope_create_normalizes_once(self):
        a = IngestionScope.create("2025-12-03", "regional", "daily", "global")
        b = IngestionScope.create("2025-12-03", ChartType.REGIONAL, ChartPeriod.DAILY, None)

        assert a == b
        assert a.region is None
        assert str(a) == "regional-global-daily-2025-12-03"


class TestRegionType:
    def test_global_has_no_type(self):
        assert region_type("global") is None
        assert region_type(None) is None

    def test_two_letter_codes_are_countries(self):
        assert region_type("us") == RegionType.COUNTRY
        # Heuristic wins over the region table
        assert region_type("la") == RegionType.COUNTRY
        assert AVAILABLE_REGIONS["la"][1] == RegionType.CITY

    def test_longer_codes_are_cities(self):
        assert region_type("nyc") == RegionType.CITY
        assert region_type("london") == RegionType.CITY


class TestParseChartFilename:
    def test_parses_global_daily(self):
        info = parse_chart_filename("regional-global-daily-2025-12-03.csv")

        assert info.chart_type == ChartType.REGIONAL
        assert info.chart_period == ChartPeriod.DAILY
        assert info.date == "2025-12-03"
        assert info.region_code == "global"
        assert info.region is None
        assert info.region_type is None

    def test_parses_city_weekly(self):
        info = parse_chart_filename("viral-nyc-weekly-2025-11-27.csv")

        assert info.chart_type == ChartType.VIRAL
        assert info.region == "nyc"
        assert info.region_type == RegionType.CITY

    @pytest.mark.parametrize(
        "name",
        [
            "regional-global-daily.csv",
            "regional-global-daily-2025-12-03.txt",
            "regional-new-york-daily-2025-12-03.csv",
            "charts.csv",
        ],
    )
    def test_bad_names_rejected(self, name):
        with pytest.raises(ChartRequestError, match="Invalid filename format"):
            parse_chart_filename(name)

    def test_unknown_chart_type_rejected(self):
        with pytest.raises(ChartRequestError, match="Invalid chart type"):
            parse_chart_filename("top-global-daily-2025-12-03.csv")

    def test_unknown_period_rejected(self):
        with pytest.raises(ChartRequestError, match="Invalid chart period"):
            parse_chart_filename("regional-global-monthly-2025-12-03.csv")


class TestValidateChartRequest:
    def test_valid_request(self):
        validate_chart_request("viral", "weekly", "2024-02-29")

    @pytest.mark.parametrize("date", ["2025-13-01", "2025-02-30", "20251203", "2025-1-1"])
    def test_bad_dates_rejected(self, date):
        with pytest.raises(ChartRequestError):
            validate_chart_request("regional", "daily", date)
