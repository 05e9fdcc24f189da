"""
Flat-file (CSV) chart export adapter.

Regional exports carry a ``streams`` column; viral exports do not.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass

from chart_intake.errors import FormatError, SourceUnavailableError
from chart_intake.models import CanonicalRow, ChartPeriod, ChartType, ParsedChart
from chart_intake.regions import validate_chart_request
from chart_intake.sources.base import DEFAULT_USER_AGENT, SourceClient, finalize_rows, parse_optional_int

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://charts-spotify-com-service.spotify.com/v1/charts"

VIRAL_HEADERS = (
    "rank",
    "uri",
    "artist_names",
    "track_name",
    "source",
    "peak_rank",
    "previous_rank",
    "days_on_chart",
)
REGIONAL_HEADERS = VIRAL_HEADERS + ("streams",)


def expected_headers(chart_type: ChartType) -> tuple[str, ...]:
    return REGIONAL_HEADERS if chart_type == ChartType.REGIONAL else VIRAL_HEADERS


def _cell(record: dict[str, str], name: str) -> str:
    return (record.get(name) or "").strip()


def parse_flatfile(
    text: str,
    chart_type: ChartType | str,
    chart_period: ChartPeriod | str,
    date: str,
) -> ParsedChart:
    """
    Parse a chart CSV export into canonical rows.

    Args:
        text: Raw CSV text (header line plus data rows)
        chart_type: regional or viral, selects the expected header set
        chart_period: daily or weekly
        date: Chart date (YYYY-MM-DD)

    Returns:
        ParsedChart with invalid rows dropped and counted

    Raises:
        FormatError: If the file has no data rows or lacks required headers
    """
    chart_type = ChartType(chart_type)
    chart_period = ChartPeriod(chart_period)

    # Quoted fields may span lines, so blank records are dropped after csv splits them
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff"), newline=""))
    records = [values for values in reader if any(v.strip() for v in values)]
    if len(records) < 2:
        raise FormatError("CSV file must have at least a header row and one data row")

    header = [h.strip().lower() for h in records[0]]

    missing = [h for h in expected_headers(chart_type) if h not in header]
    if missing:
        raise FormatError(f"Missing required headers: {', '.join(missing)}")

    candidates: list[tuple[int, CanonicalRow]] = []
    for row_number, values in enumerate(records[1:], start=2):
        record = dict(zip(header, values, strict=False))
        streams = _cell(record, "streams")
        candidates.append(
            (
                row_number,
                CanonicalRow(
                    rank=parse_optional_int(record.get("rank")) or 0,
                    uri=_cell(record, "uri"),
                    artist_names=_cell(record, "artist_names"),
                    track_name=_cell(record, "track_name"),
                    source=_cell(record, "source") or None,
                    peak_rank=parse_optional_int(record.get("peak_rank")),
                    previous_rank=parse_optional_int(record.get("previous_rank")),
                    days_on_chart=parse_optional_int(record.get("days_on_chart")),
                    streams=streams or None,
                ),
            )
        )

    rows, skipped = finalize_rows(candidates, "CSV")
    logger.debug(f"Parsed {len(rows)} CSV rows ({skipped} skipped) for {chart_type} {date}")
    return ParsedChart(
        rows=rows,
        chart_type=chart_type,
        chart_period=chart_period,
        date=date,
        skipped_rows=skipped,
    )


@dataclass(frozen=True)
class ChartRequest:
    """Which chart export to download."""

    chart_type: ChartType
    chart_period: ChartPeriod
    date: str
    region: str = "global"

    @property
    def chart_name(self) -> str:
        return f"{self.chart_type}-{self.region}-{self.chart_period}-{self.date}"


class FlatFileClient(SourceClient):
    """Downloads chart CSV exports."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, user_agent: str = DEFAULT_USER_AGENT, **kwargs):
        super().__init__(user_agent=user_agent, **kwargs)
        self.base_url = base_url.rstrip("/")

    def chart_url(self, request: ChartRequest) -> str:
        return f"{self.base_url}/{request.chart_name}"

    def download(self, request: ChartRequest) -> str:
        """
        Download the CSV export for a chart request.

        Raises:
            ChartRequestError: If the request parameters are invalid
            SourceUnavailableError: If the endpoint fails or returns something other than CSV
        """
        validate_chart_request(request.chart_type, request.chart_period, request.date)
        url = self.chart_url(request)
        logger.info(f"Downloading chart CSV from {url}")

        response = self._get(url, headers={"Accept": "text/csv"})
        text = response.text.lstrip("\ufeff")
        stripped = text.strip()

        if stripped.lower().startswith(("<!doctype", "<html")):
            raise SourceUnavailableError(
                "Received HTML instead of CSV. CSV download endpoint may not be available."
            )
        if not stripped:
            raise SourceUnavailableError("Downloaded CSV is empty")
        if not stripped.lower().startswith("rank,"):
            raise SourceUnavailableError("Response does not appear to be a valid CSV file")
        return text
