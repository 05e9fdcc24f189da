from __future__ import annotations

import logging
from typing import Any

from chart_intake.errors import FormatError, SourceUnavailableError
from chart_intake.models import CanonicalRow, ChartPeriod, ChartType, ParsedChart
from chart_intake.sources.base import DEFAULT_USER_AGENT, SourceClient, finalize_rows, parse_optional_int

logger = logging.getLogger(__name__)

DEFAULT_FEED_URL = "https://charts-spotify-com-service.spotify.com/public/v0/charts"


def _first_group(payload: dict[str, Any]) -> dict[str, Any]:
    groups = payload.get("chartEntryViewResponses") if isinstance(payload, dict) else None
    if not groups:
        raise FormatError("No chart entry view responses in API response")
    return groups[0] or {}


def describe_feed_chart(payload: dict[str, Any]) -> tuple[ChartType, ChartPeriod, str]:
    """
    Derive (chart type, period, date) from the feed's first chart group.

    The chart alias encodes both, e.g. ``REGIONAL_GLOBAL_WEEKLY`` or ``VIRAL_GLOBAL_DAILY``.
    """
    display = _first_group(payload).get("displayChart") or {}
    alias = (display.get("chartMetadata") or {}).get("alias") or ""
    date = display.get("date")
    if not date:
        raise FormatError("Chart response has no displayChart.date")

    chart_type = ChartType.VIRAL if "VIRAL" in alias else ChartType.REGIONAL
    chart_period = ChartPeriod.WEEKLY if "WEEKLY" in alias else ChartPeriod.DAILY
    return chart_type, chart_period, date


def _entry_to_row(entry: dict[str, Any]) -> CanonicalRow:
    metadata = entry.get("trackMetadata") or {}
    chart_data = entry.get("chartEntryData") or {}

    artist_names = ", ".join(
        artist.get("name", "") for artist in metadata.get("artists") or [] if artist.get("name")
    )
    labels = metadata.get("labels") or []
    appearances = parse_optional_int(chart_data.get("appearancesOnChart"))

    return CanonicalRow(
        rank=parse_optional_int(chart_data.get("currentRank")) or 0,
        uri=metadata.get("trackUri") or "",
        artist_names=artist_names,
        track_name=metadata.get("trackName") or "",
        source=labels[0].get("name") if labels else None,
        peak_rank=parse_optional_int(chart_data.get("peakRank")),
        previous_rank=parse_optional_int(chart_data.get("previousRank")),
        days_on_chart=appearances,
        # The feed has no stream counts; appearances stand in for them
        streams=str(appearances) if appearances else None,
    )


def parse_feed(
    payload: dict[str, Any],
    chart_type: ChartType | str,
    chart_period: ChartPeriod | str,
    date: str,
) -> ParsedChart:
    """
    Parse a chart feed response into canonical rows.

    Only the first chart group of the envelope is used.

    Raises:
        FormatError: If the envelope is missing or the first group has no entries
    """
    entries = _first_group(payload).get("entries")
    if not entries:
        raise FormatError("No entries found in chart response")

    rows, skipped = finalize_rows(
        ((index, _entry_to_row(entry)) for index, entry in enumerate(entries, start=1)),
        "feed",
    )
    logger.info(f"Parsed {len(rows)} entries from chart feed response")
    return ParsedChart(
        rows=rows,
        chart_type=ChartType(chart_type),
        chart_period=ChartPeriod(chart_period),
        date=date,
        skipped_rows=skipped,
    )


class ChartFeedClient(SourceClient):
    """Fetches the public chart feed."""

    def __init__(self, feed_url: str = DEFAULT_FEED_URL, user_agent: str = DEFAULT_USER_AGENT, **kwargs):
        super().__init__(user_agent=user_agent, **kwargs)
        self.feed_url = feed_url

    def fetch(self) -> dict[str, Any]:
        """
        Fetch the current chart feed.

        Raises:
            SourceUnavailableError: On HTTP failure or an empty envelope
        """
        logger.info(f"Fetching chart feed from {self.feed_url}")
        response = self._get(self.feed_url, headers={"Accept": "application/json"})
        try:
            payload = response.json()
        except ValueError as e:
            raise SourceUnavailableError("Chart feed did not return JSON") from e

        if not isinstance(payload, dict) or not payload.get("chartEntryViewResponses"):
            raise SourceUnavailableError(
                "No chart data returned from API. Response structure may have changed."
            )
        return payload
