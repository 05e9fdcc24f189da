"""Pytest configuration and shared fixtures for chart-intake tests."""

from __future__ import annotations

import csv
import io
from typing import Any

import pytest

from chart_intake.errors import PersistenceError
from chart_intake.models import CanonicalRow, ChartPeriod, ChartType, ParsedChart
from chart_intake.sources.flatfile import REGIONAL_HEADERS, VIRAL_HEADERS
from chart_intake.store import SqliteChartStore

# =============================================================================
# Row Builders
# =============================================================================


def build_rows(count: int, artists: int = 40, start: int = 1) -> list[CanonicalRow]:
    """Build `count` valid rows; row i belongs to artist i % artists."""
    rows = []
    for i in range(start, start + count):
        rows.append(
            CanonicalRow(
                rank=i,
                uri=f"spotify:track:T{i:05d}",
                artist_names=f"Artist {i % artists:03d}",
                track_name=f"Track {i:05d}",
                source="Label",
                peak_rank=i,
                previous_rank=i + 1,
                days_on_chart=3,
                streams=str(1_000_000 - i),
            )
        )
    return rows


def build_parsed(
    rows: list[CanonicalRow],
    date: str = "2025-12-03",
    chart_type: ChartType = ChartType.REGIONAL,
    chart_period: ChartPeriod = ChartPeriod.DAILY,
) -> ParsedChart:
    return ParsedChart(rows=rows, chart_type=chart_type, chart_period=chart_period, date=date)


def build_csv(rows: list[CanonicalRow], chart_type: ChartType = ChartType.REGIONAL) -> str:
    """Render rows as a chart CSV export."""
    headers = REGIONAL_HEADERS if chart_type == ChartType.REGIONAL else VIRAL_HEADERS
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        values = {
            "rank": row.rank,
            "uri": row.uri,
            "artist_names": row.artist_names,
            "track_name": row.track_name,
            "source": row.source or "",
            "peak_rank": row.peak_rank or "",
            "previous_rank": row.previous_rank or "",
            "days_on_chart": row.days_on_chart or "",
            "streams": row.streams or "",
        }
        writer.writerow([values[h] for h in headers])
    return out.getvalue()


def build_feed_payload(
    entries: list[dict[str, Any]],
    alias: str = "REGIONAL_GLOBAL_WEEKLY",
    date: str = "2025-11-27",
) -> dict[str, Any]:
    return {
        "chartEntryViewResponses": [
            {
                "displayChart": {
                    "date": date,
                    "description": "Weekly chart",
                    "chartMetadata": {
                        "uri": "spotify:chart:regional-global-weekly",
                        "alias": alias,
                        "entityType": "TRACK",
                        "readableTitle": "Weekly Top Songs Global",
                    },
                },
                "entries": entries,
            }
        ]
    }


def build_feed_entry(
    rank: int,
    track_id: str,
    name: str,
    artists: list[str],
    labels: list[str] | None = None,
    appearances: int | None = 5,
) -> dict[str, Any]:
    chart_data: dict[str, Any] = {"currentRank": rank, "peakRank": rank, "previousRank": rank + 2}
    if appearances is not None:
        chart_data["appearancesOnChart"] = appearances
    return {
        "trackMetadata": {
            "trackName": name,
            "trackUri": f"spotify:track:{track_id}",
            "artists": [{"name": a} for a in artists],
            "labels": [{"name": label} for label in labels or []],
        },
        "chartEntryData": chart_data,
    }


def build_playlist_item(track_id: str | None, name: str, artists: list[str]) -> dict[str, Any]:
    if track_id is None:
        return {"track": None, "added_at": "2025-12-03T00:00:00Z"}
    return {
        "added_at": "2025-12-03T00:00:00Z",
        "track": {
            "id": track_id,
            "name": name,
            "artists": [{"name": a} for a in artists],
            "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
        },
    }


# =============================================================================
# Store Fixtures
# =============================================================================


class FailingStore(SqliteChartStore):
    """SQLite store that fails track creation for chosen track names."""

    def __init__(self, db_path, fail_tracks: set[str]):
        super().__init__(db_path)
        self.fail_tracks = fail_tracks

    async def create_track(self, artist_id, name, uri, external_id):
        if name in self.fail_tracks:
            raise PersistenceError(f"Failed to create track {name}")
        return await super().create_track(artist_id, name, uri, external_id)


@pytest.fixture
def store(tmp_path):
    """Provide an empty SQLite chart store."""
    return SqliteChartStore(tmp_path / "charts.sqlite")


@pytest.fixture
def failing_store_factory(tmp_path):
    """Build a store that fails creating the given track names."""

    def _build(fail_tracks: set[str]) -> FailingStore:
        return FailingStore(tmp_path / "failing.sqlite", fail_tracks)

    return _build


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host environment variables out of configuration."""
    import os

    for key in list(os.environ):
        if key.startswith("CHART_INTAKE_") or key.startswith("SPOTIFY_CLIENT_"):
            monkeypatch.delenv(key, raising=False)
