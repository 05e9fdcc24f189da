from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

PLATFORM = "spotify"


class ChartType(StrEnum):
    """Ranking category of a chart."""

    REGIONAL = "regional"
    VIRAL = "viral"


class ChartPeriod(StrEnum):
    """Cadence of a chart snapshot."""

    DAILY = "daily"
    WEEKLY = "weekly"


class RegionType(StrEnum):
    """Kind of territory a region code denotes."""

    COUNTRY = "country"
    CITY = "city"


class SourceKind(StrEnum):
    """Where a chart snapshot came from."""

    PLAYLIST = "playlist"
    JSON_API = "json_api"
    CSV_UPLOAD = "csv_upload"


class DuplicatePolicy(StrEnum):
    """Conflict resolution applied when a scope was already ingested."""

    SKIP = "skip"
    UPDATE = "update"
    REPLACE = "replace"


def normalize_region(region: str | None) -> str | None:
    """Map 'global', empty and missing regions to None; keep anything else."""
    if region is None or region == "" or region == "global":
        return None
    return region


@dataclass
class CanonicalRow:
    """One ranked entry as extracted from any source."""

    rank: int
    uri: str
    artist_names: str
    track_name: str
    source: str | None = None
    peak_rank: int | None = None
    previous_rank: int | None = None
    days_on_chart: int | None = None
    # String-encoded so stream counts never lose precision
    streams: str | None = None

    REQUIRED_FIELDS = ("rank", "uri", "artist_names", "track_name")

    def missing_fields(self) -> list[str]:
        """Names of required fields that are empty or zero."""
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name)]

    @property
    def artist_key(self) -> str:
        return self.artist_names.strip()


@dataclass
class ParsedChart:
    """Canonical rows plus the scope metadata an adapter derived."""

    rows: list[CanonicalRow]
    chart_type: ChartType
    chart_period: ChartPeriod
    date: str
    skipped_rows: int = 0


@dataclass(frozen=True)
class IngestionScope:
    """One ingestible unit: (date, chart type, period, region).

    A region of None means global and is compared as a value, not a wildcard.
    """

    date: str
    chart_type: ChartType
    chart_period: ChartPeriod
    region: str | None = None

    @classmethod
    def create(
        cls,
        date: str,
        chart_type: ChartType | str,
        chart_period: ChartPeriod | str,
        region: str | None = None,
    ) -> IngestionScope:
        """Build a scope, normalizing the region exactly once."""
        return cls(
            date=date,
            chart_type=ChartType(chart_type),
            chart_period=ChartPeriod(chart_period),
            region=normalize_region(region),
        )

    def __str__(self) -> str:
        return f"{self.chart_type}-{self.region or 'global'}-{self.chart_period}-{self.date}"


@dataclass
class Artist:
    id: str
    name: str
    platform: str = PLATFORM


@dataclass
class Track:
    id: str
    name: str
    artist_id: str
    platform: str = PLATFORM
    uri: str | None = None
    external_id: str | None = None


@dataclass(frozen=True)
class EntryKey:
    """Identity key of a chart entry, widened with region."""

    track_id: str
    artist_id: str
    date: str
    chart_type: ChartType
    chart_period: ChartPeriod
    region: str | None
    platform: str = PLATFORM


@dataclass
class ChartEntryRecord:
    """A chart-position entry as written to the store."""

    key: EntryKey
    position: int
    region_type: RegionType | None = None
    source: str | None = None
    peak_rank: int | None = None
    previous_rank: int | None = None
    days_on_chart: int | None = None
    streams: str | None = None
    run_id: str | None = None


@dataclass
class DuplicateCheck:
    """Whether a scope already holds entries, and how many."""

    scope: IngestionScope
    exists: bool
    count: int = 0


@dataclass
class IngestionResult:
    """Aggregated outcome of one ingestion call.

    Counts reflect what did succeed; success is False if any batch failed.
    """

    success: bool = True
    artists_created: int = 0
    artists_updated: int = 0
    tracks_created: int = 0
    tracks_updated: int = 0
    entries_created: int = 0
    entries_updated: int = 0
    skipped_rows: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def entries_written(self) -> int:
        return self.entries_created + self.entries_updated

    def record_failure(self, message: str) -> None:
        self.errors.append(message)
        self.success = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
