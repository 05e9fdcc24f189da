__all__ = (
    "Config",
    # Model
    "CanonicalRow",
    "ChartPeriod",
    "ChartType",
    "DuplicatePolicy",
    "IngestionResult",
    "IngestionScope",
    "ParsedChart",
    "RegionType",
    "SourceKind",
    # Sources
    "ChartFeedClient",
    "ChartRequest",
    "FlatFileClient",
    "SpotifyClient",
    "parse_feed",
    "parse_flatfile",
    "parse_playlist",
    # Store
    "ChartStore",
    "SqliteChartStore",
    # Pipeline
    "AvailableDatesCache",
    "ChartIngestor",
    "ChartProcessor",
    "UploadAction",
    "UploadService",
    "SourceJobs",
    "check_duplicates",
    "handle_duplicates",
    "process_chart_data",
    "to_duplicate_policy",
)

from chart_intake.config import Config
from chart_intake.dates_cache import AvailableDatesCache
from chart_intake.dedup import check_duplicates, handle_duplicates
from chart_intake.jobs import SourceJobs
from chart_intake.models import (
    CanonicalRow,
    ChartPeriod,
    ChartType,
    DuplicatePolicy,
    IngestionResult,
    IngestionScope,
    ParsedChart,
    RegionType,
    SourceKind,
)
from chart_intake.policy import UploadAction, to_duplicate_policy
from chart_intake.processor import ChartIngestor, ChartProcessor, process_chart_data
from chart_intake.sources import ChartFeedClient, ChartRequest, FlatFileClient, parse_feed, parse_flatfile, parse_playlist
from chart_intake.spotify import SpotifyClient
from chart_intake.store import ChartStore, SqliteChartStore
from chart_intake.uploads import UploadService
