"""
Automated source fetches.

Each job fetches one source, parses it, applies the source kind's default
duplicate action (with 'ask' resolved unattended) and ingests. What triggers
the jobs is up to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date as date_cls
from typing import Any

from chart_intake.config import Config
from chart_intake.dates_cache import AvailableDatesCache
from chart_intake.dedup import get_default_policy
from chart_intake.models import ParsedChart, SourceKind
from chart_intake.policy import to_duplicate_policy
from chart_intake.processor import ChartIngestor, IngestOutcome
from chart_intake.sources.feed import ChartFeedClient, describe_feed_chart, parse_feed
from chart_intake.sources.flatfile import ChartRequest, FlatFileClient, parse_flatfile
from chart_intake.sources.playlist import fetch_viral_playlist
from chart_intake.spotify import SpotifyClient
from chart_intake.store.base import ChartStore

logger = logging.getLogger(__name__)


@dataclass
class JobReport:
    """Outcome of one source job."""

    source_kind: SourceKind
    label: str
    success: bool
    skipped: bool = False
    outcome: IngestOutcome | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = self.outcome.result if self.outcome else None
        return {
            "source_kind": str(self.source_kind),
            "label": self.label,
            "success": self.success,
            "skipped": self.skipped,
            "scope": str(self.outcome.scope) if self.outcome else None,
            "deleted": self.outcome.resolution.deleted_count if self.outcome else 0,
            "result": result.to_dict() if result else None,
            "error": self.error,
        }


@dataclass
class JobsSummary:
    successful: list[JobReport] = field(default_factory=list)
    failed: list[JobReport] = field(default_factory=list)

    def add(self, report: JobReport) -> None:
        (self.successful if report.success else self.failed).append(report)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": [r.to_dict() for r in self.successful],
            "failed": [r.to_dict() for r in self.failed],
        }


class SourceJobs:
    """Runs fetch -> parse -> dedup -> ingest for each automated source."""

    def __init__(
        self,
        store: ChartStore,
        config: Config,
        spotify: SpotifyClient | None = None,
        feed_client: ChartFeedClient | None = None,
        flatfile_client: FlatFileClient | None = None,
        dates_cache: AvailableDatesCache | None = None,
    ):
        self.store = store
        self.config = config
        self._spotify = spotify
        sources = config.sources
        self.feed_client = feed_client or ChartFeedClient(
            feed_url=sources.feed_url, user_agent=sources.user_agent, timeout=sources.timeout_s
        )
        self.flatfile_client = flatfile_client or FlatFileClient(
            base_url=sources.flatfile_base_url,
            user_agent=sources.user_agent,
            timeout=sources.timeout_s,
        )
        self.ingestor = ChartIngestor(
            store,
            dates_cache=dates_cache,
            batch_size=config.ingest.batch_size,
            fan_out=config.ingest.fan_out,
        )

    @property
    def spotify(self) -> SpotifyClient:
        if self._spotify is None:
            self._spotify = SpotifyClient(
                client_id=self.config.sources.spotify_client_id,
                client_secret=self.config.sources.spotify_client_secret,
                timeout=self.config.sources.timeout_s,
            )
        return self._spotify

    async def _ingest(
        self, source_kind: SourceKind, label: str, parsed: ParsedChart, region: str | None
    ) -> JobReport:
        action = get_default_policy(source_kind, self.config.dedup)
        policy = to_duplicate_policy(action, unattended=True)
        outcome = await self.ingestor.ingest_parsed(
            parsed, region, policy, source_kind=source_kind, run_id=str(uuid.uuid4())
        )
        success = outcome.skipped or bool(outcome.result and outcome.result.success)
        error = "; ".join(outcome.result.errors) if outcome.result and outcome.result.errors else None
        return JobReport(
            source_kind=source_kind,
            label=label,
            success=success,
            skipped=outcome.skipped,
            outcome=outcome,
            error=error,
        )

    async def run_playlist(self, region: str = "global", date: str | None = None) -> JobReport:
        """Fetch and ingest a region's Viral 50 playlist as the daily viral chart."""
        date = date or date_cls.today().isoformat()
        parsed = await asyncio.to_thread(
            fetch_viral_playlist,
            self.spotify,
            region,
            date,
            self.config.sources.playlist_ids,
            self.config.sources.playlist_market,
        )
        return await self._ingest(SourceKind.PLAYLIST, f"playlist:{region}", parsed, region)

    async def run_feed(self) -> JobReport:
        """Fetch and ingest the current chart feed (global scope)."""
        payload = await asyncio.to_thread(self.feed_client.fetch)
        chart_type, chart_period, chart_date = describe_feed_chart(payload)
        parsed = parse_feed(payload, chart_type, chart_period, chart_date)
        return await self._ingest(SourceKind.JSON_API, "feed", parsed, None)

    async def run_flatfile(self, request: ChartRequest) -> JobReport:
        """Download and ingest one chart CSV export."""
        text = await asyncio.to_thread(self.flatfile_client.download, request)
        parsed = parse_flatfile(text, request.chart_type, request.chart_period, request.date)
        return await self._ingest(SourceKind.CSV_UPLOAD, request.chart_name, parsed, request.region)

    async def run_all(
        self,
        playlist_regions: list[str] | None = None,
        include_feed: bool = True,
        flatfile_requests: list[ChartRequest] | None = None,
        date: str | None = None,
    ) -> JobsSummary:
        """
        Run every requested job. A failing job is reported, never raised.
        """
        summary = JobsSummary()

        async def guarded(kind: SourceKind, label: str, job) -> None:
            try:
                summary.add(await job)
            except Exception as e:
                logger.error(f"Job {label} failed: {e}")
                summary.add(JobReport(source_kind=kind, label=label, success=False, error=str(e)))

        for region in playlist_regions or []:
            await guarded(SourceKind.PLAYLIST, f"playlist:{region}", self.run_playlist(region, date))
        if include_feed:
            await guarded(SourceKind.JSON_API, "feed", self.run_feed())
        for request in flatfile_requests or []:
            await guarded(SourceKind.CSV_UPLOAD, request.chart_name, self.run_flatfile(request))

        logger.info(
            f"Jobs completed: {len(summary.successful)} succeeded, {len(summary.failed)} failed"
        )
        return summary

    def close(self) -> None:
        self.feed_client.close()
        self.flatfile_client.close()
        if self._spotify is not None:
            self._spotify.close()
