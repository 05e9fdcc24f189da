"""Chart source adapters: payload in, canonical rows out."""

from __future__ import annotations

from chart_intake.sources.feed import ChartFeedClient, describe_feed_chart, parse_feed
from chart_intake.sources.flatfile import ChartRequest, FlatFileClient, parse_flatfile
from chart_intake.sources.playlist import fetch_viral_playlist, parse_playlist, resolve_viral_playlist_id

__all__ = [
    "ChartFeedClient",
    "ChartRequest",
    "FlatFileClient",
    "describe_feed_chart",
    "fetch_viral_playlist",
    "parse_feed",
    "parse_flatfile",
    "parse_playlist",
    "resolve_viral_playlist_id",
]
