"""
Curated playlist adapter.

A playlist's order is the chart: position among the remaining (non-null)
items becomes the rank. Playlists carry no peak/previous/streams data.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from chart_intake.errors import SourceUnavailableError
from chart_intake.models import CanonicalRow, ChartPeriod, ChartType, ParsedChart
from chart_intake.sources.base import finalize_rows
from chart_intake.spotify import PlaylistNotFoundError, SpotifyClient

logger = logging.getLogger(__name__)

DEFAULT_VIRAL_PLAYLIST_IDS: dict[str, str] = {
    "global": "37i9dQZEVXbLiRSasKsNU9",  # Viral 50 - Global
}


def _track_to_row(rank: int, track: dict[str, Any]) -> CanonicalRow:
    external_urls = track.get("external_urls") or {}
    uri = external_urls.get("spotify") or (f"spotify:track:{track['id']}" if track.get("id") else "")
    artist_names = ", ".join(
        artist.get("name", "") for artist in track.get("artists") or [] if artist.get("name")
    )
    return CanonicalRow(
        rank=rank,
        uri=uri,
        artist_names=artist_names,
        track_name=track.get("name") or "",
    )


def parse_playlist(
    items: list[dict[str, Any]],
    chart_type: ChartType | str = ChartType.VIRAL,
    chart_period: ChartPeriod | str = ChartPeriod.DAILY,
    date: str = "",
) -> ParsedChart:
    """
    Convert ordered playlist items into canonical rows.

    Removed tracks (items whose ``track`` is null) are dropped before ranks are
    assigned. Ranks are not renumbered after validation drops.
    """
    tracks = [item["track"] for item in items if item and item.get("track")]
    rows, skipped = finalize_rows(
        ((rank, _track_to_row(rank, track)) for rank, track in enumerate(tracks, start=1)),
        "playlist",
    )
    return ParsedChart(
        rows=rows,
        chart_type=ChartType(chart_type),
        chart_period=ChartPeriod(chart_period),
        date=date,
        skipped_rows=skipped,
    )


def resolve_viral_playlist_id(region: str, playlist_ids: Mapping[str, str] | None = None) -> str:
    """
    Look up the Viral 50 playlist id for a region.

    Configured ids win over the built-in defaults.

    Raises:
        SourceUnavailableError: If no id is known for the region
    """
    key = region.lower()
    configured = {k.lower(): v for k, v in (playlist_ids or {}).items()}
    if configured.get(key):
        logger.debug(f"Using configured playlist id for {region}: {configured[key]}")
        return configured[key]

    playlist_id = DEFAULT_VIRAL_PLAYLIST_IDS.get(key)
    if not playlist_id:
        raise SourceUnavailableError(
            f"No playlist ID found for region: {region}. Configure it under sources.playlist_ids."
        )
    return playlist_id


def _search_viral_playlist(client: SpotifyClient, region: str) -> dict[str, Any] | None:
    query = "Viral 50 Global" if region == "global" else f"Viral 50 {region.upper()}"
    results = client.search_playlists(query, limit=5)
    for playlist in results:
        name = (playlist.get("name") or "").lower()
        if "viral 50" in name and (region != "global" or "global" in name):
            return playlist
    return next((p for p in results if p.get("name")), None)


def fetch_viral_playlist(
    client: SpotifyClient,
    region: str,
    date: str,
    playlist_ids: Mapping[str, str] | None = None,
    market: str = "US",
) -> ParsedChart:
    """
    Fetch a region's Viral 50 playlist and parse it as a daily viral chart.

    A playlist id that no longer resolves falls back to a name search.
    """
    playlist_id = resolve_viral_playlist_id(region, playlist_ids)
    try:
        playlist = client.get_playlist(playlist_id, market=market)
    except PlaylistNotFoundError:
        logger.info(f"Playlist {playlist_id} not found, searching for Viral 50 {region}")
        match = _search_viral_playlist(client, region.lower())
        if not match or not match.get("id"):
            raise
        playlist_id = match["id"]
        playlist = client.get_playlist(playlist_id, market=market)

    logger.info(f"Fetching playlist {playlist.get('name')} ({playlist_id}) for {region} {date}")
    items = client.get_all_playlist_tracks(playlist_id, market=market)
    return parse_playlist(items, ChartType.VIRAL, ChartPeriod.DAILY, date)
