"""
Artist and track resolution for one batch of canonical rows.

Artists are resolved one at a time; tracks fan out with bounded concurrency.
Creates that lose a race against another writer surface as
UniqueViolationError and are turned into a re-fetch of the winner's row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from chart_intake.batch import run_bounded
from chart_intake.errors import UniqueViolationError
from chart_intake.models import Artist, CanonicalRow, IngestionResult, Track
from chart_intake.sources.base import extract_spotify_track_id
from chart_intake.store.base import ChartStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackRef:
    track_id: str
    artist_id: str


@dataclass
class ResolvedEntities:
    """Ids for a batch: artist name -> artist id, track uri -> TrackRef."""

    artists: dict[str, str] = field(default_factory=dict)
    tracks: dict[str, TrackRef] = field(default_factory=dict)


class EntityResolver:
    """Find-or-create artists and tracks for canonical rows."""

    def __init__(self, store: ChartStore, fan_out: int = 10):
        self.store = store
        self.fan_out = fan_out

    async def resolve(self, rows: list[CanonicalRow], result: IngestionResult) -> ResolvedEntities:
        resolved = ResolvedEntities()

        for name in dict.fromkeys(row.artist_key for row in rows):
            artist = await self._resolve_artist(name, result)
            resolved.artists[name] = artist.id

        by_uri: dict[str, CanonicalRow] = {}
        for row in rows:
            earlier = by_uri.get(row.uri)
            if earlier is not None and earlier.artist_key != row.artist_key:
                logger.warning(
                    f"Track {row.uri} listed under both {earlier.artist_key!r} and "
                    f"{row.artist_key!r}; using {row.artist_key!r}"
                )
            by_uri[row.uri] = row
        distinct_rows = list(by_uri.values())

        async def resolve_track(row: CanonicalRow) -> tuple[str, TrackRef]:
            artist_id = resolved.artists[row.artist_key]
            track = await self._resolve_track(row, artist_id, result)
            return row.uri, TrackRef(track_id=track.id, artist_id=artist_id)

        for uri, ref in await run_bounded(distinct_rows, resolve_track, self.fan_out):
            resolved.tracks[uri] = ref

        logger.debug(
            f"Resolved {len(resolved.artists)} artists and {len(resolved.tracks)} tracks"
        )
        return resolved

    async def _resolve_artist(self, name: str, result: IngestionResult) -> Artist:
        existing = await self.store.find_artist(name)
        if existing:
            return existing
        try:
            artist = await self.store.create_artist(name)
        except UniqueViolationError:
            # Created concurrently; use the stored row
            existing = await self.store.find_artist(name)
            if existing is None:
                raise
            return existing
        result.artists_created += 1
        return artist

    async def _resolve_track(self, row: CanonicalRow, artist_id: str, result: IngestionResult) -> Track:
        external_id = extract_spotify_track_id(row.uri)

        existing = await self.store.find_track(artist_id, row.track_name)
        if existing is None:
            try:
                track = await self.store.create_track(artist_id, row.track_name, row.uri, external_id)
            except UniqueViolationError:
                existing = await self.store.find_track(artist_id, row.track_name)
                if existing is None:
                    raise
                return existing
            result.tracks_created += 1
            return track

        # Only fill identifiers the stored track is missing
        new_uri = row.uri if not existing.uri and row.uri else None
        new_external_id = external_id if not existing.external_id and external_id else None
        if new_uri or new_external_id:
            await self.store.backfill_track_identifiers(existing.id, new_uri, new_external_id)
            result.tracks_updated += 1
        return existing
