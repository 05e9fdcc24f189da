from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from chart_intake.errors import PersistenceError, UniqueViolationError
from chart_intake.models import (
    PLATFORM,
    Artist,
    ChartEntryRecord,
    ChartPeriod,
    ChartType,
    EntryKey,
    IngestionScope,
    RegionType,
    Track,
)
from chart_intake.store.base import ChartStore, StoredEntry, UploadPage, UploadRecord, UploadStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS artists (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    platform TEXT NOT NULL,
    created_at REAL NOT NULL,
    UNIQUE(name, platform)
);

CREATE TABLE IF NOT EXISTS tracks (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    artist_id TEXT NOT NULL REFERENCES artists(id),
    platform TEXT NOT NULL,
    uri TEXT,
    external_id TEXT,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL,
    UNIQUE(artist_id, name, platform)
);

CREATE TABLE IF NOT EXISTS chart_entries (
    id TEXT PRIMARY KEY,
    track_id TEXT NOT NULL REFERENCES tracks(id),
    artist_id TEXT NOT NULL REFERENCES artists(id),
    date TEXT NOT NULL,
    chart_type TEXT NOT NULL,
    chart_period TEXT NOT NULL,
    region TEXT,
    region_type TEXT,
    platform TEXT NOT NULL,
    position INTEGER NOT NULL,
    source TEXT,
    peak_rank INTEGER,
    previous_rank INTEGER,
    days_on_chart INTEGER,
    streams TEXT,
    run_id TEXT,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_entries_identity ON chart_entries(
    track_id, artist_id, date, chart_type, chart_period, platform, COALESCE(region, '')
);
CREATE INDEX IF NOT EXISTS idx_entries_scope ON chart_entries(date, chart_type, chart_period, region);
CREATE INDEX IF NOT EXISTS idx_entries_date ON chart_entries(date);

CREATE TABLE IF NOT EXISTS uploads (
    id TEXT PRIMARY KEY,
    file_name TEXT NOT NULL,
    chart_type TEXT NOT NULL,
    chart_period TEXT NOT NULL,
    date TEXT NOT NULL,
    region TEXT,
    region_type TEXT,
    status TEXT NOT NULL,
    records_processed INTEGER NOT NULL DEFAULT 0,
    records_created INTEGER NOT NULL DEFAULT 0,
    records_updated INTEGER NOT NULL DEFAULT 0,
    records_skipped INTEGER NOT NULL DEFAULT 0,
    error TEXT,
    uploaded_at REAL NOT NULL,
    completed_at REAL
);

CREATE INDEX IF NOT EXISTS idx_uploads_status ON uploads(status);
"""

# Scope predicate; region uses IS so a NULL region matches only NULL
SCOPE_WHERE = "date = ? AND chart_type = ? AND chart_period = ? AND platform = ? AND region IS ?"


def _scope_params(scope: IngestionScope) -> tuple[Any, ...]:
    return (scope.date, str(scope.chart_type), str(scope.chart_period), PLATFORM, scope.region)


def _upload_from_row(row: sqlite3.Row) -> UploadRecord:
    return UploadRecord(
        id=row["id"],
        file_name=row["file_name"],
        chart_type=ChartType(row["chart_type"]),
        chart_period=ChartPeriod(row["chart_period"]),
        date=row["date"],
        region=row["region"],
        region_type=RegionType(row["region_type"]) if row["region_type"] else None,
        status=UploadStatus(row["status"]),
        records_processed=row["records_processed"],
        records_created=row["records_created"],
        records_updated=row["records_updated"],
        records_skipped=row["records_skipped"],
        error=row["error"],
        uploaded_at=row["uploaded_at"],
        completed_at=row["completed_at"],
    )


class SqliteChartStore(ChartStore):
    """
    SQLite chart store.

    Opens a connection per call and runs it on a worker thread, so
    concurrent coroutines get independent connections. WAL mode plus a busy
    timeout lets those connections share the file.
    """

    def __init__(self, db_path: Path | str, timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with foreign keys enabled."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._get_connection()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def _execute(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        conn = self._get_connection()
        try:
            result = operation(conn)
            conn.commit()
            return result
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise UniqueViolationError(str(e)) from e
            raise PersistenceError(str(e)) from e
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    async def _run(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self._execute, operation)

    # Artists

    async def find_artist(self, name: str) -> Artist | None:
        def op(conn: sqlite3.Connection) -> Artist | None:
            row = conn.execute(
                "SELECT id, name, platform FROM artists WHERE name = ? AND platform = ?",
                (name, PLATFORM),
            ).fetchone()
            return Artist(id=row["id"], name=row["name"], platform=row["platform"]) if row else None

        return await self._run(op)

    async def create_artist(self, name: str) -> Artist:
        artist = Artist(id=str(uuid.uuid4()), name=name)

        def op(conn: sqlite3.Connection) -> Artist:
            conn.execute(
                "INSERT INTO artists (id, name, platform, created_at) VALUES (?, ?, ?, ?)",
                (artist.id, artist.name, artist.platform, time.time()),
            )
            return artist

        return await self._run(op)

    # Tracks

    async def find_track(self, artist_id: str, name: str) -> Track | None:
        def op(conn: sqlite3.Connection) -> Track | None:
            row = conn.execute(
                """
                SELECT id, name, artist_id, platform, uri, external_id FROM tracks
                WHERE artist_id = ? AND name = ? AND platform = ?
                """,
                (artist_id, name, PLATFORM),
            ).fetchone()
            return Track(**dict(row)) if row else None

        return await self._run(op)

    async def create_track(
        self, artist_id: str, name: str, uri: str | None, external_id: str | None
    ) -> Track:
        track = Track(
            id=str(uuid.uuid4()), name=name, artist_id=artist_id, uri=uri, external_id=external_id
        )

        def op(conn: sqlite3.Connection) -> Track:
            now = time.time()
            conn.execute(
                """
                INSERT INTO tracks (id, name, artist_id, platform, uri, external_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (track.id, track.name, track.artist_id, track.platform, uri, external_id, now, now),
            )
            return track

        return await self._run(op)

    async def backfill_track_identifiers(
        self, track_id: str, uri: str | None, external_id: str | None
    ) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                UPDATE tracks SET
                    uri = COALESCE(?, uri),
                    external_id = COALESCE(?, external_id),
                    updated_at = ?
                WHERE id = ?
                """,
                (uri, external_id, time.time(), track_id),
            )

        await self._run(op)

    # Chart entries

    async def find_entry(self, key: EntryKey) -> str | None:
        def op(conn: sqlite3.Connection) -> str | None:
            row = conn.execute(
                """
                SELECT id FROM chart_entries
                WHERE track_id = ? AND artist_id = ? AND date = ? AND chart_type = ?
                  AND chart_period = ? AND platform = ? AND region IS ?
                """,
                (
                    key.track_id,
                    key.artist_id,
                    key.date,
                    str(key.chart_type),
                    str(key.chart_period),
                    key.platform,
                    key.region,
                ),
            ).fetchone()
            return row["id"] if row else None

        return await self._run(op)

    async def insert_entry(self, record: ChartEntryRecord) -> str:
        entry_id = str(uuid.uuid4())
        key = record.key

        def op(conn: sqlite3.Connection) -> str:
            now = time.time()
            conn.execute(
                """
                INSERT INTO chart_entries (
                    id, track_id, artist_id, date, chart_type, chart_period, region, region_type,
                    platform, position, source, peak_rank, previous_rank, days_on_chart, streams,
                    run_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry_id,
                    key.track_id,
                    key.artist_id,
                    key.date,
                    str(key.chart_type),
                    str(key.chart_period),
                    key.region,
                    str(record.region_type) if record.region_type else None,
                    key.platform,
                    record.position,
                    record.source,
                    record.peak_rank,
                    record.previous_rank,
                    record.days_on_chart,
                    record.streams,
                    record.run_id,
                    now,
                    now,
                ),
            )
            return entry_id

        return await self._run(op)

    async def update_entry(self, entry_id: str, record: ChartEntryRecord) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                UPDATE chart_entries SET
                    position = ?, region_type = ?, source = ?, peak_rank = ?, previous_rank = ?,
                    days_on_chart = ?, streams = ?, run_id = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    record.position,
                    str(record.region_type) if record.region_type else None,
                    record.source,
                    record.peak_rank,
                    record.previous_rank,
                    record.days_on_chart,
                    record.streams,
                    record.run_id,
                    time.time(),
                    entry_id,
                ),
            )

        await self._run(op)

    # Scopes

    async def count_scope(self, scope: IngestionScope) -> int:
        def op(conn: sqlite3.Connection) -> int:
            row = conn.execute(
                f"SELECT COUNT(*) FROM chart_entries WHERE {SCOPE_WHERE}", _scope_params(scope)
            ).fetchone()
            return row[0]

        return await self._run(op)

    async def delete_scope(self, scope: IngestionScope) -> int:
        def op(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                f"DELETE FROM chart_entries WHERE {SCOPE_WHERE}", _scope_params(scope)
            )
            return cursor.rowcount

        deleted = await self._run(op)
        logger.info(f"Deleted {deleted} entries for {scope}")
        return deleted

    async def list_scope_entries(self, scope: IngestionScope, limit: int = 10) -> list[StoredEntry]:
        def op(conn: sqlite3.Connection) -> list[StoredEntry]:
            rows = conn.execute(
                """
                SELECT e.id, e.position, t.name AS track_name, a.name AS artist_name
                FROM chart_entries e
                JOIN tracks t ON t.id = e.track_id
                JOIN artists a ON a.id = e.artist_id
                WHERE e.date = ? AND e.chart_type = ? AND e.chart_period = ?
                  AND e.platform = ? AND e.region IS ?
                ORDER BY e.position ASC
                LIMIT ?
                """,
                (*_scope_params(scope), limit),
            ).fetchall()
            return [StoredEntry(**dict(row)) for row in rows]

        return await self._run(op)

    async def list_chart_dates(self) -> list[str]:
        def op(conn: sqlite3.Connection) -> list[str]:
            rows = conn.execute(
                "SELECT DISTINCT date FROM chart_entries ORDER BY date DESC"
            ).fetchall()
            return [row["date"] for row in rows]

        return await self._run(op)

    # Uploads

    async def create_upload(self, record: UploadRecord) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO uploads (
                    id, file_name, chart_type, chart_period, date, region, region_type,
                    status, records_processed, uploaded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.file_name,
                    str(record.chart_type),
                    str(record.chart_period),
                    record.date,
                    record.region,
                    str(record.region_type) if record.region_type else None,
                    str(record.status),
                    record.records_processed,
                    record.uploaded_at or time.time(),
                ),
            )

        await self._run(op)

    async def finish_upload(
        self,
        upload_id: str,
        status: UploadStatus,
        records_processed: int = 0,
        records_created: int = 0,
        records_updated: int = 0,
        records_skipped: int = 0,
        error: str | None = None,
    ) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                UPDATE uploads SET
                    status = ?, records_processed = ?, records_created = ?, records_updated = ?,
                    records_skipped = ?, error = ?, completed_at = ?
                WHERE id = ?
                """,
                (
                    str(status),
                    records_processed,
                    records_created,
                    records_updated,
                    records_skipped,
                    error,
                    time.time(),
                    upload_id,
                ),
            )

        await self._run(op)

    async def get_upload(self, upload_id: str) -> UploadRecord | None:
        def op(conn: sqlite3.Connection) -> UploadRecord | None:
            row = conn.execute("SELECT * FROM uploads WHERE id = ?", (upload_id,)).fetchone()
            return _upload_from_row(row) if row else None

        return await self._run(op)

    async def list_uploads(
        self, limit: int = 50, offset: int = 0, status: UploadStatus | None = None
    ) -> UploadPage:
        def op(conn: sqlite3.Connection) -> UploadPage:
            where = "WHERE status = ?" if status else ""
            params: tuple[Any, ...] = (str(status),) if status else ()
            total = conn.execute(f"SELECT COUNT(*) FROM uploads {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM uploads {where} ORDER BY uploaded_at DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
            return UploadPage(
                uploads=[_upload_from_row(row) for row in rows],
                total=total,
                limit=limit,
                offset=offset,
            )

        return await self._run(op)
