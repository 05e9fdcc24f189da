"""
Abstract chart store.

Every method is a coroutine: the ingestion pipeline treats each store call
as a suspension point so concurrent track/entry work can interleave.
Identity-key collisions surface as UniqueViolationError; any other failure
as PersistenceError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum

from chart_intake.models import (
    Artist,
    ChartEntryRecord,
    ChartPeriod,
    ChartType,
    EntryKey,
    IngestionScope,
    RegionType,
    Track,
)


class UploadStatus(StrEnum):
    """Lifecycle of an upload record."""

    PROCESSING = "processing"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class StoredEntry:
    """A chart entry as read back from the store."""

    id: str
    position: int
    track_name: str
    artist_name: str


@dataclass
class UploadRecord:
    """Bookkeeping for one uploaded chart file."""

    id: str
    file_name: str
    chart_type: ChartType
    chart_period: ChartPeriod
    date: str
    region: str | None = None
    region_type: RegionType | None = None
    status: UploadStatus = UploadStatus.PROCESSING
    records_processed: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_skipped: int = 0
    error: str | None = None
    uploaded_at: float | None = None
    completed_at: float | None = None


@dataclass
class UploadPage:
    """One page of upload records plus the total matching count."""

    uploads: list[UploadRecord] = field(default_factory=list)
    total: int = 0
    limit: int = 50
    offset: int = 0


class ChartStore(ABC):
    """Persistence interface for artists, tracks, chart entries and uploads."""

    # --- Artists ---

    @abstractmethod
    async def find_artist(self, name: str) -> Artist | None:
        """
        Find an artist by (name, platform).

        Args:
            name: Artist display name, already stripped

        Returns:
            Artist if stored, None otherwise
        """

    @abstractmethod
    async def create_artist(self, name: str) -> Artist:
        """
        Create an artist with a fresh id.

        Raises:
            UniqueViolationError: If (name, platform) already exists
        """

    # --- Tracks ---

    @abstractmethod
    async def find_track(self, artist_id: str, name: str) -> Track | None:
        """Find a track by (artist id, name, platform)."""

    @abstractmethod
    async def create_track(
        self, artist_id: str, name: str, uri: str | None, external_id: str | None
    ) -> Track:
        """
        Create a track with a fresh id.

        Raises:
            UniqueViolationError: If (artist id, name, platform) already exists
        """

    @abstractmethod
    async def backfill_track_identifiers(
        self, track_id: str, uri: str | None, external_id: str | None
    ) -> None:
        """Set uri/external id on a track. None leaves a field unchanged."""

    # --- Chart entries ---

    @abstractmethod
    async def find_entry(self, key: EntryKey) -> str | None:
        """
        Find an entry by its full identity key.

        Returns:
            Entry id if stored, None otherwise
        """

    @abstractmethod
    async def insert_entry(self, record: ChartEntryRecord) -> str:
        """
        Insert an entry with a fresh id.

        Raises:
            UniqueViolationError: If the identity key is already stored
        """

    @abstractmethod
    async def update_entry(self, entry_id: str, record: ChartEntryRecord) -> None:
        """Overwrite the mutable fields of an entry."""

    # --- Scopes ---

    @abstractmethod
    async def count_scope(self, scope: IngestionScope) -> int:
        """Count entries of a scope. A None region only matches global entries."""

    @abstractmethod
    async def delete_scope(self, scope: IngestionScope) -> int:
        """Delete every entry of a scope and return how many were removed."""

    @abstractmethod
    async def list_scope_entries(self, scope: IngestionScope, limit: int = 10) -> list[StoredEntry]:
        """Entries of a scope ordered by position, for duplicate previews."""

    @abstractmethod
    async def list_chart_dates(self) -> list[str]:
        """Distinct entry dates, newest first."""

    # --- Uploads ---

    @abstractmethod
    async def create_upload(self, record: UploadRecord) -> None:
        """Persist a new upload record."""

    @abstractmethod
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
        """Record the outcome of an upload."""

    @abstractmethod
    async def get_upload(self, upload_id: str) -> UploadRecord | None:
        """Get an upload record by id."""

    @abstractmethod
    async def list_uploads(
        self, limit: int = 50, offset: int = 0, status: UploadStatus | None = None
    ) -> UploadPage:
        """List upload records, newest first."""
