"""Chart persistence: the async store interface and its SQLite implementation."""

from __future__ import annotations

from chart_intake.store.base import ChartStore, StoredEntry, UploadPage, UploadRecord, UploadStatus
from chart_intake.store.sqlite import SqliteChartStore

__all__ = [
    "ChartStore",
    "SqliteChartStore",
    "StoredEntry",
    "UploadPage",
    "UploadRecord",
    "UploadStatus",
]
