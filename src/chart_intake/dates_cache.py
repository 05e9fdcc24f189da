from __future__ import annotations

import logging
import time

from chart_intake.store.base import ChartStore

logger = logging.getLogger(__name__)


class AvailableDatesCache:
    """
    Memoized list of dates that hold chart entries.

    Entries expire after ttl_seconds; ingestion invalidates the cache
    whenever it writes entries.
    """

    def __init__(self, store: ChartStore, ttl_seconds: float = 30.0):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._dates: list[str] | None = None
        self._expires_at: float = 0.0

    @property
    def is_fresh(self) -> bool:
        return self._dates is not None and time.time() < self._expires_at

    async def get(self, force_refresh: bool = False) -> list[str]:
        """Distinct ingested dates, newest first."""
        if not force_refresh and self.is_fresh:
            return list(self._dates or [])

        dates = await self.store.list_chart_dates()
        self._dates = dates
        self._expires_at = time.time() + self.ttl_seconds
        logger.debug(f"Cached {len(dates)} available dates for {self.ttl_seconds}s")
        return list(dates)

    def invalidate(self) -> None:
        self._dates = None
        self._expires_at = 0.0
