from __future__ import annotations

import logging
import re
from abc import ABC
from collections.abc import Iterable
from typing import Any

import httpx

from chart_intake.errors import RowValidationError, SourceUnavailableError
from chart_intake.models import CanonicalRow

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; chart-intake/0.1)"

_TRACK_ID_PATTERNS = (
    re.compile(r"^spotify:track:([A-Za-z0-9]+)$"),
    re.compile(r"open\.spotify\.com/track/([A-Za-z0-9]+)"),
)


def parse_optional_int(value: Any) -> int | None:
    """
    Parse an optional integer field.

    Blank, non-numeric and zero values are all treated as absent.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    text = str(value).strip()
    match = re.match(r"^[+-]?\d+", text)
    if not match:
        return None
    return int(match.group()) or None


def extract_spotify_track_id(uri: str | None) -> str | None:
    """
    Extract the platform track id from a URI or share URL.

    Handles ``spotify:track:ID`` and ``https://open.spotify.com/track/ID?si=...``.
    """
    if not uri:
        return None
    for pattern in _TRACK_ID_PATTERNS:
        match = pattern.search(uri)
        if match:
            return match.group(1)
    return None


def finalize_rows(rows: Iterable[tuple[int, CanonicalRow]], source_name: str) -> tuple[list[CanonicalRow], int]:
    """
    Drop rows that miss a required field.

    Args:
        rows: (row number, candidate row) pairs in source order
        source_name: Label used in warning logs

    Returns:
        Tuple of (valid rows, number of skipped rows)
    """
    valid: list[CanonicalRow] = []
    skipped = 0
    for row_number, row in rows:
        try:
            missing = row.missing_fields()
            if missing:
                raise RowValidationError(row_number, missing)
        except RowValidationError as e:
            logger.warning(f"Skipping {source_name} row: {e}")
            skipped += 1
            continue
        valid.append(row)
    return valid, skipped


class SourceClient(ABC):  # noqa: B024
    """Base class for chart source HTTP clients."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
            )
        return self._client

    def _get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET a URL, translating transport and status failures."""
        try:
            response = self.client.get(url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailableError(
                f"{url} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise SourceUnavailableError(f"Request to {url} failed: {e}") from e
        return response

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
        self._client = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
