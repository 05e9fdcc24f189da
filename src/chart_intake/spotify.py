"""
Spotify Web API client for curated playlist reads.

Uses the client credentials flow; the access token is cached until shortly
before it expires. Playlist track listings are paginated and followed until
the API reports no next page.
"""

from __future__ import annotations

import base64
import logging
import os
import time
from typing import Any

import httpx

from chart_intake.errors import SourceUnavailableError

logger = logging.getLogger(__name__)

PAGE_LIMIT = 50


class PlaylistNotFoundError(SourceUnavailableError):
    """Raised when a playlist id does not resolve (HTTP 404)."""


class SpotifyClient:
    """
    Spotify Web API client for playlists.

    Uses client credentials flow for authentication.
    """

    BASE_URL = "https://api.spotify.com/v1"
    AUTH_URL = "https://accounts.spotify.com/api/token"

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        """
        Initialize Spotify client with client credentials flow.

        Args:
            client_id: Spotify client ID (env: SPOTIFY_CLIENT_ID)
            client_secret: Spotify client secret (env: SPOTIFY_CLIENT_SECRET)
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.client_id = client_id or os.getenv("SPOTIFY_CLIENT_ID")
        self.client_secret = client_secret or os.getenv("SPOTIFY_CLIENT_SECRET")

        # Validate that both credentials are provided together or both are None
        if bool(self.client_id) != bool(self.client_secret):
            raise ValueError(
                "Both SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET must be provided together. "
                f"Got: client_id={'set' if self.client_id else 'missing'}, "
                f"client_secret={'set' if self.client_secret else 'missing'}"
            )

        self._access_token: str | None = None
        self._token_expires_at: float = 0.0
        self._client = client or httpx.Client(timeout=timeout)

    def _get_access_token(self) -> str:
        """
        Get access token using client credentials flow.

        Caches token until expiration.
        """
        if self._access_token and time.time() < self._token_expires_at:
            return self._access_token

        if not self.client_id or not self.client_secret:
            raise SourceUnavailableError(
                "Spotify client_id and client_secret required "
                "(set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET env vars)"
            )

        credentials = f"{self.client_id}:{self.client_secret}"
        b64_credentials = base64.b64encode(credentials.encode()).decode()

        try:
            response = self._client.post(
                self.AUTH_URL,
                headers={
                    "Authorization": f"Basic {b64_credentials}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data={"grant_type": "client_credentials"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SourceUnavailableError(f"Spotify token request failed: {e}") from e

        data = response.json()
        token = data["access_token"]
        self._access_token = token
        expires_in = data.get("expires_in", 3600)
        self._token_expires_at = time.time() + expires_in - 60  # 60s buffer

        return token

    def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make authenticated request to Spotify API."""
        token = self._get_access_token()
        url = endpoint if endpoint.startswith("http") else f"{self.BASE_URL}/{endpoint}"

        try:
            response = self._client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                raise PlaylistNotFoundError(f"Spotify resource not found: {endpoint}") from e
            if status == 429:
                retry_after = e.response.headers.get("Retry-After", "60")
                raise SourceUnavailableError(f"Rate limited. Retry after {retry_after} seconds") from e
            raise SourceUnavailableError(f"Spotify API error {status} for {endpoint}") from e
        except httpx.RequestError as e:
            raise SourceUnavailableError(f"Spotify request failed: {e}") from e

        return response.json()

    def get_playlist(self, playlist_id: str, market: str = "US") -> dict[str, Any]:
        """
        Get playlist metadata.

        A market is required: without one, client-credentials requests see
        the content as unavailable.
        """
        return self._request(f"playlists/{playlist_id}", params={"market": market})

    def get_playlist_tracks(
        self, playlist_id: str, limit: int = PAGE_LIMIT, offset: int = 0, market: str = "US"
    ) -> dict[str, Any]:
        """Get one page of playlist items."""
        return self._request(
            f"playlists/{playlist_id}/tracks",
            params={"limit": limit, "offset": offset, "market": market},
        )

    def get_all_playlist_tracks(self, playlist_id: str, market: str = "US") -> list[dict[str, Any]]:
        """
        Get every item of a playlist in playlist order.

        Pages are requested with limit 50 until the response has no ``next``.
        """
        items: list[dict[str, Any]] = []
        offset = 0
        while True:
            page = self.get_playlist_tracks(playlist_id, limit=PAGE_LIMIT, offset=offset, market=market)
            items.extend(page.get("items") or [])
            if page.get("next") is None:
                break
            offset += PAGE_LIMIT
        logger.debug(f"Fetched {len(items)} items from playlist {playlist_id}")
        return items

    def search_playlists(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        """Search playlists by name. Null results are dropped."""
        data = self._request("search", params={"q": query, "type": "playlist", "limit": limit})
        return [p for p in (data.get("playlists") or {}).get("items") or [] if p]

    def close(self) -> None:
        """Close HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
