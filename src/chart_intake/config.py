from __future__ import annotations

import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

from chart_intake.policy import UploadAction


class DatabaseConfig(BaseModel):
    """Chart store configuration."""

    path: Path = Field(default=Path("charts.sqlite"))


class IngestConfig(BaseModel):
    """Batching and fan-out limits for the ingestion pipeline."""

    batch_size: int = Field(default=50, ge=1)
    fan_out: int = Field(default=10, ge=1)


class SourcesConfig(BaseModel):
    """Remote chart source configuration."""

    feed_url: str = Field(
        default="https://charts-spotify-com-service.spotify.com/public/v0/charts"
    )
    flatfile_base_url: str = Field(
        default="https://charts-spotify-com-service.spotify.com/v1/charts"
    )
    user_agent: str = Field(default="Mozilla/5.0 (compatible; chart-intake/0.1)")
    timeout_s: float = Field(default=30.0, ge=1.0)

    # Curated playlists
    playlist_market: str = Field(default="US")
    playlist_ids: dict[str, str] = Field(default_factory=dict)

    # Read from SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET if not provided
    spotify_client_id: str | None = Field(default=None)
    spotify_client_secret: str | None = Field(default=None)


class DedupConfig(BaseModel):
    """
    Default duplicate actions per source kind.

    Unset values fall back to 'skip' for automated sources and 'ask'
    for manual CSV uploads.
    """

    playlist: UploadAction | None = Field(default=None)
    json_api: UploadAction | None = Field(default=None)
    csv_upload: UploadAction | None = Field(default=None)


class CacheConfig(BaseModel):
    """In-process cache configuration."""

    available_dates_ttl_seconds: float = Field(default=30.0, ge=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="WARNING")  # DEBUG, INFO, WARNING, ERROR
    format: str = Field(default="%(message)s")


class Config(BaseModel):
    """
    Main configuration for chart-intake.

    Loads from TOML file with optional environment variable overrides.
    """

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """
        Load configuration from TOML file with environment variable overrides.

        Environment variables take precedence and follow the pattern:
        CHART_INTAKE_<SECTION>_<KEY> (e.g., CHART_INTAKE_INGEST_BATCH_SIZE)

        All values are gathered into a single dictionary first, then validated
        by Pydantic to ensure consistent type checking and coercion.
        """
        config_dict: dict[str, object] = {}

        if config_path and config_path.exists():
            config_dict = tomllib.loads(config_path.read_text())

        config_dict = cls._merge_env_overrides(config_dict)
        return cls.model_validate(config_dict)

    @staticmethod
    def _section(config_dict: dict[str, object], name: str) -> dict[str, object]:
        section = config_dict.setdefault(name, {})
        if not isinstance(section, dict):
            section = {}
            config_dict[name] = section
        return section

    @classmethod
    def _merge_env_overrides(cls, config_dict: dict[str, object]) -> dict[str, object]:
        """
        Merge environment variable overrides into config dictionary.

        Returns a new dictionary with env vars applied, ready for Pydantic validation.
        """
        env_prefix = "CHART_INTAKE_"

        database = cls._section(config_dict, "database")
        if db_path := os.getenv(f"{env_prefix}DATABASE_PATH"):
            database["path"] = db_path

        ingest = cls._section(config_dict, "ingest")
        if batch_size := os.getenv(f"{env_prefix}INGEST_BATCH_SIZE"):
            ingest["batch_size"] = batch_size
        if fan_out := os.getenv(f"{env_prefix}INGEST_FAN_OUT"):
            ingest["fan_out"] = fan_out

        sources = cls._section(config_dict, "sources")
        if feed_url := os.getenv(f"{env_prefix}SOURCES_FEED_URL"):
            sources["feed_url"] = feed_url
        if flatfile_url := os.getenv(f"{env_prefix}SOURCES_FLATFILE_BASE_URL"):
            sources["flatfile_base_url"] = flatfile_url
        if timeout := os.getenv(f"{env_prefix}SOURCES_TIMEOUT_S"):
            sources["timeout_s"] = timeout
        if market := os.getenv(f"{env_prefix}SOURCES_PLAYLIST_MARKET"):
            sources["playlist_market"] = market

        # API credentials from env
        if spotify_id := os.getenv("SPOTIFY_CLIENT_ID"):
            sources["spotify_client_id"] = spotify_id
        if spotify_secret := os.getenv("SPOTIFY_CLIENT_SECRET"):
            sources["spotify_client_secret"] = spotify_secret

        dedup = cls._section(config_dict, "dedup")
        for kind in ("playlist", "json_api", "csv_upload"):
            if action := os.getenv(f"{env_prefix}DEDUP_{kind.upper()}"):
                dedup[kind] = action

        cache = cls._section(config_dict, "cache")
        if dates_ttl := os.getenv(f"{env_prefix}CACHE_AVAILABLE_DATES_TTL_SECONDS"):
            cache["available_dates_ttl_seconds"] = dates_ttl

        logging_config = cls._section(config_dict, "logging")
        if log_level := os.getenv(f"{env_prefix}LOGGING_LEVEL"):
            logging_config["level"] = log_level
        if log_format := os.getenv(f"{env_prefix}LOGGING_FORMAT"):
            logging_config["format"] = log_format

        return config_dict
