"""Test configuration precedence: Env > TOML > Defaults."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from chart_intake.config import Config
from chart_intake.policy import UploadAction

TOML_CONTENT = """
[database]
path = "custom_charts.sqlite"

[ingest]
batch_size = 25
fan_out = 4

[sources]
feed_url = "https://feed.example.com/charts"
playlist_market = "GB"

[sources.playlist_ids]
us = "usplaylist"

[dedup]
playlist = "replace"

[cache]
available_dates_ttl_seconds = 5

[logging]
level = "DEBUG"
"""


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "chart-intake.toml"
    path.write_text(TOML_CONTENT)
    return path


def test_defaults():
    config = Config.load()

    assert config.database.path == Path("charts.sqlite")
    assert config.ingest.batch_size == 50
    assert config.ingest.fan_out == 10
    assert config.cache.available_dates_ttl_seconds == 30.0
    assert config.dedup.csv_upload is None
    assert config.sources.spotify_client_id is None


def test_toml_loading(config_path):
    config = Config.load(config_path)

    assert config.database.path == Path("custom_charts.sqlite")
    assert config.ingest.batch_size == 25
    assert config.ingest.fan_out == 4
    assert config.sources.feed_url == "https://feed.example.com/charts"
    assert config.sources.playlist_market == "GB"
    assert config.sources.playlist_ids == {"us": "usplaylist"}
    assert config.dedup.playlist == UploadAction.REPLACE
    assert config.cache.available_dates_ttl_seconds == 5
    assert config.logging.level == "DEBUG"


def test_missing_file_uses_defaults(tmp_path):
    config = Config.load(tmp_path / "absent.toml")

    assert config.ingest.batch_size == 50


def test_env_overrides_toml(config_path, monkeypatch):
    monkeypatch.setenv("CHART_INTAKE_INGEST_BATCH_SIZE", "100")
    monkeypatch.setenv("CHART_INTAKE_DATABASE_PATH", "env.sqlite")
    monkeypatch.setenv("CHART_INTAKE_DEDUP_CSV_UPLOAD", "update")
    monkeypatch.setenv("CHART_INTAKE_LOGGING_LEVEL", "ERROR")

    config = Config.load(config_path)

    assert config.ingest.batch_size == 100
    assert config.ingest.fan_out == 4
    assert config.database.path == Path("env.sqlite")
    assert config.dedup.csv_upload == UploadAction.UPDATE
    assert config.dedup.playlist == UploadAction.REPLACE
    assert config.logging.level == "ERROR"


def test_spotify_credentials_from_env(monkeypatch):
    monkeypatch.setenv("SPOTIFY_CLIENT_ID", "client-id")
    monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "client-secret")

    config = Config.load()

    assert config.sources.spotify_client_id == "client-id"
    assert config.sources.spotify_client_secret == "client-secret"


def test_invalid_values_rejected(monkeypatch):
    monkeypatch.setenv("CHART_INTAKE_INGEST_BATCH_SIZE", "0")

    with pytest.raises(ValidationError):
        Config.load()


def test_invalid_dedup_action_rejected(monkeypatch):
    monkeypatch.setenv("CHART_INTAKE_DEDUP_PLAYLIST", "show-warning")

    with pytest.raises(ValidationError):
        Config.load()
