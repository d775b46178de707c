import json

import pytest

from settings import ConfigError, load_config

_KEYS = (
    "SOURCE_URL",
    "POLL_INTERVAL_MINUTES",
    "SNAPSHOT_PATH",
    "INGEST_DB_PATH",
    "START_RUNNING",
    "HTTP_TIMEOUT_SECONDS",
    "LOG_LEVEL",
    "APP_ROOT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for k in _KEYS:
        monkeypatch.delenv(k, raising=False)


def test_missing_source_url(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_defaults_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("SOURCE_URL", "https://example.com/x.xml")
    cfg = load_config(tmp_path)
    assert cfg.source_url == "https://example.com/x.xml"
    assert cfg.poll_interval_minutes == 60
    assert cfg.interval_seconds == 3600.0
    assert cfg.snapshot_path == tmp_path.resolve() / "data.json"
    assert cfg.db_path == tmp_path.resolve() / "ingest.sqlite"
    assert cfg.start_running is False
    assert cfg.http_timeout_seconds == 30.0


def test_interval_is_clamped(tmp_path, monkeypatch):
    monkeypatch.setenv("SOURCE_URL", "https://example.com/x.xml")
    monkeypatch.setenv("POLL_INTERVAL_MINUTES", "0")
    assert load_config(tmp_path).poll_interval_minutes == 1
    monkeypatch.setenv("POLL_INTERVAL_MINUTES", "soon")
    assert load_config(tmp_path).poll_interval_minutes == 60


def test_appsettings_file_with_env_override(tmp_path, monkeypatch):
    (tmp_path / "appsettings.json").write_text(
        json.dumps({"DataSource": {"SourceUrl": "https://pastebin.com/PMQueqDV", "PollIntervalMinutes": 5}}),
        encoding="utf-8",
    )
    cfg = load_config(tmp_path)
    assert cfg.source_url == "https://pastebin.com/PMQueqDV"
    assert cfg.poll_interval_minutes == 5

    monkeypatch.setenv("POLL_INTERVAL_MINUTES", "15")
    monkeypatch.setenv("START_RUNNING", "yes")
    cfg = load_config(tmp_path)
    assert cfg.poll_interval_minutes == 15
    assert cfg.start_running is True


def test_broken_appsettings_is_config_error(tmp_path):
    (tmp_path / "appsettings.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)
