from __future__ import annotations

from scholarlens.config import DEFAULT_MAX_SESSIONS, ScholarLensConfig


def test_from_env_defaults(monkeypatch):
    for name in (
        "GEMINI_API_KEY",
        "API_KEY",
        "SCHOLARLENS_MAX_SESSIONS",
        "SCHOLARLENS_DB_URL",
        "SCHOLARLENS_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    config = ScholarLensConfig.from_env()

    assert config.gemini_api_key == ""
    assert config.max_sessions == DEFAULT_MAX_SESSIONS == 20
    assert config.db_url.startswith("sqlite:///")
    assert config.log_level == "INFO"


def test_from_env_reads_overrides(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("API_KEY", "legacy-key")
    monkeypatch.setenv("SCHOLARLENS_MAX_SESSIONS", "5")
    monkeypatch.setenv("SCHOLARLENS_STORE_QUOTA_BYTES", "2048")
    monkeypatch.setenv("SCHOLARLENS_REQUEST_TIMEOUT", "12.5")
    monkeypatch.setenv("SCHOLARLENS_LOG_LEVEL", "debug")

    config = ScholarLensConfig.from_env()

    assert config.gemini_api_key == "legacy-key"
    assert config.max_sessions == 5
    assert config.store_quota_bytes == 2048
    assert config.request_timeout == 12.5
    assert config.log_level == "DEBUG"


def test_from_env_ignores_malformed_numbers(monkeypatch):
    monkeypatch.setenv("SCHOLARLENS_MAX_SESSIONS", "many")
    monkeypatch.setenv("SCHOLARLENS_REQUEST_TIMEOUT", "soon")

    config = ScholarLensConfig.from_env()

    assert config.max_sessions == DEFAULT_MAX_SESSIONS
    assert config.request_timeout == 90.0


def test_from_env_falls_back_on_unknown_log_level(monkeypatch):
    monkeypatch.setenv("SCHOLARLENS_LOG_LEVEL", "verbose")
    monkeypatch.setenv("SCHOLARLENS_REQUEST_INTERVAL", "0.25")

    config = ScholarLensConfig.from_env()

    assert config.log_level == "INFO"
    assert config.request_interval == 0.25
