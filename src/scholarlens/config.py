from __future__ import annotations

import os
from dataclasses import dataclass

from loguru import logger

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "imagen-3.0-generate-002"
DEFAULT_DB_URL = "sqlite:///data/scholarlens.db"
DEFAULT_MAX_SESSIONS = 20
DEFAULT_STORE_QUOTA_BYTES = 5 * 1024 * 1024
LOG_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer; using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number; using {default}")
        return default


def _env_log_level(name: str, default: str = "INFO") -> str:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    if raw.upper() not in LOG_LEVEL_NAMES:
        logger.warning(f"{name}={raw!r} is not a log level; using {default}")
        return default
    return raw.upper()


@dataclass
class ScholarLensConfig:
    gemini_api_key: str = ""
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    request_timeout: float = 90.0
    request_interval: float = 0.0

    db_url: str = DEFAULT_DB_URL
    max_sessions: int = DEFAULT_MAX_SESSIONS
    store_quota_bytes: int = DEFAULT_STORE_QUOTA_BYTES

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ScholarLensConfig":
        config = cls(
            gemini_api_key=(os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or "").strip(),
            gemini_base_url=os.getenv("SCHOLARLENS_GEMINI_BASE_URL", DEFAULT_GEMINI_BASE_URL).strip()
            or DEFAULT_GEMINI_BASE_URL,
            text_model=os.getenv("SCHOLARLENS_TEXT_MODEL", DEFAULT_TEXT_MODEL).strip()
            or DEFAULT_TEXT_MODEL,
            image_model=os.getenv("SCHOLARLENS_IMAGE_MODEL", DEFAULT_IMAGE_MODEL).strip()
            or DEFAULT_IMAGE_MODEL,
            request_timeout=_env_float("SCHOLARLENS_REQUEST_TIMEOUT", 90.0),
            request_interval=max(0.0, _env_float("SCHOLARLENS_REQUEST_INTERVAL", 0.0)),
            db_url=os.getenv("SCHOLARLENS_DB_URL", DEFAULT_DB_URL).strip() or DEFAULT_DB_URL,
            max_sessions=max(1, _env_int("SCHOLARLENS_MAX_SESSIONS", DEFAULT_MAX_SESSIONS)),
            store_quota_bytes=max(
                1, _env_int("SCHOLARLENS_STORE_QUOTA_BYTES", DEFAULT_STORE_QUOTA_BYTES)
            ),
            log_level=_env_log_level("SCHOLARLENS_LOG_LEVEL"),
        )
        if not config.gemini_api_key:
            logger.warning(
                "GEMINI_API_KEY is not set; searches will fail until a key is configured."
            )
        return config
