from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from scholarlens.config import DEFAULT_MAX_SESSIONS, DEFAULT_STORE_QUOTA_BYTES
from scholarlens.domain.errors import (
    NothingToExportError,
    QuotaExceededError,
    StoreCorruptedError,
)
from scholarlens.domain.research import ResearchSession
from scholarlens.infrastructure.stores.models import Base, KeyValueModel
from scholarlens.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from scholarlens.utils.logging_config import LogFiles, Logger

logger = logging.getLogger(__name__)

STORAGE_KEY = "scholarlens_search_history"

QUOTA_WARNING = (
    "Could not save the search. Local storage exceeded its quota. "
    "Try clearing the history to free up space."
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SaveResult:
    """Outcome of ``SessionCacheStore.save``.

    ``sessions`` is what the store should hold after the save, newest first,
    whether or not the write itself succeeded.
    """

    sessions: List[ResearchSession] = field(default_factory=list)
    written: bool = True
    quota_exceeded: bool = False

    @property
    def warning(self) -> Optional[str]:
        return QUOTA_WARNING if self.quota_exceeded else None


class SessionCacheStore:
    """Bounded research-session history kept as one JSON blob.

    Sessions are deduplicated by query, capped at ``max_sessions`` (most
    recently saved first) and always persisted without ``contentHtml``.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        quota_bytes: int = DEFAULT_STORE_QUOTA_BYTES,
        auto_create_schema: bool = True,
    ):
        self.db_url = db_url or get_db_url()
        self.max_sessions = max(1, int(max_sessions))
        self.quota_bytes = max(1, int(quota_bytes))
        self._provider = SessionProvider(self.db_url)
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    def load(self) -> List[ResearchSession]:
        raw = self._read_raw()
        if raw is None:
            return []
        try:
            sessions = _decode(raw)
        except (ValueError, TypeError, OverflowError, RecursionError, StoreCorruptedError) as exc:
            logger.error("Failed to parse search history, clearing store: %s", exc)
            Logger.error(f"Search history reset after parse failure: {exc}", file=LogFiles.ERROR)
            self._delete_raw()
            return []
        return _newest_first(sessions)

    def save(self, session: ResearchSession) -> SaveResult:
        existing = [s for s in self.load() if s.query != session.query]
        updated = [session.stripped(), *existing][: self.max_sessions]

        try:
            self._write_raw(_encode(updated))
        except QuotaExceededError as exc:
            logger.warning("Failed to save search history: %s", exc)
            Logger.warning(
                f"Quota exceeded saving query={session.query!r}: {exc}", file=LogFiles.STORE
            )
            return SaveResult(sessions=_newest_first(updated), written=False, quota_exceeded=True)

        logger.info(
            "Saved session query=%r timestamp=%s results=%d stored=%d",
            session.query,
            session.timestamp,
            len(session.results),
            len(updated),
        )
        return SaveResult(sessions=_newest_first(updated))

    def delete_by_timestamp(self, timestamp: int) -> List[ResearchSession]:
        updated = [s for s in self.load() if s.timestamp != timestamp]
        try:
            self._write_raw(_encode(updated))
        except QuotaExceededError as exc:
            logger.error("Failed to update search history after deletion: %s", exc)
        return updated

    def get(self, timestamp: int) -> Optional[ResearchSession]:
        for session in self.load():
            if session.timestamp == timestamp:
                return session
        return None

    def export_all(self) -> str:
        sessions = self.load()
        if not sessions:
            raise NothingToExportError("No search history to export.")
        return _dump_export(sessions)

    def export_one(self, session: ResearchSession) -> str:
        return _dump_export([session])

    def _read_raw(self) -> Optional[str]:
        with self._provider.session() as db:
            row = db.execute(
                select(KeyValueModel).where(KeyValueModel.key == STORAGE_KEY)
            ).scalar_one_or_none()
            return row.value if row else None

    def _write_raw(self, value: str) -> None:
        size = len(value.encode("utf-8"))
        if size > self.quota_bytes:
            raise QuotaExceededError(size, self.quota_bytes)

        try:
            with self._provider.session() as db:
                row = db.get(KeyValueModel, STORAGE_KEY)
                if row is None:
                    row = KeyValueModel(key=STORAGE_KEY)
                row.value = value
                row.updated_at = _utcnow()
                db.add(row)
                db.commit()
        except OperationalError as exc:
            if "full" in str(exc).lower():
                raise QuotaExceededError(size, self.quota_bytes) from exc
            raise

    def _delete_raw(self) -> None:
        with self._provider.session() as db:
            row = db.get(KeyValueModel, STORAGE_KEY)
            if row is not None:
                db.delete(row)
                db.commit()

    def close(self) -> None:
        self._provider.engine.dispose()


def _encode(sessions: List[ResearchSession]) -> str:
    return json.dumps({"sessions": [s.to_dict() for s in sessions]}, ensure_ascii=False)


def _decode(raw: str) -> List[ResearchSession]:
    data: Any = json.loads(raw)
    if isinstance(data, dict):
        entries = data.get("sessions")
    else:
        entries = data
    if not isinstance(entries, list):
        raise StoreCorruptedError("search history blob has no session list")
    return [ResearchSession.from_dict(entry) for entry in entries]


def _newest_first(sessions: List[ResearchSession]) -> List[ResearchSession]:
    return sorted(sessions, key=lambda s: s.timestamp, reverse=True)


def _dump_export(sessions: List[ResearchSession]) -> str:
    payload: List[Dict[str, Any]] = [s.to_dict() for s in sessions]
    return json.dumps(payload, ensure_ascii=False, indent=2)
