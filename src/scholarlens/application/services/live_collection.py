"""LiveSourceCollection: the mutable source list observed by the user.

All writers (fan-out population, cover patches, selection toggles and
rehydration) go through keyed replace operations so that interleaved
asynchronous patches commute. Every mutation runs without awaiting, which
makes each read-patch-write atomic under cooperative scheduling.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, List, Optional

from scholarlens.domain.research import SourceRecord

logger = logging.getLogger(__name__)

PatchListener = Callable[[str, SourceRecord], None]


class LiveSourceCollection:
    def __init__(self, session_key: Optional[int] = None):
        self._session_key = session_key
        self._records: List[SourceRecord] = []
        self._listeners: List[PatchListener] = []

    @property
    def session_key(self) -> Optional[int]:
        return self._session_key

    def replace_all(self, records: List[SourceRecord], *, session_key: Optional[int]) -> None:
        """Publish a new session's records; later patches must carry ``session_key``."""
        self._session_key = session_key
        self._records = list(records)

    def is_current(self, session_key: Optional[int]) -> bool:
        return session_key == self._session_key

    def patch(self, url: str, /, *, session_key: Optional[int], **changes) -> bool:
        """Replace the one record matching ``url``; other records stay as-is.

        Returns False when the patch targets a superseded session or an
        unknown URL.
        """
        if not self.is_current(session_key):
            logger.debug(
                "Discarding stale patch url=%s session=%s current=%s",
                url,
                session_key,
                self._session_key,
            )
            return False

        changes.pop("url", None)
        for index, record in enumerate(self._records):
            if record.url != url:
                continue
            updated = replace(record, **changes)
            self._records[index] = updated
            self._notify(url, updated)
            return True
        return False

    def toggle_selected(self, url: str) -> Optional[SourceRecord]:
        record = self.get(url)
        if record is None:
            return None
        self.patch(url, session_key=self._session_key, selected=not record.selected)
        return self.get(url)

    def clear_selection(self) -> None:
        self._records = [replace(r, selected=False) if r.selected else r for r in self._records]

    def selected(self) -> List[SourceRecord]:
        return [r for r in self._records if r.selected]

    def get(self, url: str) -> Optional[SourceRecord]:
        for record in self._records:
            if record.url == url:
                return record
        return None

    def snapshot(self) -> List[SourceRecord]:
        return list(self._records)

    def subscribe(self, listener: PatchListener) -> Callable[[], None]:
        """Register a patch listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, url: str, record: SourceRecord) -> None:
        for listener in list(self._listeners):
            try:
                listener(url, record)
            except Exception as exc:
                logger.warning("Patch listener failed for %s: %s", url, exc)
