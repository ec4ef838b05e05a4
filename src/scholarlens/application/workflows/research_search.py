"""ResearchSearchWorkflow: query to persisted, progressively enriched session.

Control flow per query:
grounded search -> fan-out enrichment -> publish + first save (stripped) ->
cover-art patch loop -> final save under a new timestamp (stripped).

The workflow also owns the active session the user is looking at: selection
state, on-demand content rehydration, translation, reader extras and the
optional brainstorming map and article generation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from scholarlens.application.ports.enrichment_port import EnrichmentClientPort
from scholarlens.application.services.enrichment_pipeline import (
    CoverArtStage,
    FanOutEnrichmentStage,
    SourceAdvisory,
)
from scholarlens.application.services.live_collection import LiveSourceCollection
from scholarlens.application.services.rehydration import RehydrationService
from scholarlens.domain.errors import (
    ContentUnavailableError,
    InvalidQueryError,
    NoSelectionError,
    ScholarLensError,
    UnsupportedLanguageError,
)
from scholarlens.domain.research import (
    TRANSLATION_LANGUAGES,
    ReaderExtras,
    ResearchSession,
    SourceRecord,
)
from scholarlens.infrastructure.stores.session_cache_store import (
    QUOTA_WARNING,
    SaveResult,
    SessionCacheStore,
)
from scholarlens.utils.logging_config import LogFiles, Logger, set_trace_id

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Dict[str, Any]], None]


def _epoch_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class SearchOutcome:
    session: ResearchSession
    advisory: Optional[SourceAdvisory] = None
    quota_warning: bool = False
    failed_sources: List[Tuple[str, str]] = field(default_factory=list)
    stored_sessions: List[ResearchSession] = field(default_factory=list)
    cover_task: Optional["asyncio.Task[SearchOutcome]"] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "advisory": self.advisory.value if self.advisory else None,
            "advisoryMessage": self.advisory.message if self.advisory else None,
            "quotaWarning": self.quota_warning,
            "quotaMessage": QUOTA_WARNING if self.quota_warning else None,
            "failedSources": [{"url": url, "error": error} for url, error in self.failed_sources],
        }


class ResearchSearchWorkflow:
    def __init__(
        self,
        client: EnrichmentClientPort,
        store: SessionCacheStore,
        *,
        collection: Optional[LiveSourceCollection] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._client = client
        self._store = store
        self.collection = collection or LiveSourceCollection()
        self._clock = clock or _epoch_millis
        self._last_timestamp = 0
        self._generation = 0
        self._fan_out = FanOutEnrichmentStage(client)
        self._covers = CoverArtStage(client)
        self._rehydration = RehydrationService(client)
        self._active: Optional[ResearchSession] = None
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def run(
        self,
        query: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        wait_for_covers: bool = True,
    ) -> SearchOutcome:
        """Run a search to completion.

        With ``wait_for_covers=False`` the call returns after the first save
        and the cover loop keeps running as ``outcome.cover_task``.
        """
        query = (query or "").strip()
        if not query:
            raise InvalidQueryError("Please enter a topic to research.")

        self._generation += 1
        generation = self._generation
        trace_id = set_trace_id()
        emit = on_progress or (lambda phase, data: None)
        Logger.info(f"Search started query={query!r}", file=LogFiles.RESEARCH)

        emit("search", {"message": "Finding relevant sources...", "query": query})
        grounded = await self._client.grounded_search(query)
        emit("search_done", {"summary": grounded.summary, "sources": len(grounded.sources)})

        if grounded.sources:
            emit(
                "enrich",
                {
                    "message": "Analysing content and enriching sources...",
                    "total": len(grounded.sources),
                },
            )
        fan_out = await self._fan_out.run(grounded.sources, query)

        session_key = self._next_timestamp()
        session = ResearchSession(
            query=query,
            summary=grounded.summary,
            results=fan_out.records,
            timestamp=session_key,
        )
        if generation == self._generation:
            self.collection.replace_all(fan_out.records, session_key=session_key)
            self._active = session
        else:
            logger.info("Newer search started; not publishing results for query=%r", query)
        emit(
            "enrich_done",
            {
                "timestamp": session_key,
                "results": [r.to_dict() for r in fan_out.records],
                "failed": len(fan_out.failed),
                "advisory": fan_out.advisory.value if fan_out.advisory else None,
            },
        )

        saved = self._store.save(session)
        emit("saved", {"timestamp": session_key, "quotaWarning": saved.quota_exceeded})
        Logger.info(
            f"Session saved query={query!r} results={len(fan_out.records)} "
            f"failed={len(fan_out.failed)} trace={trace_id}",
            file=LogFiles.RESEARCH,
        )

        outcome = SearchOutcome(
            session=session,
            advisory=fan_out.advisory,
            quota_warning=saved.quota_exceeded,
            failed_sources=list(fan_out.failed),
            stored_sessions=saved.sessions,
        )
        if not fan_out.records:
            return outcome

        emit("covers", {"message": "Generating cover art...", "total": len(fan_out.records)})
        cover_loop = self._finish_covers(session, outcome, emit)
        if wait_for_covers:
            return await cover_loop

        task = asyncio.ensure_future(cover_loop)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        outcome.cover_task = task
        return outcome

    async def _finish_covers(
        self,
        session: ResearchSession,
        outcome: SearchOutcome,
        emit: ProgressCallback,
    ) -> SearchOutcome:
        session_key = session.timestamp
        records = await self._covers.run(self.collection, session.results, session_key=session_key)

        still_current = self.collection.is_current(session_key)
        final = replace(
            session,
            results=records,
            timestamp=self._next_timestamp(),
            selection_mode_active=False,
        )
        active = self._active if still_current else None
        if active is not None:
            final = replace(final, brainstorming_data=active.brainstorming_data)

        saved = self._store.save(final)
        if active is not None:
            # Selection mode is view state; only the stored copy drops it.
            self._active = replace(final, selection_mode_active=active.selection_mode_active)
        emit("final_saved", {"timestamp": final.timestamp, "quotaWarning": saved.quota_exceeded})

        return replace(
            outcome,
            session=final,
            quota_warning=outcome.quota_warning or saved.quota_exceeded,
            stored_sessions=saved.sessions,
            cover_task=None,
        )

    def _next_timestamp(self) -> int:
        ts = max(int(self._clock()), self._last_timestamp + 1)
        self._last_timestamp = ts
        return ts

    # ------------------------------------------------------------------
    # Active session
    # ------------------------------------------------------------------

    @property
    def active_session(self) -> Optional[ResearchSession]:
        """The active session with the live records, including transient content."""
        if self._active is None:
            return None
        return self._active.with_results(self.collection.snapshot())

    def open_session(self, session: ResearchSession) -> ResearchSession:
        """Make a stored session active; its records carry no content until rehydrated."""
        self._generation += 1
        self.collection.replace_all(session.results, session_key=session.timestamp)
        self._active = session
        return self.active_session

    def open_stored(self, timestamp: int) -> Optional[ResearchSession]:
        session = self._store.get(timestamp)
        if session is None:
            return None
        return self.open_session(session)

    def toggle_selection_mode(self) -> bool:
        self._require_active()
        enabled = not self._active.selection_mode_active
        self._active = replace(self._active, selection_mode_active=enabled)
        if not enabled:
            self.collection.clear_selection()
        return enabled

    def toggle_selected(self, url: str) -> Optional[SourceRecord]:
        self._require_active()
        if not self._active.selection_mode_active:
            return self.collection.get(url)
        return self.collection.toggle_selected(url)

    async def ensure_content(self, url: str) -> str:
        active = self._require_active()
        return await self._rehydration.ensure_content(
            self.collection,
            url,
            active.query,
            session_key=self.collection.session_key,
        )

    async def brainstorm(self, theme: str) -> SaveResult:
        active = self._require_active()
        records = self.collection.snapshot()
        data = await self._client.generate_brainstorming_map(records, theme)
        updated = replace(
            active,
            results=records,
            brainstorming_data=data,
            timestamp=self._next_timestamp(),
        )
        self._active = updated
        return self._store.save(updated)

    async def generate_article(self, topic: Optional[str] = None) -> str:
        active = self._require_active()
        selected = self.collection.selected()
        if not selected:
            raise NoSelectionError("Select at least one source to generate the article.")
        return await self._client.generate_article(selected, topic or active.query)

    async def translate(self, text: str, target_language: str = "English") -> str:
        if target_language not in TRANSLATION_LANGUAGES:
            choices = ", ".join(TRANSLATION_LANGUAGES)
            raise UnsupportedLanguageError(
                f"Cannot translate to {target_language!r}; choose one of {choices}."
            )
        if not (text or "").strip():
            return ""
        return await self._client.translate_text(text, target_language)

    async def reader_extras(self, url: str) -> ReaderExtras:
        """Newspaper snippets and a comic strip for one opened source.

        Sources whose content cannot be loaded get no extras.
        """
        try:
            content = await self.ensure_content(url)
        except ContentUnavailableError as exc:
            logger.info("No reader extras for %s: %s", url, exc.reason)
            return ReaderExtras(url=url)

        title = self.collection.get(url).title
        comic_image_url, comic_panels, snippets = await asyncio.gather(
            self._client.generate_comic_image(title),
            self._client.generate_comic_panels(title),
            self._client.generate_newspaper_snippets(content, title),
        )
        return ReaderExtras(
            url=url,
            comic_image_url=comic_image_url,
            comic_panels=list(comic_panels),
            snippets=list(snippets),
        )

    def _require_active(self) -> ResearchSession:
        if self._active is None:
            raise ScholarLensError("No active research session.")
        return self._active

    async def aclose(self) -> None:
        """Wait for background cover loops started with ``wait_for_covers=False``."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
