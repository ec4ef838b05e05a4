from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, Field

from scholarlens.api.streaming import StreamEvent, wrap_generator
from scholarlens.application.ports.enrichment_port import EnrichmentClientPort
from scholarlens.application.workflows.research_search import ResearchSearchWorkflow
from scholarlens.config import ScholarLensConfig
from scholarlens.domain.errors import (
    ConfigurationError,
    ContentUnavailableError,
    EnrichmentError,
    NoSelectionError,
    NothingToExportError,
    ScholarLensError,
    SourceNotFoundError,
    UnsupportedLanguageError,
)
from scholarlens.domain.research import SourceRecord
from scholarlens.infrastructure.adapters import build_enrichment_client
from scholarlens.infrastructure.stores.export import (
    article_filename,
    export_filename,
    render_article_html,
)
from scholarlens.infrastructure.stores.session_cache_store import SessionCacheStore
from scholarlens.utils.logging_config import LogFiles, Logger

logger = logging.getLogger(__name__)

router = APIRouter()


class ResearchContext:
    """Long-lived collaborators shared by the research routes."""

    def __init__(
        self,
        *,
        client: Optional[EnrichmentClientPort] = None,
        store: Optional[SessionCacheStore] = None,
        config: Optional[ScholarLensConfig] = None,
    ):
        self.config = config or ScholarLensConfig.from_env()
        self.store = store or SessionCacheStore(
            self.config.db_url,
            max_sessions=self.config.max_sessions,
            quota_bytes=self.config.store_quota_bytes,
        )
        self._client = client
        self._workflow: Optional[ResearchSearchWorkflow] = None

    @property
    def client(self) -> EnrichmentClientPort:
        if self._client is None:
            self._client = build_enrichment_client(self.config)
        return self._client

    @property
    def workflow(self) -> ResearchSearchWorkflow:
        if self._workflow is None:
            self._workflow = ResearchSearchWorkflow(self.client, self.store)
        return self._workflow

    async def aclose(self) -> None:
        if self._workflow is not None:
            await self._workflow.aclose()
        if self._client is not None:
            await self._client.close()
        self.store.close()


_context: Optional[ResearchContext] = None

# Searches whose stream closed before they finished.
_detached_searches: Set[asyncio.Task] = set()


def get_research_context() -> ResearchContext:
    global _context
    if _context is None:
        _context = ResearchContext()
    return _context


async def shutdown_research_context() -> None:
    """Let running searches settle, then release the client and the store."""
    global _context
    if _detached_searches:
        await asyncio.gather(*list(_detached_searches), return_exceptions=True)
    if _context is not None:
        await _context.aclose()
        _context = None


def _workflow() -> ResearchSearchWorkflow:
    try:
        return get_research_context().workflow
    except ConfigurationError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


class SearchRequest(BaseModel):
    query: str = Field(..., max_length=2000)


class SourceRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=4096)


class BrainstormRequest(BaseModel):
    theme: str = Field(..., min_length=1, max_length=500)


class TranslateRequest(BaseModel):
    text: str = Field(..., max_length=200_000)
    targetLanguage: str = "English"


class ArticleRequest(BaseModel):
    topic: Optional[str] = None


class ArticleExportRequest(BaseModel):
    html: str
    query: str = ""


class SessionListResponse(BaseModel):
    sessions: List[Dict[str, Any]]


class ContentResponse(BaseModel):
    url: str
    available: bool
    contentHtml: Optional[str] = None
    fallbackUrl: Optional[str] = None
    reason: Optional[str] = None


def _record_event(url: str, record: SourceRecord) -> StreamEvent:
    return StreamEvent(
        type="patch",
        data={"phase": "cover", "url": url, "record": record.without_content().to_dict()},
    )


def _forget_detached_search(task: asyncio.Task) -> None:
    _detached_searches.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Detached search failed: %s", exc)
        Logger.warning(f"Detached search failed: {exc}", file=LogFiles.API)


async def _search_stream(workflow: ResearchSearchWorkflow, query: str):
    """SSE generator: progress phases, per-record patches, then the result."""
    queue: asyncio.Queue = asyncio.Queue()
    own_key: Dict[str, Optional[int]] = {"timestamp": None}

    def _on_progress(phase: str, data: Dict[str, Any]) -> None:
        if phase == "enrich_done":
            own_key["timestamp"] = data.get("timestamp")
        queue.put_nowait(StreamEvent(type=phase, data={"phase": phase, **data}))

    def _on_patch(url: str, record: SourceRecord) -> None:
        # Patches are only applied to the current session, so a key mismatch
        # means the patch belongs to another search sharing the collection.
        if own_key["timestamp"] is not None and workflow.collection.is_current(own_key["timestamp"]):
            queue.put_nowait(_record_event(url, record))

    unsubscribe = workflow.collection.subscribe(_on_patch)
    task = asyncio.ensure_future(workflow.run(query, on_progress=_on_progress))
    try:
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                yield getter.result()
                continue
            getter.cancel()
            break

        while not queue.empty():
            yield queue.get_nowait()

        try:
            outcome = task.result()
        except ScholarLensError as exc:
            logger.warning("Search failed query=%r error=%s", query, exc)
            Logger.warning(f"Search stream failed query={query!r}: {exc}", file=LogFiles.API)
            yield StreamEvent(
                type="error",
                message=f"The search failed: {exc}",
                data={"retryable": exc.retryable},
            )
            return
        yield StreamEvent(type="result", data=outcome.to_dict())
    finally:
        unsubscribe()
        if not task.done():
            _detached_searches.add(task)
            task.add_done_callback(_forget_detached_search)


@router.post("/research/search")
async def search(req: SearchRequest):
    query = (req.query or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="query is required")

    workflow = _workflow()
    return StreamingResponse(
        wrap_generator(_search_stream(workflow, query), workflow="research_search"),
        media_type="text/event-stream",
    )


@router.get("/research/sessions", response_model=SessionListResponse)
def list_sessions():
    sessions = get_research_context().store.load()
    return SessionListResponse(sessions=[s.to_dict() for s in sessions])


@router.delete("/research/sessions/{timestamp}", response_model=SessionListResponse)
def delete_session(timestamp: int):
    sessions = get_research_context().store.delete_by_timestamp(timestamp)
    return SessionListResponse(sessions=[s.to_dict() for s in sessions])


def _attachment_headers(filename: str) -> Dict[str, str]:
    # Header values must be latin-1; queries may not be.
    safe = filename.encode("ascii", "ignore").decode("ascii").replace('"', "")
    return {"Content-Disposition": f'attachment; filename="{safe}"'}


def _json_attachment(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/json",
        headers=_attachment_headers(filename),
    )


@router.get("/research/sessions/export")
def export_all_sessions():
    store = get_research_context().store
    try:
        content = store.export_all()
    except NothingToExportError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _json_attachment(content, export_filename())


@router.get("/research/sessions/{timestamp}/export")
def export_session(timestamp: int):
    store = get_research_context().store
    session = store.get(timestamp)
    if session is None:
        raise HTTPException(status_code=404, detail="session not found")
    return _json_attachment(store.export_one(session), export_filename(session))


@router.post("/research/sessions/{timestamp}/open")
def open_session(timestamp: int):
    session = _workflow().open_stored(timestamp)
    if session is None:
        raise HTTPException(status_code=404, detail="session not found")
    return session.to_dict()


def _require_active_workflow() -> ResearchSearchWorkflow:
    workflow = _workflow()
    if workflow.active_session is None:
        raise HTTPException(status_code=409, detail="no active research session")
    return workflow


@router.get("/research/active")
def active_session():
    return _require_active_workflow().active_session.to_dict()


@router.get("/research/active/export")
def export_active_session():
    workflow = _require_active_workflow()
    session = workflow.active_session
    store = get_research_context().store
    return _json_attachment(store.export_one(session), export_filename(session))


@router.post("/research/sources/content", response_model=ContentResponse)
async def source_content(req: SourceRequest):
    workflow = _require_active_workflow()
    try:
        content = await workflow.ensure_content(req.url)
    except SourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ContentUnavailableError as exc:
        return ContentResponse(
            url=req.url,
            available=False,
            fallbackUrl=exc.url,
            reason=exc.reason,
        )
    return ContentResponse(url=req.url, available=True, contentHtml=content)


@router.post("/research/sources/extras")
async def source_extras(req: SourceRequest):
    workflow = _require_active_workflow()
    try:
        extras = await workflow.reader_extras(req.url)
    except SourceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return extras.to_dict()


@router.post("/research/translate")
async def translate(req: TranslateRequest):
    try:
        text = await _workflow().translate(req.text, req.targetLanguage)
    except UnsupportedLanguageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EnrichmentError as exc:
        raise HTTPException(status_code=502, detail=f"translation failed: {exc}") from exc
    return {"text": text, "targetLanguage": req.targetLanguage}


@router.post("/research/selection-mode")
def toggle_selection_mode():
    enabled = _require_active_workflow().toggle_selection_mode()
    return {"selectionMode": enabled}


@router.post("/research/sources/select")
def toggle_source_selection(req: SourceRequest):
    record = _require_active_workflow().toggle_selected(req.url)
    if record is None:
        raise HTTPException(status_code=404, detail="source not found")
    return record.without_content().to_dict()


@router.post("/research/brainstorm")
async def brainstorm(req: BrainstormRequest):
    workflow = _require_active_workflow()
    try:
        saved = await workflow.brainstorm(req.theme)
    except EnrichmentError as exc:
        raise HTTPException(status_code=502, detail=f"brainstorming failed: {exc}") from exc
    data = workflow.active_session.brainstorming_data
    return {
        "brainstormingData": data.to_dict() if data else None,
        "quotaWarning": saved.quota_exceeded,
        "quotaMessage": saved.warning,
    }


@router.post("/research/article")
async def generate_article(req: ArticleRequest):
    workflow = _require_active_workflow()
    try:
        html = await workflow.generate_article(req.topic)
    except NoSelectionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EnrichmentError as exc:
        raise HTTPException(status_code=502, detail=f"article generation failed: {exc}") from exc
    return {"html": html}


@router.post("/research/article/export")
def export_article(req: ArticleExportRequest):
    return Response(
        content=render_article_html(req.html, req.query),
        media_type="text/html",
        headers=_attachment_headers(article_filename(req.query)),
    )
