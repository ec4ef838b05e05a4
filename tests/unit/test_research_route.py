from __future__ import annotations

import asyncio
import json
import logging

import pytest
from fastapi.testclient import TestClient

from scholarlens.api import main as api_main
from scholarlens.api.routes import research as research_route
from scholarlens.application.workflows.research_search import ResearchSearchWorkflow
from scholarlens.config import ScholarLensConfig
from scholarlens.domain.errors import EnrichmentError, GroundedSearchError
from scholarlens.domain.research import (
    BrainstormingData,
    ComicPanel,
    GroundedResponse,
    NewspaperSnippet,
    ProcessedSource,
    ResearchSession,
    SourceRecord,
)
from scholarlens.infrastructure.stores.session_cache_store import SessionCacheStore


def _parse_sse_events(text: str):
    """Parse SSE text into a list of event dicts."""
    events = []
    for line in text.split("\n"):
        if line.startswith("data: "):
            payload = line[6:].strip()
            if payload == "[DONE]":
                continue
            events.append(json.loads(payload))
    return events


class _FakeClient:
    def __init__(self):
        self.search_error = None
        self.content = "<p>rehydrated</p>"
        self.brainstorm_error = None
        self.translate_error = None
        self.closed = False

    async def grounded_search(self, query):
        if self.search_error is not None:
            raise self.search_error
        return GroundedResponse.build(
            f"Summary for {query}", ["https://a.example", "https://b.example"]
        )

    async def enrich_source(self, uri, query):
        if uri == "https://b.example" and self.content is None:
            return ProcessedSource.failure(uri, "blocked")
        return ProcessedSource(
            title=f"Title {uri}",
            url=uri,
            rating=4.0,
            brief_summary="brief",
            content_html=self.content or "",
        )

    async def generate_cover(self, title, summary):
        return "data:image/jpeg;base64,abc"

    async def generate_brainstorming_map(self, results, theme):
        if self.brainstorm_error is not None:
            raise self.brainstorm_error
        return BrainstormingData(central_theme=theme)

    async def generate_article(self, results, topic):
        return f"<h1>{topic}</h1><p>{len(results)} sources</p>"

    async def translate_text(self, text, target_language):
        if self.translate_error is not None:
            raise self.translate_error
        return f"{target_language}: {text}"

    async def generate_newspaper_snippets(self, article_html, title):
        return [NewspaperSnippet(headline="Extra", text=title)]

    async def generate_comic_image(self, topic):
        return ""

    async def generate_comic_panels(self, topic):
        return [ComicPanel(dialogue="a"), ComicPanel(dialogue="b"), ComicPanel(dialogue="c")]

    async def close(self):
        self.closed = True


class _GatedCoverClient(_FakeClient):
    def __init__(self):
        super().__init__()
        self.cover_gates = {}

    async def generate_cover(self, title, summary):
        if title in self.cover_gates:
            await self.cover_gates[title].wait()
        return f"data:image/jpeg;base64,{len(title)}"


class _HeldSearchClient(_FakeClient):
    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def grounded_search(self, query):
        await self.release.wait()
        raise GroundedSearchError("upstream down")


@pytest.fixture
def fake_client():
    return _FakeClient()


@pytest.fixture
def store(tmp_path):
    return SessionCacheStore(db_url=f"sqlite:///{tmp_path / 'api.db'}")


@pytest.fixture
def client(monkeypatch, fake_client, store):
    context = research_route.ResearchContext(
        client=fake_client, store=store, config=ScholarLensConfig()
    )
    monkeypatch.setattr(research_route, "_context", context)
    return TestClient(api_main.app)


def _search(client, query="climate policy"):
    resp = client.post("/api/research/search", json={"query": query})
    assert resp.status_code == 200
    return _parse_sse_events(resp.text)


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_search_streams_progress_patches_and_result(client, store):
    events = _search(client)

    types = [e["type"] for e in events]
    assert types[0] == "search"
    assert types[-1] == "result"
    assert types.count("patch") == 2
    assert "final_saved" in types

    patches = [e for e in events if e["type"] == "patch"]
    assert {p["data"]["url"] for p in patches} == {"https://a.example", "https://b.example"}
    assert all(p["envelope"]["event"] == "patch" for p in patches)
    assert all("contentHtml" not in p["data"]["record"] for p in patches)

    result = events[-1]["data"]
    assert result["session"]["query"] == "climate policy"
    assert len(result["session"]["results"]) == 2
    assert result["quotaWarning"] is False
    assert [e["envelope"]["seq"] for e in events] == list(range(1, len(events) + 1))

    assert store.load()[0].query == "climate policy"


def test_search_rejects_blank_query(client):
    resp = client.post("/api/research/search", json={"query": "   "})

    assert resp.status_code == 400


def test_search_failure_streams_retryable_error(client, fake_client, store):
    fake_client.search_error = GroundedSearchError("upstream down")

    events = _search(client)

    assert events[-1]["type"] == "error"
    assert events[-1]["event"] == "error"
    assert events[-1]["data"]["retryable"] is True
    assert store.load() == []


def test_sessions_list_delete_and_export(client, store):
    store.save(ResearchSession(query="a", summary="s", timestamp=1))
    store.save(ResearchSession(query="b", summary="s", timestamp=2))

    listed = client.get("/api/research/sessions").json()["sessions"]
    assert [s["query"] for s in listed] == ["b", "a"]

    exported = client.get("/api/research/sessions/export")
    assert exported.status_code == 200
    assert "attachment" in exported.headers["content-disposition"]
    assert [s["query"] for s in exported.json()] == ["b", "a"]

    single = client.get("/api/research/sessions/1/export")
    assert single.json()[0]["query"] == "a"
    assert "scholarlens_export_a_" in single.headers["content-disposition"]

    remaining = client.delete("/api/research/sessions/1").json()["sessions"]
    assert [s["query"] for s in remaining] == ["b"]
    assert client.get("/api/research/sessions/1/export").status_code == 404


def test_export_all_empty_is_404(client):
    assert client.get("/api/research/sessions/export").status_code == 404


def test_active_requires_session(client):
    assert client.get("/api/research/active").status_code == 409
    assert client.post("/api/research/sources/content", json={"url": "x"}).status_code == 409


def test_open_session_and_rehydrate_content(client, store):
    store.save(
        ResearchSession(
            query="climate policy",
            summary="s",
            results=[SourceRecord(title="A", url="https://a.example", content_html="<p>old</p>")],
            timestamp=7,
        )
    )

    opened = client.post("/api/research/sessions/7/open")
    assert opened.status_code == 200
    assert "contentHtml" not in opened.json()["results"][0]

    resp = client.post("/api/research/sources/content", json={"url": "https://a.example"})
    assert resp.status_code == 200
    assert resp.json()["available"] is True
    assert resp.json()["contentHtml"] == "<p>rehydrated</p>"

    missing = client.post("/api/research/sources/content", json={"url": "https://zzz.example"})
    assert missing.status_code == 404
    assert client.post("/api/research/sessions/999/open").status_code == 404


def test_rehydrate_failure_returns_fallback_link(client, fake_client, store):
    store.save(
        ResearchSession(
            query="q",
            summary="s",
            results=[SourceRecord(title="B", url="https://b.example")],
            timestamp=3,
        )
    )
    client.post("/api/research/sessions/3/open")
    fake_client.content = None

    resp = client.post("/api/research/sources/content", json={"url": "https://b.example"})

    body = resp.json()
    assert resp.status_code == 200
    assert body["available"] is False
    assert body["fallbackUrl"] == "https://b.example"
    assert body["reason"] == "blocked"


def test_selection_article_and_brainstorm(client, fake_client):
    _search(client)

    no_selection = client.post("/api/research/article", json={})
    assert no_selection.status_code == 400

    assert client.post("/api/research/selection-mode").json() == {"selectionMode": True}
    selected = client.post("/api/research/sources/select", json={"url": "https://a.example"})
    assert selected.json()["selected"] is True

    article = client.post("/api/research/article", json={"topic": "Carbon"})
    assert article.status_code == 200
    assert article.json()["html"] == "<h1>Carbon</h1><p>1 sources</p>"

    brainstorm = client.post("/api/research/brainstorm", json={"theme": "Energy"})
    assert brainstorm.json()["brainstormingData"]["centralTheme"] == "Energy"
    assert brainstorm.json()["quotaWarning"] is False

    fake_client.brainstorm_error = EnrichmentError("bad json")
    assert client.post("/api/research/brainstorm", json={"theme": "x"}).status_code == 502


def test_export_article_html(client):
    resp = client.post(
        "/api/research/article/export",
        json={"html": "<h1>Title</h1>", "query": "climate policy"},
    )

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert "article_climate_policy_" in resp.headers["content-disposition"]
    assert "<h1>Title</h1>" in resp.text
    assert "text-indent: 1.25cm" in resp.text


@pytest.mark.asyncio
async def test_search_stream_only_forwards_patches_of_its_own_session(store):
    fake = _GatedCoverClient()
    gate_a, gate_b = asyncio.Event(), asyncio.Event()
    fake.cover_gates = {"Title https://a.example": gate_a, "Title https://b.example": gate_b}
    workflow = ResearchSearchWorkflow(fake, store)
    stream = research_route._search_stream(workflow, "climate policy")

    events = []
    while not events or events[-1].type != "covers":
        events.append(await stream.__anext__())
    gate_a.set()
    events.append(await stream.__anext__())
    assert events[-1].type == "patch"

    # another search takes over the shared collection and patches its record
    workflow.collection.replace_all(
        [SourceRecord(title="Other", url="https://other.example")], session_key=1
    )
    workflow.collection.patch("https://other.example", session_key=1, cover_image_url="data:x")
    gate_b.set()
    events.extend([event async for event in stream])

    patches = [e for e in events if e.type == "patch"]
    assert [p.data["url"] for p in patches] == ["https://a.example"]
    assert events[-1].type == "result"


@pytest.mark.asyncio
async def test_closed_stream_still_reports_search_failure(store, caplog):
    caplog.set_level(logging.WARNING)
    fake = _HeldSearchClient()
    workflow = ResearchSearchWorkflow(fake, store)
    stream = research_route._search_stream(workflow, "climate policy")

    first = await stream.__anext__()
    await stream.aclose()

    assert first.type == "search"
    assert len(research_route._detached_searches) == 1

    fake.release.set()
    while research_route._detached_searches:
        await asyncio.sleep(0)

    assert "Detached search failed: upstream down" in caplog.text


def test_translate_text(client, fake_client):
    resp = client.post("/api/research/translate", json={"text": "Resumo", "targetLanguage": "English"})
    assert resp.status_code == 200
    assert resp.json() == {"text": "English: Resumo", "targetLanguage": "English"}

    unsupported = client.post("/api/research/translate", json={"text": "x", "targetLanguage": "Latin"})
    assert unsupported.status_code == 400

    fake_client.translate_error = EnrichmentError("Failed to translate text.")
    assert client.post("/api/research/translate", json={"text": "x"}).status_code == 502


def test_reader_extras_for_active_source(client):
    _search(client)

    resp = client.post("/api/research/sources/extras", json={"url": "https://a.example"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["snippets"] == [{"headline": "Extra", "text": "Title https://a.example"}]
    assert [p["dialogue"] for p in body["comicPanels"]] == ["a", "b", "c"]
    assert body["comicImageUrl"] == ""

    missing = client.post("/api/research/sources/extras", json={"url": "https://zzz.example"})
    assert missing.status_code == 404


def test_shutdown_releases_client_and_store(monkeypatch, fake_client, store):
    context = research_route.ResearchContext(
        client=fake_client, store=store, config=ScholarLensConfig()
    )
    monkeypatch.setattr(research_route, "_context", context)

    with TestClient(api_main.app) as client:
        _search(client)

    assert fake_client.closed is True
    assert research_route._context is None
