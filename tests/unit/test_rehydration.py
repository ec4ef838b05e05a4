from __future__ import annotations

import pytest

from scholarlens.application.services.live_collection import LiveSourceCollection
from scholarlens.application.services.rehydration import RehydrationService
from scholarlens.domain.errors import ContentUnavailableError, SourceNotFoundError
from scholarlens.domain.research import ProcessedSource, SourceRecord


class _FakeClient:
    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = []

    async def enrich_source(self, uri, query):
        self.calls.append((uri, query))
        if self.exc is not None:
            raise self.exc
        return self.result


def _collection(content=None) -> LiveSourceCollection:
    collection = LiveSourceCollection()
    collection.replace_all(
        [
            SourceRecord(
                title="A",
                url="https://a.example",
                cover_image_url="img",
                brief_summary="s",
                content_html=content,
            )
        ],
        session_key=5,
    )
    return collection


@pytest.mark.asyncio
async def test_content_already_present_makes_no_call():
    client = _FakeClient()
    collection = _collection(content="<p>kept</p>")

    content = await RehydrationService(client).ensure_content(collection, "https://a.example", "q")

    assert content == "<p>kept</p>"
    assert client.calls == []


@pytest.mark.asyncio
async def test_rehydration_patches_only_content():
    client = _FakeClient(
        result=ProcessedSource(title="Other title", url="https://a.example", content_html="<p>new</p>")
    )
    collection = _collection()

    content = await RehydrationService(client).ensure_content(
        collection, "https://a.example", "climate policy"
    )

    record = collection.get("https://a.example")
    assert content == "<p>new</p>"
    assert record.content_html == "<p>new</p>"
    assert record.title == "A"
    assert record.cover_image_url == "img"
    assert client.calls == [("https://a.example", "climate policy")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client",
    [
        _FakeClient(exc=RuntimeError("network down")),
        _FakeClient(result=ProcessedSource.failure("https://a.example", "HTTP 500")),
        _FakeClient(result=ProcessedSource(title="A", url="https://a.example", content_html="")),
    ],
)
async def test_rehydration_failure_leaves_record_unchanged(client):
    collection = _collection()
    before = collection.get("https://a.example")

    with pytest.raises(ContentUnavailableError) as excinfo:
        await RehydrationService(client).ensure_content(collection, "https://a.example", "q")

    assert excinfo.value.url == "https://a.example"
    assert collection.get("https://a.example") == before


@pytest.mark.asyncio
async def test_rehydration_unknown_url_raises_not_found():
    with pytest.raises(SourceNotFoundError):
        await RehydrationService(_FakeClient()).ensure_content(
            _collection(), "https://missing.example", "q"
        )
