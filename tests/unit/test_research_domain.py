from __future__ import annotations

import pytest

from scholarlens.domain.research import (
    BrainstormingData,
    GroundedResponse,
    ProcessedSource,
    ResearchSession,
    SourceRecord,
)


def _record(url: str, **overrides) -> SourceRecord:
    data = dict(
        title=f"Title {url}",
        url=url,
        rating=4.0,
        tags=["policy"],
        brief_summary="summary",
        publication_year=2021,
        authors=["A. Author"],
        content_html="<p>full text</p>",
    )
    data.update(overrides)
    return SourceRecord(**data)


def test_source_record_to_dict_uses_wire_keys():
    payload = _record("https://a.example").to_dict()

    assert payload["coverImageUrl"] == ""
    assert payload["briefSummary"] == "summary"
    assert payload["publicationYear"] == 2021
    assert payload["contentHtml"] == "<p>full text</p>"
    assert payload["selected"] is False


def test_source_record_without_content_omits_key():
    payload = _record("https://a.example").without_content().to_dict()

    assert "contentHtml" not in payload
    assert payload["title"] == "Title https://a.example"


def test_source_record_from_dict_clamps_and_normalizes():
    record = SourceRecord.from_dict(
        {
            "title": "T",
            "url": "https://a.example",
            "rating": 9,
            "tags": ["x", "", None],
            "publicationYear": "not-a-year",
        }
    )

    assert record.rating == 5.0
    assert record.tags == ["x"]
    assert record.publication_year == 0
    assert record.content_html is None
    assert record.has_content is False


def test_processed_source_failure_is_error_tagged():
    failed = ProcessedSource.failure("https://b.example", "HTTP 500")

    assert failed.failed is True
    assert failed.url == "https://b.example"
    assert failed.title == "Processing failed"
    assert failed.tags == ["Error"]


def test_processed_source_from_payload_forces_requested_url():
    processed = ProcessedSource.from_payload(
        {"title": "Paper", "url": "https://hallucinated.example", "rating": 3.5},
        url="https://requested.example",
    )

    assert processed.url == "https://requested.example"
    assert processed.failed is False
    assert processed.to_record().url == "https://requested.example"
    assert processed.to_record().cover_image_url == ""


def test_session_stripped_drops_content_from_every_result():
    session = ResearchSession(
        query="climate policy",
        summary="s",
        results=[_record("https://a.example"), _record("https://b.example")],
        timestamp=1,
    )

    stripped = session.stripped()

    assert all(r.content_html is None for r in stripped.results)
    # the original keeps its transient content
    assert all(r.content_html for r in session.results)


def test_session_round_trip_keeps_brainstorming_and_selection_mode():
    session = ResearchSession(
        query="q",
        summary="s",
        results=[_record("https://a.example", content_html=None)],
        timestamp=1700000000000,
        brainstorming_data=BrainstormingData.from_dict(
            {
                "centralTheme": "Energy",
                "mainIdeas": [
                    {
                        "idea": "Solar",
                        "details": "d",
                        "sourceIndices": [0, "x"],
                        "subNodes": [{"idea": "PV", "sourceIndices": [0]}],
                    }
                ],
            }
        ),
        selection_mode_active=True,
    )

    restored = ResearchSession.from_dict(session.to_dict())

    assert restored == session
    assert restored.brainstorming_data.main_ideas[0].source_indices == [0]
    assert restored.brainstorming_data.main_ideas[0].sub_nodes[0].idea == "PV"


@pytest.mark.parametrize("entry", [[], "x", {"summary": "no query"}, {"query": "q"}])
def test_session_from_dict_rejects_malformed_entries(entry):
    with pytest.raises(ValueError):
        ResearchSession.from_dict(entry)


def test_grounded_response_drops_blank_and_duplicate_uris():
    grounded = GroundedResponse.build(
        "  summary  ",
        ["https://a.example", "", None, "https://b.example", "https://a.example"],
    )

    assert grounded.summary == "summary"
    assert grounded.sources == ["https://a.example", "https://b.example"]
