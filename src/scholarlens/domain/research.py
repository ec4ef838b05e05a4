# src/scholarlens/domain/research.py
"""
Research session domain models.

Contains the records that flow through the enrichment pipeline:
- ProcessedSource: Raw enrichment payload for one URI (may be error-tagged)
- SourceRecord: One enriched web source as shown to the user
- BrainstormingData: Optional mind-map attached to a session
- ResearchSession: One query with its summary and evolving source collection
- GroundedResponse: Summary and source URIs from the grounded search step
- ReaderExtras: Newspaper-style snippets and a comic strip for the reader view

Wire format uses camelCase keys so stored blobs and export artifacts keep
the same shape across versions.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

MAX_RATING = 5.0
FAILED_TITLE = "Processing failed"


def _clamp_rating(value: Any) -> float:
    try:
        rating = float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(rating, MAX_RATING))


def _as_year(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if str(item or "").strip()]


@dataclass
class SourceRecord:
    """One web source enriched by AI. ``url`` is the identity key."""

    title: str
    url: str
    cover_image_url: str = ""
    rating: float = 0.0
    tags: List[str] = field(default_factory=list)
    brief_summary: str = ""
    publication_year: int = 0
    authors: List[str] = field(default_factory=list)
    content_html: Optional[str] = None
    selected: bool = False

    @property
    def has_content(self) -> bool:
        return bool(self.content_html)

    def without_content(self) -> "SourceRecord":
        return replace(self, content_html=None)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "url": self.url,
            "coverImageUrl": self.cover_image_url,
            "rating": self.rating,
            "tags": list(self.tags),
            "briefSummary": self.brief_summary,
            "publicationYear": self.publication_year,
            "authors": list(self.authors),
            "selected": self.selected,
        }
        if self.content_html is not None:
            data["contentHtml"] = self.content_html
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceRecord":
        content = data.get("contentHtml")
        return cls(
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            cover_image_url=str(data.get("coverImageUrl") or ""),
            rating=_clamp_rating(data.get("rating")),
            tags=_as_str_list(data.get("tags")),
            brief_summary=str(data.get("briefSummary") or ""),
            publication_year=_as_year(data.get("publicationYear")),
            authors=_as_str_list(data.get("authors")),
            content_html=str(content) if content else None,
            selected=bool(data.get("selected") or False),
        )


@dataclass
class ProcessedSource:
    """Enrichment payload for a single URI as returned by the remote client."""

    title: str
    url: str
    rating: float = 0.0
    tags: List[str] = field(default_factory=list)
    brief_summary: str = ""
    publication_year: int = 0
    authors: List[str] = field(default_factory=list)
    content_html: str = ""
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return bool(self.error)

    @classmethod
    def failure(cls, url: str, error: str) -> "ProcessedSource":
        return cls(
            title=FAILED_TITLE,
            url=url,
            tags=["Error"],
            brief_summary="This source could not be analysed because of an API error.",
            error=error or "unknown API error",
        )

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], *, url: str) -> "ProcessedSource":
        """Build from model JSON, forcing ``url`` to the requested URI."""
        error = payload.get("error")
        return cls(
            title=str(payload.get("title") or ""),
            url=url,
            rating=_clamp_rating(payload.get("rating")),
            tags=_as_str_list(payload.get("tags")),
            brief_summary=str(payload.get("briefSummary") or ""),
            publication_year=_as_year(payload.get("publicationYear")),
            authors=_as_str_list(payload.get("authors")),
            content_html=str(payload.get("contentHtml") or ""),
            error=str(error) if error else None,
        )

    def to_record(self) -> SourceRecord:
        return SourceRecord(
            title=self.title,
            url=self.url,
            cover_image_url="",
            rating=self.rating,
            tags=list(self.tags),
            brief_summary=self.brief_summary,
            publication_year=self.publication_year,
            authors=list(self.authors),
            content_html=self.content_html or None,
            selected=False,
        )


@dataclass
class BrainstormingNode:
    idea: str
    details: str = ""
    source_indices: List[int] = field(default_factory=list)
    sub_nodes: List["BrainstormingNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "idea": self.idea,
            "details": self.details,
            "sourceIndices": list(self.source_indices),
        }
        if self.sub_nodes:
            data["subNodes"] = [node.to_dict() for node in self.sub_nodes]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BrainstormingNode":
        indices = []
        for raw in data.get("sourceIndices") or []:
            try:
                indices.append(int(raw))
            except (TypeError, ValueError):
                continue
        return cls(
            idea=str(data.get("idea") or ""),
            details=str(data.get("details") or ""),
            source_indices=indices,
            sub_nodes=[
                cls.from_dict(node) for node in data.get("subNodes") or [] if isinstance(node, dict)
            ],
        )


@dataclass
class BrainstormingData:
    central_theme: str
    main_ideas: List[BrainstormingNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "centralTheme": self.central_theme,
            "mainIdeas": [node.to_dict() for node in self.main_ideas],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BrainstormingData":
        return cls(
            central_theme=str(data.get("centralTheme") or ""),
            main_ideas=[
                BrainstormingNode.from_dict(node)
                for node in data.get("mainIdeas") or []
                if isinstance(node, dict)
            ],
        )


@dataclass
class ResearchSession:
    """
    One query's full result set.

    ``timestamp`` (epoch milliseconds) is both the creation instant and the
    identity used for sorting and deletion. At most one stored session exists
    per distinct ``query``.
    """

    query: str
    summary: str
    results: List[SourceRecord] = field(default_factory=list)
    timestamp: int = 0
    brainstorming_data: Optional[BrainstormingData] = None
    selection_mode_active: bool = False

    def stripped(self) -> "ResearchSession":
        """Persisted projection: every result without ``content_html``."""
        return replace(self, results=[r.without_content() for r in self.results])

    def with_results(self, results: List[SourceRecord]) -> "ResearchSession":
        return replace(self, results=list(results))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "query": self.query,
            "summary": self.summary,
            "results": [r.to_dict() for r in self.results],
            "timestamp": self.timestamp,
            "selectionMode": self.selection_mode_active,
        }
        if self.brainstorming_data is not None:
            data["brainstormingData"] = self.brainstorming_data.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResearchSession":
        if not isinstance(data, dict):
            raise ValueError("session entry must be an object")
        if "query" not in data or "timestamp" not in data:
            raise ValueError("session entry requires query and timestamp")
        brainstorm = data.get("brainstormingData")
        return cls(
            query=str(data.get("query") or ""),
            summary=str(data.get("summary") or ""),
            results=[
                SourceRecord.from_dict(item)
                for item in data.get("results") or []
                if isinstance(item, dict)
            ],
            timestamp=int(data["timestamp"]),
            brainstorming_data=(
                BrainstormingData.from_dict(brainstorm) if isinstance(brainstorm, dict) else None
            ),
            selection_mode_active=bool(data.get("selectionMode") or False),
        )


@dataclass(frozen=True)
class GroundedResponse:
    summary: str
    sources: List[str] = field(default_factory=list)

    @classmethod
    def build(cls, summary: str, uris: List[Any]) -> "GroundedResponse":
        """Drop blank and duplicate URIs, keeping first occurrences in order."""
        seen: set[str] = set()
        sources: List[str] = []
        for raw in uris or []:
            uri = str(raw or "").strip()
            if not uri or uri in seen:
                continue
            seen.add(uri)
            sources.append(uri)
        return cls(summary=(summary or "").strip(), sources=sources)


TRANSLATION_LANGUAGES = ("English", "Portuguese")


@dataclass
class NewspaperSnippet:
    headline: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"headline": self.headline, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewspaperSnippet":
        return cls(
            headline=str(data.get("headline") or ""),
            text=str(data.get("text") or ""),
        )


@dataclass
class ComicPanel:
    dialogue: str

    def to_dict(self) -> Dict[str, Any]:
        return {"dialogue": self.dialogue}


@dataclass
class ReaderExtras:
    """
    Side material generated for one opened source.

    ``comic_image_url`` is a data URI or ``''``; a comic strip always has
    exactly three panels when present.
    """

    url: str
    comic_image_url: str = ""
    comic_panels: List[ComicPanel] = field(default_factory=list)
    snippets: List[NewspaperSnippet] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "comicImageUrl": self.comic_image_url,
            "comicPanels": [panel.to_dict() for panel in self.comic_panels],
            "snippets": [snippet.to_dict() for snippet in self.snippets],
        }
