"""EnrichmentClientPort: remote AI operations consumed by the pipeline."""

from __future__ import annotations

from typing import List, Protocol, Sequence, runtime_checkable

from scholarlens.domain.research import (
    BrainstormingData,
    ComicPanel,
    GroundedResponse,
    NewspaperSnippet,
    ProcessedSource,
    SourceRecord,
)


@runtime_checkable
class EnrichmentClientPort(Protocol):
    """Abstract interface for grounded search, source enrichment and generation.

    ``enrich_source`` reports per-source failures as an error-tagged
    ``ProcessedSource`` and ``generate_cover`` signals failure with ``''``;
    only ``grounded_search`` raises for whole-query failures. The reader
    extras degrade the same way: no snippets, no comic image, or
    placeholder comic panels.
    """

    async def grounded_search(self, query: str) -> GroundedResponse: ...

    async def enrich_source(self, uri: str, query: str) -> ProcessedSource: ...

    async def generate_cover(self, title: str, summary: str) -> str: ...

    async def generate_brainstorming_map(
        self, results: Sequence[SourceRecord], theme: str
    ) -> BrainstormingData: ...

    async def generate_article(self, results: List[SourceRecord], topic: str) -> str: ...

    async def translate_text(self, text: str, target_language: str) -> str: ...

    async def generate_newspaper_snippets(
        self, article_html: str, title: str
    ) -> List[NewspaperSnippet]: ...

    async def generate_comic_image(self, topic: str) -> str: ...

    async def generate_comic_panels(self, topic: str) -> List[ComicPanel]: ...

    async def close(self) -> None: ...
