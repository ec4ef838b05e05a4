"""Enrichment stages: fan-out source enrichment and incremental cover art.

Both stages issue one remote call per source concurrently, wait for every
call to settle and absorb failures at single-record granularity.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from scholarlens.application.ports.enrichment_port import EnrichmentClientPort
from scholarlens.application.services.live_collection import LiveSourceCollection
from scholarlens.domain.research import ProcessedSource, SourceRecord

logger = logging.getLogger(__name__)


class SourceAdvisory(str, Enum):
    """User-facing advisory when enrichment yields no records."""

    NO_SOURCES = "no_sources"
    NONE_PROCESSABLE = "none_processable"

    @property
    def message(self) -> str:
        if self is SourceAdvisory.NO_SOURCES:
            return "No sources were found for this query."
        return (
            "The AI could not process any of the sources found. They may be "
            "inaccessible. The summary above was generated from search snippets."
        )


@dataclass
class FanOutResult:
    records: List[SourceRecord] = field(default_factory=list)
    requested: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def advisory(self) -> Optional[SourceAdvisory]:
        if self.requested == 0:
            return SourceAdvisory.NO_SOURCES
        if not self.records:
            return SourceAdvisory.NONE_PROCESSABLE
        return None


class FanOutEnrichmentStage:
    """Enrich N source URIs concurrently; keep survivors in input order."""

    def __init__(self, client: EnrichmentClientPort):
        self._client = client

    async def run(self, uris: Sequence[str], query: str) -> FanOutResult:
        uris = list(uris)
        if not uris:
            return FanOutResult()

        processed = await asyncio.gather(*(self._enrich_one(uri, query) for uri in uris))

        records: List[SourceRecord] = []
        failed: List[Tuple[str, str]] = []
        for uri, item in zip(uris, processed):
            if item.failed:
                logger.warning("Skipping source %s due to processing error: %s", uri, item.error)
                failed.append((uri, item.error or ""))
                continue
            # Identity is the requested URI even if the payload disagrees.
            records.append(replace(item.to_record(), url=uri))

        logger.info(
            "Enrichment settled: %d/%d sources processed, %d failed",
            len(records),
            len(uris),
            len(failed),
        )
        return FanOutResult(records=records, requested=len(uris), failed=failed)

    async def _enrich_one(self, uri: str, query: str) -> ProcessedSource:
        try:
            return await self._client.enrich_source(uri, query)
        except Exception as exc:
            return ProcessedSource.failure(uri, str(exc) or type(exc).__name__)


class CoverArtStage:
    """Generate cover art per record and patch each one into the live collection."""

    def __init__(self, client: EnrichmentClientPort):
        self._client = client

    async def run(
        self,
        collection: LiveSourceCollection,
        records: Sequence[SourceRecord],
        *,
        session_key: Optional[int],
    ) -> List[SourceRecord]:
        """Return the records to persist once every cover request has settled.

        While the session is still current this is the live snapshot, which
        includes concurrent user edits. For a superseded session the covers are
        merged into ``records`` without touching the newer collection.
        """
        records = list(records)
        settled = await asyncio.gather(
            *(self._cover_one(collection, record, session_key) for record in records)
        )

        generated = sum(
            1
            for before, after in zip(records, settled)
            if after.cover_image_url != before.cover_image_url
        )
        logger.info("Cover art settled: %d/%d covers generated", generated, len(records))

        if collection.is_current(session_key):
            return collection.snapshot()
        return list(settled)

    async def _cover_one(
        self,
        collection: LiveSourceCollection,
        record: SourceRecord,
        session_key: Optional[int],
    ) -> SourceRecord:
        if not record.brief_summary:
            return record
        try:
            image_url = await self._client.generate_cover(record.title, record.brief_summary)
        except Exception as exc:
            logger.warning("Failed to generate cover for %r: %s", record.title, exc)
            return record
        if not image_url:
            return record

        collection.patch(record.url, session_key=session_key, cover_image_url=image_url)
        return replace(record, cover_image_url=image_url)
