"""On-demand rehydration of source content stripped at persistence time."""

from __future__ import annotations

import logging
from typing import Optional

from scholarlens.application.ports.enrichment_port import EnrichmentClientPort
from scholarlens.application.services.live_collection import LiveSourceCollection
from scholarlens.domain.errors import ContentUnavailableError, SourceNotFoundError

logger = logging.getLogger(__name__)


class RehydrationService:
    def __init__(self, client: EnrichmentClientPort):
        self._client = client

    async def ensure_content(
        self,
        collection: LiveSourceCollection,
        url: str,
        query: str,
        *,
        session_key: Optional[int] = None,
    ) -> str:
        """Return full content for ``url``, fetching it again when absent.

        The fetched content is patched into the live record only; it is not
        persisted and is stripped again at the next save.
        """
        key = collection.session_key if session_key is None else session_key
        record = collection.get(url)
        if record is None:
            raise SourceNotFoundError(url)
        if record.has_content:
            return record.content_html

        try:
            processed = await self._client.enrich_source(url, query)
        except Exception as exc:
            logger.warning("Rehydration failed for %s: %s", url, exc)
            raise ContentUnavailableError(url, str(exc)) from exc

        if processed.failed or not processed.content_html:
            reason = processed.error or "the AI could not extract content from this page"
            logger.warning("Rehydration returned no content for %s: %s", url, reason)
            raise ContentUnavailableError(url, reason)

        if not collection.patch(url, session_key=key, content_html=processed.content_html):
            logger.debug("Rehydrated content for %s not applied to a superseded session", url)
        return processed.content_html
