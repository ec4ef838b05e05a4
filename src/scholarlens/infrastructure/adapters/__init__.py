"""EnrichmentClientPort adapter registry."""

from __future__ import annotations

from typing import Optional

from scholarlens.application.ports.enrichment_port import EnrichmentClientPort
from scholarlens.config import ScholarLensConfig
from scholarlens.infrastructure.adapters.gemini_enrichment_adapter import GeminiEnrichmentClient


def build_enrichment_client(config: Optional[ScholarLensConfig] = None) -> EnrichmentClientPort:
    return GeminiEnrichmentClient(config or ScholarLensConfig.from_env())


__all__ = ["GeminiEnrichmentClient", "build_enrichment_client"]
