from scholarlens.application.services.enrichment_pipeline import (
    CoverArtStage,
    FanOutEnrichmentStage,
    FanOutResult,
    SourceAdvisory,
)
from scholarlens.application.services.live_collection import LiveSourceCollection
from scholarlens.application.services.rehydration import RehydrationService

__all__ = [
    "CoverArtStage",
    "FanOutEnrichmentStage",
    "FanOutResult",
    "LiveSourceCollection",
    "RehydrationService",
    "SourceAdvisory",
]
