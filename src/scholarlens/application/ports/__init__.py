"""Application ports (interfaces) used by the application layer."""

from .enrichment_port import EnrichmentClientPort

__all__ = [
    "EnrichmentClientPort",
]
