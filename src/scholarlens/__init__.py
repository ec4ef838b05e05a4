"""ScholarLens - AI-enriched research sessions with a bounded local history."""

__version__ = "0.1.0"
