"""Error taxonomy shared by every layer."""

from __future__ import annotations


class ScholarLensError(Exception):
    """Base class for all ScholarLens errors."""

    retryable = False


class ConfigurationError(ScholarLensError):
    pass


class InvalidQueryError(ScholarLensError):
    pass


class NoSelectionError(ScholarLensError):
    pass


class UnsupportedLanguageError(ScholarLensError):
    pass


class EnrichmentError(ScholarLensError):
    """A remote enrichment / generation call failed."""


class GroundedSearchError(EnrichmentError):
    """The grounded search for a whole query failed; the caller may retry."""

    retryable = True


class PolicyRejectedError(GroundedSearchError):
    """The upstream model refused the query on safety or policy grounds."""


class ContentUnavailableError(ScholarLensError):
    """Full content for a source could not be fetched again."""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason or "content could not be extracted"
        super().__init__(f"content unavailable for {url}: {self.reason}")


class SourceNotFoundError(ScholarLensError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"source not found in active session: {url}")


class StoreError(ScholarLensError):
    pass


class QuotaExceededError(StoreError):
    """The encoded store blob does not fit into the configured quota."""

    def __init__(self, size: int, quota: int):
        self.size = size
        self.quota = quota
        super().__init__(f"store blob of {size} bytes exceeds quota of {quota} bytes")


class StoreCorruptedError(StoreError):
    pass


class NothingToExportError(StoreError):
    pass
