from scholarlens.infrastructure.stores.session_cache_store import SaveResult, SessionCacheStore

__all__ = ["SaveResult", "SessionCacheStore"]
