from .base import APIClient, APIError

__all__ = ["APIClient", "APIError"]
