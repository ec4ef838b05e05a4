"""API Routes"""

from . import research

__all__ = [
    "research",
]
