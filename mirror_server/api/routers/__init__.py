"""API routers for the mirror server."""

from . import health
from . import metadata

__all__ = [
    "health",
    "metadata",
]
