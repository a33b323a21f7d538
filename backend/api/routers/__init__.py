"""
API Routers package.

Each module contains a FastAPI router for a specific domain.
"""

from .backfill import router as backfill_router
from .records import router as records_router

__all__ = [
    "backfill_router",
    "records_router",
]
