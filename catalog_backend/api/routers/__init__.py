"""
API Routers
FastAPI route handlers for different endpoints.
"""

from .catalog_ingest import router as catalog_ingest_router
from .catalog_items import router as catalog_items_router
from .health import router as health_router

__all__ = [
    "health_router",
    "catalog_ingest_router",
    "catalog_items_router",
]
