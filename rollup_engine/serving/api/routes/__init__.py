"""
API Routes Module
"""
from .health import router as health_router
from .rollups import router as rollups_router

__all__ = [
    "health_router",
    "rollups_router",
]
