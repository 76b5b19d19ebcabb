"""
FastAPI routers.

- analysis: photo analysis and quota status
- collections: per-device sighting history
- health: health checks and service info
"""

from reefscan.routers.analysis import router as analysis_router
from reefscan.routers.collections import router as collections_router
from reefscan.routers.health import router as health_router


__all__ = [
    'analysis_router',
    'collections_router',
    'health_router',
]
