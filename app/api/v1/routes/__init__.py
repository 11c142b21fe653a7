"""
API v1 routes package.
Voice coaching backend routes.
"""

from .health_routes import router as health_router
from .realtime_routes import router as realtime_router
from .session_routes import router as session_router
from .admin_routes import router as admin_router

__all__ = [
    "health_router",
    "realtime_router",
    "session_router",
    "admin_router"
]
