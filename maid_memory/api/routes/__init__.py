from .memories import router as memories_router
from .health import router as health_router

__all__ = [
    "memories_router",
    "health_router",
]
