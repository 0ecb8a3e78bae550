"""API Routers package."""
from .camera import router as camera_router
from .stream import router as stream_router

__all__ = [
    "camera_router",
    "stream_router",
]
