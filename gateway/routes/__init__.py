"""API routes package."""

from gateway.routes.file_routes import router as file_router
from gateway.routes.hook_routes import router as hook_router
from gateway.routes.preview_routes import router as preview_router

__all__ = ["file_router", "hook_router", "preview_router"]
