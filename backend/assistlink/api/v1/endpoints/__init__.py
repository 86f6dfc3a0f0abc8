"""
Convenience exports for API v1 endpoint routers.

This allows ``from assistlink.api.v1.endpoints import requests_router`` style
imports used by the aggregate router module.
"""

from .auth import router as auth_router
from .chat import router as chat_router
from .health import router as health_router
from .requests import router as requests_router

__all__ = [
    "auth_router",
    "chat_router",
    "health_router",
    "requests_router",
]
