"""
API v1 router - aggregates all endpoint routers.
"""

from fastapi import APIRouter

from assistlink.api.v1.endpoints import (
    auth_router,
    chat_router,
    health_router,
    requests_router,
)

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(requests_router, prefix="/requests", tags=["requests"])
api_router.include_router(chat_router, prefix="/chat", tags=["chat"])
