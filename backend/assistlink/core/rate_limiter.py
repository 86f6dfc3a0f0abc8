"""SlowAPI rate limiting setup."""

from __future__ import annotations

import logging

from limits.errors import ConfigurationError
from slowapi import Limiter, extension as slowapi_extension
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from assistlink.core.config import settings

logger = logging.getLogger(__name__)


def _build_limiter() -> Limiter:
    try:
        return Limiter(
            key_func=get_remote_address,
            default_limits=[settings.DEFAULT_RATE_LIMIT],
            storage_uri=str(settings.REDIS_URL),
        )
    except ConfigurationError as exc:  # pragma: no cover - redis storage extra missing
        logger.warning("Rate limit storage unavailable, counting in memory: %s", exc)
        return Limiter(key_func=get_remote_address, default_limits=[settings.DEFAULT_RATE_LIMIT])


limiter = _build_limiter()


def rate_limit_exceeded_handler(request: Request, exc: Exception) -> JSONResponse:
    detail = getattr(exc, "detail", str(exc))
    response = JSONResponse(
        {"error": "RATE_LIMITED", "detail": f"Rate limit exceeded: {detail}"},
        status_code=429,
    )
    view_limit = getattr(request.state, "view_rate_limit", None)
    if view_limit is not None:
        response = limiter._inject_headers(response, view_limit)
    return response


slowapi_extension._rate_limit_exceeded_handler = rate_limit_exceeded_handler


class RateLimitMiddleware(SlowAPIMiddleware):
    exempt_paths = {
        "/metrics",
        "/health",
        "/api/v1/health/liveness",
        "/api/v1/health/readiness",
    }

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        if request.url.path in self.exempt_paths:
            return await call_next(request)
        return await super().dispatch(request, call_next)
