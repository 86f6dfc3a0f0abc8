"""
AssistLink - Main Application Entry Point
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from slowapi.errors import RateLimitExceeded

from assistlink.core.config import settings
from assistlink.core.database import init_db
from assistlink.core.errors import AssistLinkError, domain_error_handler
from assistlink.core.logging import RequestContextMiddleware, setup_logging
from assistlink.core.metrics import MetricsMiddleware
from assistlink.core.rate_limiter import RateLimitMiddleware, limiter, rate_limit_exceeded_handler
from assistlink.core.redis import close_redis
from assistlink.api.v1.router import api_router
from assistlink.api.v1.endpoints.chat import close_responder


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown."""
    # Startup
    setup_logging()
    await init_db()
    yield
    # Shutdown
    await close_responder()
    await close_redis()


app = FastAPI(
    title="AssistLink",
    description="Community assistance: blood donation, elder support and civic complaints",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.state.limiter = limiter


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body and query validation failures in the domain error shape."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "VALIDATION_ERROR",
            "detail": "Request fields are invalid or incomplete",
            "context": {"errors": errors},
        },
    )


app.add_exception_handler(AssistLinkError, domain_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Middleware
app.add_middleware(RateLimitMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Mount Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "assistlink"}


@app.get("/")
async def root():
    """Root endpoint with system information."""
    return {
        "service": "AssistLink",
        "version": "1.0.0",
        "docs": "/api/docs",
        "health": "/health",
        "metrics": "/metrics",
    }
