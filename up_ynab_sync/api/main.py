"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from up_ynab_sync.api.dependencies import get_request_id
from up_ynab_sync.api.middleware import RequestIDMiddleware, MetricsMiddleware
from up_ynab_sync.api.v1 import info, reconcile, sync, webhook
from up_ynab_sync.infrastructure.observability.logging import setup_logging
from up_ynab_sync.config import settings

# Setup structured logging
setup_logging(settings.log_level)


async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: callers always get a complete JSON error body"""
    logging.exception(f"Unexpected error: {exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Up Bank to YNAB Sync",
        description="Mirrors Up Bank transactions into YNAB and reconciles drift between them",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(Exception, unhandled_error)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(sync.router, prefix="/v1", tags=["sync"])
    app.include_router(reconcile.router, prefix="/v1", tags=["reconcile"])
    app.include_router(webhook.router, prefix="/v1", tags=["webhook"])
    app.include_router(info.router, prefix="/v1", tags=["info"])

    return app


app = create_app()
