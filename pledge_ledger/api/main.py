"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from pledge_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from pledge_ledger.api.v1 import exchange_rates, payments, plans, pledges
from pledge_ledger.infrastructure.observability.logging import setup_logging
from pledge_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Pledge Ledger",
        description="Pledge, payment plan and split payment reconciliation service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(pledges.router, prefix="/v1", tags=["pledges"])
    app.include_router(plans.router, prefix="/v1", tags=["payment-plans"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(exchange_rates.router, prefix="/v1", tags=["exchange-rates"])

    return app


app = create_app()
