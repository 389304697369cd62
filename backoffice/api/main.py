"""
Back-Office API - Main Application.

`create_app` wires settings, logging, CORS and the versioned routers;
`app` is the instance served by uvicorn (`uvicorn backoffice.api.main:app`).
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from backoffice.api import __version__
from backoffice.api.routers import customers, orders, payments, reports
from backoffice.config import Settings, load_settings
from backoffice.logging_config import configure_logging

API_PREFIX = "/api/v1"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title="Back-Office API",
        description="Orders, payment ledger, follow-ups and sales reporting for the back office",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    # The engine itself is built lazily by get_engine from these settings.
    application.state.settings = settings

    # Browsers reject credentialed responses for a wildcard origin.
    wildcard = "*" in settings.cors_origins
    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "X-User-Id", "X-User-Name", "X-User-Role"],
    )

    @application.get("/health", tags=["Health"])
    def health_check(request: Request):
        """Liveness plus the configured store backend."""
        return {
            "status": "healthy",
            "version": __version__,
            "service": "backoffice-api",
            "store": request.app.state.settings.store_backend,
        }

    @application.get("/", tags=["Root"])
    def root():
        return {
            "message": "Back-Office API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "api": API_PREFIX,
        }

    application.include_router(customers.router, prefix=API_PREFIX, tags=["Customers"])
    application.include_router(orders.router, prefix=API_PREFIX, tags=["Orders"])
    application.include_router(payments.router, prefix=API_PREFIX, tags=["Payments"])
    application.include_router(reports.router, prefix=API_PREFIX, tags=["Reports"])
    return application


app = create_app()
