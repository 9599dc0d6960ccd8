"""
AcolheAqui Billing - FastAPI Application

Main entry point for the subscription webhooks service.
Receives payment gateway webhooks and reconciles subscription state.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from acolhe_billing import __version__
from acolhe_billing.config.settings import Settings, get_settings
from acolhe_billing.infrastructure.db.database import DatabaseManager
from acolhe_billing.infrastructure.exceptions import (
    AcolheBillingError,
    DatabaseError,
    SignatureVerificationError,
    WebhookParseError,
)
from acolhe_billing.infrastructure.gateways import GatewayRegistry


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings
    logger.info(f"AcolheAqui billing webhooks starting in {settings.environment} mode...")

    db_manager: Optional[DatabaseManager] = app.state.db_manager
    if db_manager is not None:
        try:
            await db_manager.init()
            logger.info("SQLModel database connection pool initialized")
        except Exception as e:
            logger.warning(f"SQLModel database initialization skipped: {e}")

    yield

    if db_manager is not None:
        try:
            await db_manager.close()
            logger.info("SQLModel database connection pool closed")
        except Exception as e:
            logger.warning(f"SQLModel database shutdown error: {e}")

    logger.info("AcolheAqui billing webhooks shutting down...")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Explicit settings (tests); defaults to the cached environment settings
    """
    settings = settings or get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    app = FastAPI(
        title="AcolheAqui Billing",
        description="Subscription webhook normalizer and reconciler for payment gateways",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.state.settings = settings
    app.state.gateway_registry = GatewayRegistry(settings)
    app.state.db_manager = DatabaseManager(settings) if settings.has_database else None

    # Gateways post from anywhere; credentials are never sent
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    _register_routes(app)
    return app


# ============================================================================
# Exception Handlers
# ============================================================================

def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(SignatureVerificationError)
    async def signature_error_handler(request: Request, exc: SignatureVerificationError):
        """Handle webhook signature failures."""
        logger.warning(f"Rejected webhook: {exc.message}")
        return JSONResponse(
            status_code=401,
            content=exc.to_dict(),
        )

    @app.exception_handler(WebhookParseError)
    async def parse_error_handler(request: Request, exc: WebhookParseError):
        """Handle unparseable webhook payloads."""
        logger.error(f"Webhook parse error: {exc.message}")
        return JSONResponse(
            status_code=500,
            content=exc.to_dict(),
        )

    @app.exception_handler(AcolheBillingError)
    async def general_error_handler(request: Request, exc: AcolheBillingError):
        """Handle all other application errors."""
        logger.error(f"Application error: {exc.message}")
        return JSONResponse(
            status_code=500,
            content=exc.to_dict(),
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        """Handle persistence failures outside the reconciler."""
        logger.error(f"Database error: {exc}")
        error = DatabaseError("Database operation failed", original_error=exc)
        return JSONResponse(
            status_code=500,
            content=error.to_dict(),
        )


# ============================================================================
# Health Check and Routers
# ============================================================================

def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "acolhe-billing"}

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "AcolheAqui Billing API",
            "version": __version__,
            "docs": "/docs",
        }

    from acolhe_billing.api.routes import webhooks

    app.include_router(webhooks.router, tags=["Webhooks"])


app = create_app()
