"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.infrastructure.db import engine
from shared.config.settings import settings
from shared.config.logging import setup_logging, rest_api_logger as logger
from rest_api.models import Base


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Initialize logging
    setup_logging()

    # Validate production secrets before startup
    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        else:
            logger.warning(
                "Running with insecure defaults (acceptable for development only)"
            )

    # Startup
    logger.info("Starting REST API", port=settings.rest_api_port, env=settings.environment)

    if settings.create_tables_on_startup:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")

    # Outbox processor delivers push notifications and external status syncs
    if settings.outbox_processor_enabled:
        from rest_api.services.events.outbox_processor import start_outbox_processor
        await start_outbox_processor()
        logger.info("Outbox processor started")

    yield

    # Shutdown
    logger.info("Shutting down REST API")

    if settings.outbox_processor_enabled:
        from rest_api.services.events.outbox_processor import stop_outbox_processor
        await stop_outbox_processor()
        logger.info("Outbox processor stopped")

    # Close outbound HTTP clients
    from rest_api.services.integrations import close_mandao_client, close_push_sender
    await close_push_sender()
    await close_mandao_client()
    logger.info("HTTP clients closed")
