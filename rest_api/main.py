"""
REST API main application.
Entry point for the FastAPI REST server.

Run with:
    uvicorn rest_api.main:app --reload --port 8000
"""

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.infrastructure.correlation import CorrelationIdMiddleware
from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter
from rest_api.core.cors import configure_cors
from rest_api.core.errors import register_exception_handlers
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers.auth import router as auth_router
from rest_api.routers.products import router as products_router
from rest_api.routers.ingredients import router as ingredients_router
from rest_api.routers.orders import router as orders_router
from rest_api.routers.expenses import router as expenses_router
from rest_api.routers.cash_closings import router as cash_closings_router
from rest_api.routers.push import router as push_router
from rest_api.routers.mandao import router as mandao_router
from rest_api.routers.staff import router as staff_router


# Create FastAPI application
app = FastAPI(
    title="Comandas REST API",
    description="Restaurant orders, stock and cash reconciliation",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter

register_exception_handlers(app)
register_middlewares(app)
configure_cors(app)
# Added last so it wraps everything and every log line carries the request id
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/api/health")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "rest-api",
        "environment": settings.environment,
    }


@app.get("/api/health/detailed")
def health_check_detailed(db: Session = Depends(get_db)):
    """Health check including database connectivity."""
    try:
        db.execute(text("SELECT 1"))
        database = "healthy"
    except Exception as e:
        database = f"unhealthy: {e}" if settings.debug else "unhealthy"

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "service": "rest-api",
        "environment": settings.environment,
        "checks": {"database": database},
    }


# =============================================================================
# Routers
# =============================================================================

app.include_router(auth_router)
app.include_router(products_router)
app.include_router(ingredients_router)
app.include_router(orders_router)
app.include_router(expenses_router)
app.include_router(cash_closings_router)
app.include_router(push_router)
app.include_router(mandao_router)
app.include_router(staff_router)
