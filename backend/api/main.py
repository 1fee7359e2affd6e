"""
InsydTracker API: FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from api.errors import setup_exception_handlers
from core.config import get_settings

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("InsydTracker API starting up", version=settings.app_version, env=settings.app_env)
    yield
    logger.info("InsydTracker API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant inventory tracking: warehouses, stock batches, aging and alerts",
    lifespan=lifespan,
)

setup_exception_handlers(app)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import (
    alerts,
    auth,
    categories,
    cron,
    dashboard,
    notifications,
    onboarding,
    products,
    reports,
    stock,
    users,
    warehouses,
)

app.include_router(auth.router)
app.include_router(onboarding.router)
app.include_router(warehouses.router)
app.include_router(categories.router)
app.include_router(products.router)
app.include_router(stock.router)
app.include_router(alerts.router)
app.include_router(notifications.router)
app.include_router(users.router)
app.include_router(reports.router)
app.include_router(dashboard.router)
app.include_router(cron.router)


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness probe with a database round-trip."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.error("health.database_unreachable", error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "version": settings.app_version, "database": "disconnected"},
        )
    return {"status": "healthy", "version": settings.app_version, "database": "connected"}
