"""
FastAPI application entry point.

Main API server for StockDB: CSV ingestion of daily trading records
and aggregate queries over them.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from stockdb.core.config import settings
from stockdb.core.logging import setup_logging
from stockdb.core.database import close_db, init_db
from stockdb.core.metrics import metrics
from stockdb.core.redis import close_redis, get_async_redis

# Setup logging
setup_logging()

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Daily equity trading records - CSV ingestion and aggregate queries",
    debug=settings.DEBUG,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup() -> None:
    """Run on application startup."""
    if settings.DB_CREATE_ALL:
        await init_db()  # otherwise the schema is managed by Alembic
    if settings.METRICS_REDIS_ENABLED:
        metrics.set_redis(await get_async_redis())


@app.on_event("shutdown")
async def shutdown() -> None:
    """Run on application shutdown."""
    await close_db()
    await close_redis()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


from stockdb.api.stocks import router as stocks_router
from stockdb.api.metrics import router as metrics_router

app.include_router(stocks_router, prefix=settings.API_PREFIX, tags=["stocks"])
app.include_router(metrics_router, prefix=f"{settings.API_PREFIX}/metrics", tags=["metrics"])
