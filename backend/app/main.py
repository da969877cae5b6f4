"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import redis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text

from app.config import get_settings
from app.models import ProductScore, RecommendationCache
from app.models.base import engine, AsyncSessionLocal
from app.api.v1 import router as api_v1_router
from app.dependencies.auth import MissingAuthorizationException

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown.

    Tables are owned by migrations (and the marketplace schema for products
    and users), so startup only confirms the database answers.
    """
    logger.info(
        "Starting %s (batch_size=%d, max_users=%d, ttl=%dm)...",
        settings.app_name,
        settings.recommendation_batch_size,
        settings.recommendation_max_users_per_run,
        settings.recommendation_cache_ttl_minutes,
    )
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database reachable")
    except Exception as e:
        logger.warning("Database not reachable at startup: %s", e)
    yield
    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Background recommendation cache generation for the bike marketplace",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(MissingAuthorizationException)
async def missing_authorization_handler(request: Request, exc: MissingAuthorizationException):
    return JSONResponse(status_code=401, content={"error": "Missing authorization header"})


app.include_router(api_v1_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.app_name}


async def _check_recommendation_data() -> dict:
    """Valid personalized cache rows, newest write, and scored product count."""
    now = datetime.now(timezone.utc)
    async with AsyncSessionLocal() as session:
        cached, last_write = (await session.execute(
            select(func.count(RecommendationCache.id), func.max(RecommendationCache.created_at))
            .where(
                RecommendationCache.recommendation_type == "personalized",
                RecommendationCache.expires_at >= now,
            )
        )).one()
        scored = (await session.execute(select(func.count(ProductScore.product_id)))).scalar()

    return {
        "ok": True,
        "valid_cache_rows": cached,
        "last_cache_write": last_write.isoformat() if last_write else None,
        "scored_products": scored,
    }


def _check_broker() -> dict:
    r = redis.from_url(settings.redis_url, socket_timeout=5)
    r.ping()
    return {"ok": True}


def _check_workers() -> dict:
    from app.tasks.celery_app import celery_app

    active_workers = celery_app.control.inspect(timeout=5).active()
    return {
        "ok": bool(active_workers),
        "workers": list(active_workers.keys()) if active_workers else [],
    }


@app.get("/health/detailed")
async def detailed_health_check():
    checks = {}

    try:
        checks["recommendation_data"] = await _check_recommendation_data()
    except Exception as e:
        checks["recommendation_data"] = {"ok": False, "message": str(e)}

    for name, check in (("broker", _check_broker), ("celery_workers", _check_workers)):
        try:
            checks[name] = check()
        except Exception as e:
            checks[name] = {"ok": False, "message": str(e)}

    all_ok = all(check.get("ok", False) for check in checks.values())
    return {
        "status": "healthy" if all_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
