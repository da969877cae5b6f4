"""Celery task that refreshes the recommendation cache on a schedule."""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.tasks.celery_app import celery_app
from app.models.base import create_task_engine
from app.services.recommendation_generator import run_recommendation_generation
from app.services.recommendation_store import SqlMaintenance, session_store_factory

logger = logging.getLogger(__name__)


async def _generate() -> dict:
    engine = create_task_engine()
    try:
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        summary = await run_recommendation_generation(
            session_store_factory(session_factory),
            SqlMaintenance(session_factory),
        )
        return summary.model_dump(mode="json", exclude_none=True)
    finally:
        await engine.dispose()


@celery_app.task(name="app.tasks.recommendation_tasks.generate_recommendations")
def generate_recommendations():
    """Pre-generate personalized recommendations for users active in the last 24h."""
    try:
        result = asyncio.run(_generate())
    except Exception:
        logger.exception("Recommendation generation failed")
        raise
    logger.info(
        "Generated recommendations: processed=%s errors=%s total=%s",
        result["processed"], result["errors"], result["total_active_users"],
    )
    return result
