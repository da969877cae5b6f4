"""Maintenance tasks — product score recompute and recommendation cache cleanup."""

import logging

from sqlalchemy import text

from app.tasks.celery_app import celery_app
from app.models.base import SyncSessionLocal

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.maintenance_tasks.refresh_product_scores")
def refresh_product_scores():
    """Recompute popularity and trending scores (calculate_popularity_scores())."""
    db = SyncSessionLocal()
    try:
        db.execute(text("SELECT calculate_popularity_scores()"))
        db.commit()
        logger.info("Recalculated product popularity scores")
        return {"refreshed": True}
    except Exception:
        db.rollback()
        logger.exception("Failed to recalculate product scores")
        raise
    finally:
        db.close()


@celery_app.task(name="app.tasks.maintenance_tasks.clean_expired_recommendations")
def clean_expired_recommendations():
    """Delete recommendation cache rows past their expiry."""
    db = SyncSessionLocal()
    try:
        expired = db.execute(
            text("SELECT count(*) FROM recommendation_cache WHERE expires_at < NOW()")
        ).scalar() or 0
        db.execute(text("SELECT clean_expired_recommendations()"))
        db.commit()
        logger.info(f"Deleted {expired} expired recommendation cache rows")
        return {"deleted": expired}
    except Exception:
        db.rollback()
        logger.exception("Failed to clean expired recommendation cache")
        raise
    finally:
        db.close()
