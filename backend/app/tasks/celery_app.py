"""Celery application and beat schedule for the recommendation cache job."""

from celery import Celery
from celery.schedules import crontab

from app.config import get_settings

settings = get_settings()

RECOMMENDATION_QUEUE = "recommendations"

celery_app = Celery(
    "marketplace_recommendations",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.tasks.recommendation_tasks",
        "app.tasks.maintenance_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    task_default_queue=RECOMMENDATION_QUEUE,
    # A run must finish inside one schedule period or it overlaps the next
    task_time_limit=settings.celery_task_time_limit_seconds,
    task_soft_time_limit=settings.celery_task_time_limit_seconds - 60,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    result_expires=24 * 3600,
)

every_period = crontab(minute=f"*/{settings.recommendation_schedule_minutes}")
# Queued runs older than one period are dropped; the next tick replaces them
period_seconds = settings.recommendation_schedule_minutes * 60

celery_app.conf.beat_schedule = {
    "generate-recommendations": {
        "task": "app.tasks.recommendation_tasks.generate_recommendations",
        "schedule": every_period,
        "options": {"expires": period_seconds},
    },
    "refresh-product-scores": {
        "task": "app.tasks.maintenance_tasks.refresh_product_scores",
        "schedule": every_period,
        "options": {"expires": period_seconds},
    },
    "clean-expired-recommendations": {
        "task": "app.tasks.maintenance_tasks.clean_expired_recommendations",
        "schedule": crontab(minute=5),
    },
}
