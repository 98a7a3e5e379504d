"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from productbazar.config import get_settings

settings = get_settings()

celery_app = Celery(
    "productbazar",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "productbazar.workers.tasks",
    ],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per task
    task_always_eager=settings.celery_task_always_eager,
    worker_prefetch_multiplier=1,
)

# Scheduled tasks (beat)
celery_app.conf.beat_schedule = {
    # Drop views past the retention window daily at 3 AM UTC
    "purge-old-views": {
        "task": "productbazar.workers.tasks.purge_old_views",
        "schedule": crontab(minute=0, hour=3),
    },
    # Remove expired and revoked refresh tokens daily at 4 AM UTC
    "purge-refresh-tokens": {
        "task": "productbazar.workers.tasks.purge_refresh_tokens",
        "schedule": crontab(minute=0, hour=4),
    },
    # Close jobs past their expiry every hour
    "close-expired-jobs": {
        "task": "productbazar.workers.tasks.close_expired_jobs",
        "schedule": crontab(minute=15),
    },
}
