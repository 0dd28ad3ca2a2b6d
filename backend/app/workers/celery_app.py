"""Celery application configuration."""

from celery import Celery
from celery.schedules import crontab

from app.config import settings
from app.core.logging import setup_logging

setup_logging(settings.log_level)

celery_app = Celery(
    "exposure_monitor",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.workers.tasks.sync_scans",
        "app.workers.tasks.sync_brokers",
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
    task_time_limit=600,  # 10 minutes max per task
    task_soft_time_limit=540,  # 9 minutes soft limit
    worker_prefetch_multiplier=1,
    task_acks_late=True,  # Acknowledge after completion
    task_reject_on_worker_lost=True,
)

# Scheduled tasks (beat schedule)
celery_app.conf.beat_schedule = {
    # Mirror every subscriber's provider scans daily at 2 AM
    "daily-scan-sync": {
        "task": "app.workers.tasks.sync_scans.sync_all_subscribers",
        "schedule": crontab(hour=2, minute=0),
    },
    # Refresh the broker catalog hourly
    "hourly-broker-sync": {
        "task": "app.workers.tasks.sync_brokers.sync_broker_catalog",
        "schedule": crontab(minute=0),
    },
}
