"""Celery app for background maintenance (AI usage retention sweep). Uses Redis; DB session per task."""
from celery import Celery
from .config import settings

celery_app = Celery(
    "jobassist",
    broker=settings.celery_broker,
    backend=settings.redis_url,
    include=["jobassist.tasks"],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # celery -A jobassist.celery_app beat
    beat_schedule={
        "prune-ai-usage-daily": {
            "task": "jobassist.tasks.prune_ai_usage",
            "schedule": 24 * 60 * 60,
        },
    },
)
