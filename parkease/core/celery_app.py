"""Celery application: Redis broker plus the beat schedule for session upkeep.

Worker:  celery -A parkease.core.celery_app worker -l info
Beat:    celery -A parkease.core.celery_app beat -l info
"""
from celery import Celery

from parkease.core.config import settings

celery_app = Celery(
    "parkease",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["parkease.tasks.session_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_hijack_root_logger=False,
    beat_schedule={
        "sweep-expired-sessions": {
            "task": "parkease.tasks.session_tasks.sweep_expired_sessions",
            "schedule": float(settings.SESSION_SWEEP_INTERVAL_SECONDS),
        },
    },
)
