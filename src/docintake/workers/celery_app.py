"""Celery application and beat schedule.

Periodic triggers:
    validation.drain_queue     every minute
    reminders.send_due         daily 06:00 UTC
    requests.expire_overdue    daily 01:00 UTC

Run:
    celery -A docintake.workers.celery_app worker --beat
"""

from celery import Celery
from celery.schedules import crontab

from ..config import settings
from ..observability.logging_config import configure_logging

celery_app = Celery(
    "docintake",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "docintake.workers.intake_worker",
        "docintake.workers.validation_worker",
        "docintake.workers.reminder_worker",
        "docintake.workers.request_worker",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "validation-drain-queue": {
        "task": "validation.drain_queue",
        "schedule": 60.0,
        "options": {"expires": 55},
    },
    "reminders-send-due-daily": {
        "task": "reminders.send_due",
        "schedule": crontab(hour=6, minute=0),
        "options": {"expires": 3600},
    },
    "requests-expire-overdue-daily": {
        "task": "requests.expire_overdue",
        "schedule": crontab(hour=1, minute=0),
        "options": {"expires": 3600},
    },
}

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON, service="worker")
