"""Celery configuration for async task processing."""

import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Create Celery app
celery_app = Celery(
    "folio",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Result backend settings
    result_backend_transport_options={
        "visibility_timeout": 3600,  # 1 hour
    },
    result_expires=3600 * 24,  # Results expire after 24 hours
    # Task execution settings
    task_track_started=True,
    task_time_limit=3600,  # 1 hour hard limit
    task_soft_time_limit=3000,  # 50 minutes soft limit
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,
    # Retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# Task routes (task-specific queues)
celery_app.conf.task_routes = {
    "app.tasks.segment_tasks.*": {"queue": "segments"},
    "app.tasks.automation_tasks.*": {"queue": "automations"},
}

# Periodic tasks (run with `celery -A app.core.celery_app beat`)
celery_app.conf.beat_schedule = {
    "process-due-automations": {
        "task": "app.tasks.automation_tasks.process_automations_task",
        "schedule": crontab(minute="*/5"),
    },
    "refresh-all-segments-nightly": {
        "task": "app.tasks.segment_tasks.refresh_all_segments_task",
        "schedule": crontab(hour=3, minute=0),
    },
}


@worker_process_init.connect
def init_worker_process(**kwargs):
    """Initialize worker process."""
    logger.info("Celery worker process initialized")


# Auto-discover tasks
celery_app.autodiscover_tasks(["app.tasks"])

logger.info("Celery app configured successfully")
