"""Celery tasks package."""

# Import tasks so Celery can discover them
from app.tasks import automation_tasks, segment_tasks  # noqa: F401

__all__ = ["automation_tasks", "segment_tasks"]
