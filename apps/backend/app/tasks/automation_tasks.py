"""Celery tasks for automation dispatch."""

import asyncio
import logging

from app.core.celery_app import celery_app
from app.core.config import get_settings
from app.db.session import worker_session
from app.services.automation_dispatch import process_due_automations
from app.services.notifications import EmailSender

logger = logging.getLogger(__name__)
settings = get_settings()


async def _process(limit: int) -> dict:
    async with worker_session() as session:
        summary = await process_due_automations(session, EmailSender(), limit=limit)
    return summary.to_dict()


@celery_app.task(
    bind=True,
    name="app.tasks.automation_tasks.process_automations_task",
    max_retries=0,
)
def process_automations_task(self, limit: int | None = None) -> dict:
    """
    Send due automation emails.

    Scheduled every few minutes by Celery beat. Logs that are not picked
    up in this run stay pending for the next one.

    Returns:
        Dispatch summary dict.
    """
    result = asyncio.run(_process(limit or settings.automation_process_batch_size))
    if result["processed"]:
        logger.info(f"Automation dispatch {self.request.id}: {result}")
    return result
