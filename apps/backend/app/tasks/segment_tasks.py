"""Celery tasks for segment membership refresh."""

import asyncio
import logging
from uuid import UUID

from sqlalchemy import select

from app.core.celery_app import celery_app
from app.core.config import get_settings
from app.db.session import sync_session_factory, worker_session
from app.models.tenant import Tenant
from app.services.stores import SqlAlchemySegmentStore
from packages.core.segmentation import SegmentRefreshError, SegmentRefresher

logger = logging.getLogger(__name__)
settings = get_settings()


async def _refresh_tenant(tenant_id: UUID) -> dict:
    async with worker_session() as session:
        store = SqlAlchemySegmentStore(
            session, batch_size=settings.segment_membership_batch_size
        )
        refresher = SegmentRefresher(
            store, customer_limit=settings.segment_refresh_customer_limit
        )
        summary = await refresher.refresh(tenant_id)
    return summary.to_dict()


@celery_app.task(
    bind=True,
    name="app.tasks.segment_tasks.refresh_tenant_segments_task",
    max_retries=3,
    default_retry_delay=60,  # Retry after 1 minute
)
def refresh_tenant_segments_task(self, tenant_id: str) -> dict:
    """
    Refresh every active segment of one tenant.

    Args:
        self: Celery task instance (injected).
        tenant_id: Tenant UUID as a string.

    Returns:
        Refresh summary dict.
    """
    logger.info(f"Starting segment refresh for tenant {tenant_id}: {self.request.id}")

    try:
        result = asyncio.run(_refresh_tenant(UUID(tenant_id)))
    except SegmentRefreshError as e:
        logger.error(f"Segment refresh failed for tenant {tenant_id}: {e}")
        raise self.retry(exc=e)

    result["tenant_id"] = tenant_id
    return result


@celery_app.task(
    bind=True,
    name="app.tasks.segment_tasks.refresh_all_segments_task",
    max_retries=1,
    default_retry_delay=600,  # 10 minutes
)
def refresh_all_segments_task(self) -> dict:
    """
    Queue one refresh task per active tenant.

    Scheduled nightly by Celery beat.

    Returns:
        Dict with the number of tenants queued.
    """
    try:
        with sync_session_factory() as session:
            tenant_ids = [
                str(tenant_id)
                for tenant_id in session.execute(
                    select(Tenant.id).where(Tenant.is_active.is_(True))
                ).scalars()
            ]
    except Exception as e:
        logger.error(f"Failed to list tenants for segment refresh: {e}", exc_info=True)
        raise

    for tenant_id in tenant_ids:
        refresh_tenant_segments_task.delay(tenant_id=tenant_id)

    logger.info(f"Queued segment refresh for {len(tenant_ids)} tenants")
    return {"tenants_queued": len(tenant_ids)}
