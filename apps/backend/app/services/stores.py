"""
SQLAlchemy implementations of the segmentation and automation stores.

Both stores wrap a single AsyncSession. Segment writes are committed per
segment so that one failed segment never undoes another.
"""

import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.automation import AutomationLog, AutomationRule
from app.models.customer import Customer, CustomerStamp, ReferralCode
from app.models.segment import CustomerSegment, CustomerSegmentMember
from packages.core.automation.models import (
    AutomationStatus,
    ScheduledAutomation,
    TriggerRule,
)
from packages.core.segmentation.models import CustomerRecord, SegmentDefinition
from packages.core.segmentation.refresh import MEMBERSHIP_BATCH_SIZE, chunked

logger = logging.getLogger(__name__)


class SqlAlchemySegmentStore:
    """SegmentStore backed by PostgreSQL."""

    def __init__(self, session: AsyncSession, batch_size: int = MEMBERSHIP_BATCH_SIZE):
        self._session = session
        self._batch_size = batch_size

    async def list_active_segments(self, tenant_id: UUID) -> list[SegmentDefinition]:
        result = await self._session.execute(
            select(CustomerSegment)
            .where(
                CustomerSegment.tenant_id == tenant_id,
                CustomerSegment.is_active.is_(True),
            )
            .order_by(CustomerSegment.created_at)
        )
        return [SegmentDefinition.model_validate(row) for row in result.scalars().all()]

    async def list_customers(self, tenant_id: UUID, limit: int) -> list[CustomerRecord]:
        result = await self._session.execute(
            select(Customer)
            .where(Customer.tenant_id == tenant_id)
            .order_by(Customer.last_seen_at.desc(), Customer.id)
            .limit(limit)
        )
        return [CustomerRecord.model_validate(row) for row in result.scalars().all()]

    async def list_referral_owners_with_positive_count(self, tenant_id: UUID) -> list[UUID]:
        result = await self._session.execute(
            select(ReferralCode.customer_id)
            .where(
                ReferralCode.tenant_id == tenant_id,
                ReferralCode.customer_id.is_not(None),
                ReferralCode.referral_count > 0,
            )
            .distinct()
        )
        return list(result.scalars().all())

    async def list_stamp_owners_with_positive_count(
        self, customer_ids: Sequence[UUID]
    ) -> list[UUID]:
        if not customer_ids:
            return []

        owners: list[UUID] = []
        for batch in chunked(list(customer_ids), self._batch_size):
            result = await self._session.execute(
                select(CustomerStamp.customer_id)
                .where(
                    CustomerStamp.customer_id.in_(batch),
                    CustomerStamp.current_stamps > 0,
                )
                .distinct()
            )
            owners.extend(result.scalars().all())
        return owners

    async def replace_segment_membership(
        self, segment_id: UUID, customer_ids: Sequence[UUID]
    ) -> None:
        """Delete then re-insert membership rows. Committed by update_segment_count."""
        try:
            await self._session.execute(
                delete(CustomerSegmentMember).where(
                    CustomerSegmentMember.segment_id == segment_id
                )
            )
            for batch in chunked(list(customer_ids), self._batch_size):
                await self._session.execute(
                    insert(CustomerSegmentMember),
                    [{"segment_id": segment_id, "customer_id": cid} for cid in batch],
                )
        except Exception:
            await self._session.rollback()
            raise

    async def update_segment_count(self, segment_id: UUID, count: int) -> None:
        try:
            await self._session.execute(
                update(CustomerSegment)
                .where(CustomerSegment.id == segment_id)
                .values(customer_count=count)
            )
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise


class SqlAlchemyAutomationStore:
    """AutomationStore backed by PostgreSQL."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_active_automation_rules(
        self, tenant_id: UUID, trigger_type: str
    ) -> list[TriggerRule]:
        result = await self._session.execute(
            select(AutomationRule)
            .where(
                AutomationRule.tenant_id == tenant_id,
                AutomationRule.trigger_type == trigger_type,
                AutomationRule.is_active.is_(True),
            )
            .order_by(AutomationRule.created_at)
        )
        return [TriggerRule.model_validate(row) for row in result.scalars().all()]

    async def find_pending_automation_log(
        self, rule_id: UUID, customer_id: UUID
    ) -> UUID | None:
        result = await self._session.execute(
            select(AutomationLog.id)
            .where(
                AutomationLog.rule_id == rule_id,
                AutomationLog.customer_id == customer_id,
                AutomationLog.status == AutomationStatus.PENDING,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def insert_automation_log(self, log: ScheduledAutomation) -> None:
        """
        Insert a pending log.

        A concurrent trigger that already inserted the same pending
        (rule, customer) pair wins; this insert becomes a no-op.
        """
        stmt = (
            pg_insert(AutomationLog)
            .values(
                rule_id=log.rule_id,
                customer_id=log.customer_id,
                tenant_id=log.tenant_id,
                status=log.status,
                scheduled_at=log.scheduled_at,
            )
            .on_conflict_do_nothing(
                index_elements=["rule_id", "customer_id"],
                index_where=AutomationLog.status == AutomationStatus.PENDING,
            )
        )
        try:
            await self._session.execute(stmt)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
