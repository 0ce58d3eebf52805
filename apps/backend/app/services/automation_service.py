"""Automation rule management."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.automation import AutomationLog, AutomationRule
from app.schemas.automations import AutomationRuleCreateRequest
from packages.core.automation.models import AutomationStatus

logger = logging.getLogger(__name__)


async def list_rules_with_stats(
    session: AsyncSession,
    tenant_id: UUID,
) -> list[tuple[AutomationRule, int, int]]:
    """
    List a tenant's rules, newest first, with sent and pending log counts.

    Returns:
        (rule, sent_count, pending_count) tuples
    """
    result = await session.execute(
        select(AutomationRule)
        .where(AutomationRule.tenant_id == tenant_id)
        .order_by(AutomationRule.created_at.desc())
    )
    rules = list(result.scalars().all())
    if not rules:
        return []

    counts = await session.execute(
        select(AutomationLog.rule_id, AutomationLog.status, func.count())
        .where(
            AutomationLog.rule_id.in_([r.id for r in rules]),
            AutomationLog.status.in_([AutomationStatus.SENT, AutomationStatus.PENDING]),
        )
        .group_by(AutomationLog.rule_id, AutomationLog.status)
    )
    by_rule: dict[tuple[UUID, AutomationStatus], int] = {
        (rule_id, status): count for rule_id, status, count in counts.all()
    }

    return [
        (
            rule,
            by_rule.get((rule.id, AutomationStatus.SENT), 0),
            by_rule.get((rule.id, AutomationStatus.PENDING), 0),
        )
        for rule in rules
    ]


async def create_rule(
    session: AsyncSession,
    tenant_id: UUID,
    payload: AutomationRuleCreateRequest,
) -> AutomationRule:
    """Create an automation rule for the tenant."""
    rule = AutomationRule(
        tenant_id=tenant_id,
        name=payload.name.strip(),
        trigger_type=payload.trigger_type.value,
        action_type=payload.action_type,
        delay_hours=payload.delay_hours,
        subject=payload.subject,
        body=payload.body,
        coupon_code=payload.coupon_code,
        coupon_title=payload.coupon_title,
        is_active=payload.is_active,
    )
    session.add(rule)
    await session.flush()
    await session.refresh(rule)

    logger.info(f"Created automation rule {rule.id} ({rule.trigger_type}) for tenant {tenant_id}")
    return rule
