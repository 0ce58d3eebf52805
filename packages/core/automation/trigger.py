"""
Automation Trigger Engine.

Turns a lifecycle event into scheduled, deduplicated automation logs:
1. Find active rules for (tenant, trigger type); none -> no-op
2. Skip rules that already have a pending log for this customer
3. Insert a pending log scheduled at now + delay_hours

``run`` returns an explicit result and lets store errors propagate.
``trigger`` is the fire-and-forget edge used by booking, contact and
subscribe flows: it logs every failure and never raises.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol
from uuid import UUID

from packages.core.automation.models import ScheduledAutomation, TriggerRule, TriggerType

logger = logging.getLogger(__name__)


class AutomationStore(Protocol):
    """Data-store operations the trigger engine depends on."""

    async def list_active_automation_rules(
        self, tenant_id: UUID, trigger_type: str
    ) -> list[TriggerRule]:
        ...

    async def find_pending_automation_log(
        self, rule_id: UUID, customer_id: UUID
    ) -> Any | None:
        ...

    async def insert_automation_log(self, log: ScheduledAutomation) -> None:
        ...


@dataclass
class TriggerResult:
    """Outcome of one trigger evaluation."""

    trigger_type: str
    rules_matched: int = 0
    scheduled: list[ScheduledAutomation] = field(default_factory=list)
    skipped_rule_ids: list[UUID] = field(default_factory=list)

    @property
    def scheduled_count(self) -> int:
        return len(self.scheduled)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_trigger(trigger_type: TriggerType | str) -> str | None:
    value = trigger_type.value if isinstance(trigger_type, TriggerType) else str(trigger_type)
    try:
        return TriggerType(value.strip().lower()).value
    except ValueError:
        return None


class AutomationTriggerEngine:
    """Schedules delayed automation actions in response to lifecycle events."""

    def __init__(
        self,
        store: AutomationStore,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Data-store collaborator.
            clock: Returns the current time. Defaults to UTC now.
        """
        self._store = store
        self._clock = clock or _utcnow

    async def run(
        self,
        trigger_type: TriggerType | str,
        customer_id: UUID,
        tenant_id: UUID,
    ) -> TriggerResult:
        """
        Evaluate a trigger and schedule any due work.

        Raises:
            Whatever the store raises.
        """
        normalized = _normalize_trigger(trigger_type)
        result = TriggerResult(trigger_type=normalized or str(trigger_type))

        if normalized is None:
            logger.debug(f"Ignoring unknown trigger type '{trigger_type}'")
            return result

        rules = await self._store.list_active_automation_rules(tenant_id, normalized)
        if not rules:
            return result

        result.rules_matched = len(rules)
        now = self._clock()

        for rule in rules:
            rule = TriggerRule.model_validate(rule)

            existing = await self._store.find_pending_automation_log(rule.id, customer_id)
            if existing is not None:
                result.skipped_rule_ids.append(rule.id)
                continue

            log = ScheduledAutomation(
                rule_id=rule.id,
                customer_id=customer_id,
                tenant_id=tenant_id,
                scheduled_at=now + timedelta(hours=rule.delay_hours),
            )
            await self._store.insert_automation_log(log)
            result.scheduled.append(log)

        logger.info(
            f"Trigger {normalized} for customer {customer_id}: "
            f"{result.scheduled_count} scheduled, {len(result.skipped_rule_ids)} already pending"
        )
        return result

    async def trigger(
        self,
        trigger_type: TriggerType | str,
        customer_id: UUID,
        tenant_id: UUID,
    ) -> None:
        """Fire-and-forget entry point. Never raises."""
        try:
            await self.run(trigger_type, customer_id, tenant_id)
        except Exception:
            logger.exception(
                f"Automation trigger '{trigger_type}' failed for customer {customer_id}"
            )
