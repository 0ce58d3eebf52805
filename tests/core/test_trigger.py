"""
Tests for the Automation Trigger Engine.

Uses the in-memory FakeAutomationStore from conftest and a fixed clock.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from packages.core.automation.models import AutomationStatus, TriggerRule, TriggerType
from packages.core.automation.trigger import AutomationTriggerEngine


# -----------------------------
# Fixtures
# -----------------------------


@pytest.fixture
def engine(automation_store, now) -> AutomationTriggerEngine:
    return AutomationTriggerEngine(automation_store, clock=lambda: now)


@pytest.fixture
def customer_id():
    return uuid4()


# -----------------------------
# Scheduling Tests
# -----------------------------


class TestRun:
    """Tests for AutomationTriggerEngine.run."""

    async def test_schedules_pending_log_after_delay(
        self, engine, automation_store, tenant_id, customer_id, now
    ) -> None:
        """after_booking with a 24 hour delay schedules one pending log."""
        rule = automation_store.add_rule(tenant_id, "after_booking", delay_hours=24)

        result = await engine.run("after_booking", customer_id, tenant_id)

        assert result.rules_matched == 1
        assert result.scheduled_count == 1
        assert len(automation_store.logs) == 1
        log = automation_store.logs[0]
        assert log.rule_id == rule.id
        assert log.customer_id == customer_id
        assert log.tenant_id == tenant_id
        assert log.status == AutomationStatus.PENDING
        assert log.scheduled_at == now + timedelta(hours=24)

    async def test_fractional_delay(self, engine, automation_store, tenant_id, customer_id, now) -> None:
        automation_store.add_rule(tenant_id, "after_contact", delay_hours=1.5)

        await engine.run(TriggerType.AFTER_CONTACT, customer_id, tenant_id)

        assert automation_store.logs[0].scheduled_at == now + timedelta(minutes=90)

    async def test_every_matching_rule_is_scheduled(
        self, engine, automation_store, tenant_id, customer_id
    ) -> None:
        automation_store.add_rule(tenant_id, "after_subscribe", delay_hours=0)
        automation_store.add_rule(tenant_id, "after_subscribe", delay_hours=72)
        automation_store.add_rule(tenant_id, "after_booking", delay_hours=1)

        result = await engine.run("after_subscribe", customer_id, tenant_id)

        assert result.scheduled_count == 2
        assert {log.scheduled_at for log in automation_store.logs} == {
            log.scheduled_at for log in result.scheduled
        }

    async def test_pending_log_is_not_duplicated(
        self, engine, automation_store, tenant_id, customer_id
    ) -> None:
        """A second trigger while the first is pending is skipped."""
        rule = automation_store.add_rule(tenant_id, "after_booking", delay_hours=24)

        await engine.run("after_booking", customer_id, tenant_id)
        second = await engine.run("after_booking", customer_id, tenant_id)

        assert len(automation_store.logs) == 1
        assert second.scheduled_count == 0
        assert second.skipped_rule_ids == [rule.id]

    async def test_other_customers_are_not_deduplicated(
        self, engine, automation_store, tenant_id
    ) -> None:
        automation_store.add_rule(tenant_id, "after_booking", delay_hours=24)

        await engine.run("after_booking", uuid4(), tenant_id)
        await engine.run("after_booking", uuid4(), tenant_id)

        assert len(automation_store.logs) == 2

    async def test_no_rules_is_a_noop(self, engine, automation_store, tenant_id, customer_id) -> None:
        result = await engine.run("after_message", customer_id, tenant_id)

        assert result.rules_matched == 0
        assert automation_store.logs == []

    async def test_unknown_trigger_never_touches_the_store(
        self, engine, automation_store, tenant_id, customer_id
    ) -> None:
        result = await engine.run("after_lunch", customer_id, tenant_id)

        assert result.scheduled_count == 0
        assert automation_store.rule_queries == []

    async def test_trigger_type_is_normalized(
        self, engine, automation_store, tenant_id, customer_id
    ) -> None:
        automation_store.add_rule(tenant_id, "after_booking", delay_hours=0)

        result = await engine.run(" After_Booking ", customer_id, tenant_id)

        assert result.trigger_type == "after_booking"
        assert result.scheduled_count == 1

    async def test_store_errors_propagate(
        self, engine, automation_store, tenant_id, customer_id
    ) -> None:
        automation_store.add_rule(tenant_id, "after_booking")
        automation_store.fail_inserts = True

        with pytest.raises(RuntimeError):
            await engine.run("after_booking", customer_id, tenant_id)


# -----------------------------
# Fire-and-forget Tests
# -----------------------------


class TestTrigger:
    """Tests for AutomationTriggerEngine.trigger."""

    async def test_trigger_schedules(self, engine, automation_store, tenant_id, customer_id) -> None:
        automation_store.add_rule(tenant_id, "after_booking", delay_hours=24)

        assert await engine.trigger("after_booking", customer_id, tenant_id) is None
        assert len(automation_store.logs) == 1

    async def test_trigger_never_raises(self, engine, automation_store, tenant_id, customer_id) -> None:
        """Store failures are logged and swallowed."""
        automation_store.add_rule(tenant_id, "after_booking")
        automation_store.fail_inserts = True

        await engine.trigger("after_booking", customer_id, tenant_id)

        assert automation_store.logs == []


# -----------------------------
# Rule Model Tests
# -----------------------------


class TestTriggerRule:
    """Tests for delay normalization."""

    @pytest.mark.parametrize("delay,expected", [(None, 0), (-5, 0), (0, 0), (48, 48)])
    def test_delay_is_non_negative(self, delay, expected) -> None:
        assert TriggerRule(id=uuid4(), delay_hours=delay).delay_hours == expected
