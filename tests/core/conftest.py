"""Shared fixtures and in-memory store fakes for core tests."""

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from packages.core.automation.models import ScheduledAutomation, TriggerRule
from packages.core.segmentation.models import (
    CustomerRecord,
    SegmentDefinition,
    SegmentType,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_customer(
    tenant_id: UUID | None = None,
    *,
    days_since_first_seen: int = 100,
    days_since_last_seen: int = 5,
    **overrides,
) -> CustomerRecord:
    """Build a customer relative to NOW."""
    data = {
        "id": uuid4(),
        "tenant_id": tenant_id or uuid4(),
        "name": "Test Customer",
        "email": None,
        "phone": None,
        "line_user_id": None,
        "total_bookings": 0,
        "total_messages": 0,
        "first_seen_at": NOW - timedelta(days=days_since_first_seen),
        "last_seen_at": NOW - timedelta(days=days_since_last_seen),
        "created_at": NOW - timedelta(days=days_since_first_seen),
        "tags": [],
        "source": "",
    }
    data.update(overrides)
    return CustomerRecord.model_validate(data)


def make_segment(tenant_id: UUID, criteria, name: str = "Segment", **overrides) -> SegmentDefinition:
    """Build a persisted custom segment definition."""
    data = {
        "id": uuid4(),
        "tenant_id": tenant_id,
        "name": name,
        "type": SegmentType.CUSTOM,
        "criteria": criteria,
    }
    data.update(overrides)
    return SegmentDefinition.model_validate(data)


class FakeSegmentStore:
    """In-memory SegmentStore recording every write."""

    def __init__(
        self,
        segments: Sequence[SegmentDefinition] = (),
        customers: Sequence[CustomerRecord] = (),
        referrers: Sequence[UUID] = (),
        stamp_owners: Sequence[UUID] = (),
    ):
        self.segments = list(segments)
        self.customers = list(customers)
        self.referrers = list(referrers)
        self.stamp_owners = list(stamp_owners)

        self.memberships: dict[UUID, list[UUID]] = {}
        self.counts: dict[UUID, int] = {}
        self.customer_limits: list[int] = []
        self.stamp_queries: list[list[UUID]] = []

        self.fail_loading: set[str] = set()
        self.fail_writes_for: set[UUID] = set()

    async def list_active_segments(self, tenant_id: UUID) -> list[SegmentDefinition]:
        if "segments" in self.fail_loading:
            raise RuntimeError("segments unavailable")
        return [s for s in self.segments if s.tenant_id == tenant_id and s.is_active]

    async def list_customers(self, tenant_id: UUID, limit: int) -> list[CustomerRecord]:
        if "customers" in self.fail_loading:
            raise RuntimeError("customers unavailable")
        self.customer_limits.append(limit)
        return [c for c in self.customers if c.tenant_id == tenant_id][:limit]

    async def list_referral_owners_with_positive_count(self, tenant_id: UUID) -> list[UUID]:
        if "referrals" in self.fail_loading:
            raise RuntimeError("referrals unavailable")
        return list(self.referrers)

    async def list_stamp_owners_with_positive_count(
        self, customer_ids: Sequence[UUID]
    ) -> list[UUID]:
        self.stamp_queries.append(list(customer_ids))
        return [cid for cid in self.stamp_owners if cid in set(customer_ids)]

    async def replace_segment_membership(
        self, segment_id: UUID, customer_ids: Sequence[UUID]
    ) -> None:
        if segment_id in self.fail_writes_for:
            raise RuntimeError("write failed")
        self.memberships[segment_id] = list(customer_ids)

    async def update_segment_count(self, segment_id: UUID, count: int) -> None:
        self.counts[segment_id] = count


class FakeAutomationStore:
    """In-memory AutomationStore with a pending-log index."""

    def __init__(self, rules: dict[tuple[UUID, str], list[TriggerRule]] | None = None):
        self.rules = rules or {}
        self.logs: list[ScheduledAutomation] = []
        self.rule_queries: list[tuple[UUID, str]] = []
        self.fail_inserts = False

    def add_rule(self, tenant_id: UUID, trigger_type: str, delay_hours: float | None = 0) -> TriggerRule:
        rule = TriggerRule(id=uuid4(), delay_hours=delay_hours)
        self.rules.setdefault((tenant_id, trigger_type), []).append(rule)
        return rule

    async def list_active_automation_rules(
        self, tenant_id: UUID, trigger_type: str
    ) -> list[TriggerRule]:
        self.rule_queries.append((tenant_id, trigger_type))
        return list(self.rules.get((tenant_id, trigger_type), []))

    async def find_pending_automation_log(
        self, rule_id: UUID, customer_id: UUID
    ) -> ScheduledAutomation | None:
        for log in self.logs:
            if (
                log.rule_id == rule_id
                and log.customer_id == customer_id
                and log.status.value == "pending"
            ):
                return log
        return None

    async def insert_automation_log(self, log: ScheduledAutomation) -> None:
        if self.fail_inserts:
            raise RuntimeError("insert failed")
        self.logs.append(log)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def customer_factory():
    """Build customers relative to NOW."""
    return make_customer


@pytest.fixture
def segment_factory():
    """Build persisted custom segments."""
    return make_segment


@pytest.fixture
def segment_store() -> FakeSegmentStore:
    return FakeSegmentStore()


@pytest.fixture
def automation_store() -> FakeAutomationStore:
    return FakeAutomationStore()
