"""Tests for the system segment catalog."""

from uuid import uuid4

from packages.core.segmentation.catalog import SYSTEM_SEGMENT_COUNT, get_system_segments
from packages.core.segmentation.evaluator import matching_segments
from packages.core.segmentation.models import CustomerExtras, SegmentType


class TestSystemSegments:
    """Tests for get_system_segments."""

    def test_fixed_catalog_in_display_order(self, tenant_id) -> None:
        segments = get_system_segments(tenant_id)

        assert SYSTEM_SEGMENT_COUNT == 8
        assert [s.name for s in segments] == [
            "New customers",
            "Regulars",
            "VIP customers",
            "At risk",
            "Churned",
            "Referrers",
            "Subscribers only",
            "LINE connected",
        ]

    def test_definitions_are_unpersisted_system_segments(self, tenant_id) -> None:
        for segment in get_system_segments(tenant_id):
            assert segment.id is None
            assert segment.tenant_id == tenant_id
            assert segment.type == SegmentType.SYSTEM
            assert segment.is_active is True
            assert segment.customer_count == 0
            assert segment.criteria.rules

    def test_each_call_returns_fresh_definitions(self, tenant_id) -> None:
        """Mutating one tenant's catalog must not leak into another's."""
        first = get_system_segments(tenant_id)
        first[0].criteria.rules.clear()

        second = get_system_segments(uuid4())

        assert second[0].criteria.rules
        assert second[0].tenant_id != tenant_id


class TestSystemSegmentSemantics:
    """Tests that system segments pick the customers their names promise."""

    def _names(self, customer, tenant_id, now, extras=None) -> set[str]:
        segments = get_system_segments(tenant_id)
        return {s.name for s in matching_segments(customer, segments, extras, now=now)}

    def test_regular_vip(self, customer_factory, tenant_id, now) -> None:
        customer = customer_factory(
            total_bookings=12, days_since_last_seen=3, line_user_id="U1"
        )

        names = self._names(customer, tenant_id, now, CustomerExtras(has_referrals=True))

        assert names == {"Regulars", "VIP customers", "Referrers", "LINE connected"}

    def test_subscriber_who_never_booked(self, customer_factory, tenant_id, now) -> None:
        customer = customer_factory(
            source="subscriber", days_since_first_seen=5, days_since_last_seen=5
        )

        names = self._names(customer, tenant_id, now)

        assert names == {"New customers", "Subscribers only"}

    def test_lapsed_customers(self, customer_factory, tenant_id, now) -> None:
        at_risk = customer_factory(total_bookings=2, days_since_last_seen=50)
        churned = customer_factory(
            total_bookings=1, days_since_first_seen=300, days_since_last_seen=120
        )

        assert self._names(at_risk, tenant_id, now) == {"At risk"}
        assert self._names(churned, tenant_id, now) == {"Churned"}
