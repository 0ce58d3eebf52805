"""
Tests for the Customer Field Computer.

Tests lifecycle flags, day counts and the engagement score.
"""

from datetime import timedelta

import pytest

from packages.core.segmentation.fields import (
    ComputedFields,
    EngagementLevel,
    compute_customer_fields,
)
from packages.core.segmentation.models import CustomerExtras


# -----------------------------
# Day Count Tests
# -----------------------------


class TestDayCounts:
    """Tests for days_since_first_seen and days_since_last_seen."""

    def test_partial_days_are_floored(self, customer_factory, now) -> None:
        """2 days and 23 hours counts as 2 days."""
        customer = customer_factory(last_seen_at=now - timedelta(days=2, hours=23))

        computed = compute_customer_fields(customer, now=now)

        assert computed.days_since_last_seen == 2

    def test_naive_datetimes_are_treated_as_utc(self, customer_factory, now) -> None:
        """Timestamps without tzinfo should be read as UTC."""
        customer = customer_factory(
            last_seen_at=(now - timedelta(days=3)).replace(tzinfo=None)
        )

        computed = compute_customer_fields(customer, now=now)

        assert computed.days_since_last_seen == 3

    def test_future_timestamps_clamp_to_zero(self, customer_factory, now) -> None:
        """A last visit in the future should not produce negative days."""
        customer = customer_factory(last_seen_at=now + timedelta(days=4))

        computed = compute_customer_fields(customer, now=now)

        assert computed.days_since_last_seen == 0

    def test_first_seen_falls_back_to_created_at(self, customer_factory, now) -> None:
        """Missing first/last seen use created_at."""
        customer = customer_factory(
            first_seen_at=None,
            last_seen_at=None,
            created_at=now - timedelta(days=10),
        )

        computed = compute_customer_fields(customer, now=now)

        assert computed.days_since_first_seen == 10
        assert computed.days_since_last_seen == 10

    def test_no_timestamps_at_all(self, customer_factory, now) -> None:
        """A customer with no timestamps counts as seen today."""
        customer = customer_factory(first_seen_at=None, last_seen_at=None, created_at=None)

        computed = compute_customer_fields(customer, now=now)

        assert computed.days_since_first_seen == 0
        assert computed.days_since_last_seen == 0


# -----------------------------
# Lifecycle Flag Tests
# -----------------------------


class TestLifecycleFlags:
    """Tests for the lifecycle boolean fields."""

    @pytest.mark.parametrize("days,expected", [(0, True), (30, True), (31, False)])
    def test_is_new(self, customer_factory, now, days, expected) -> None:
        """New means first seen within 30 days, inclusive."""
        customer = customer_factory(days_since_first_seen=days, days_since_last_seen=0)

        assert compute_customer_fields(customer, now=now).is_new is expected

    @pytest.mark.parametrize("days,expected", [(60, True), (61, False)])
    def test_is_active(self, customer_factory, now, days, expected) -> None:
        """Active means last seen within 60 days, inclusive."""
        customer = customer_factory(days_since_last_seen=days)

        assert compute_customer_fields(customer, now=now).is_active is expected

    @pytest.mark.parametrize(
        "bookings,days,expected",
        [
            (2, 45, True),
            (2, 90, True),
            (2, 44, False),
            (2, 91, False),
            (1, 60, False),
        ],
    )
    def test_is_at_risk(self, customer_factory, now, bookings, days, expected) -> None:
        """At risk needs 2+ bookings and a last visit 45-90 days ago."""
        customer = customer_factory(total_bookings=bookings, days_since_last_seen=days)

        assert compute_customer_fields(customer, now=now).is_at_risk is expected

    @pytest.mark.parametrize(
        "bookings,days,expected",
        [(1, 91, True), (1, 90, False), (0, 400, False)],
    )
    def test_is_churned(self, customer_factory, now, bookings, days, expected) -> None:
        """Churned needs a booking and no visit for more than 90 days."""
        customer = customer_factory(
            total_bookings=bookings,
            days_since_first_seen=500,
            days_since_last_seen=days,
        )

        assert compute_customer_fields(customer, now=now).is_churned is expected

    def test_is_vip_by_bookings(self, customer_factory, now) -> None:
        """10 bookings make a VIP on their own."""
        customer = customer_factory(total_bookings=10)

        assert compute_customer_fields(customer, now=now).is_vip is True

    def test_is_vip_with_referrals(self, customer_factory, now) -> None:
        """5 bookings make a VIP only together with referrals."""
        customer = customer_factory(total_bookings=5)

        with_referrals = compute_customer_fields(
            customer, CustomerExtras(has_referrals=True), now=now
        )
        without = compute_customer_fields(customer, now=now)

        assert with_referrals.is_vip is True
        assert without.is_vip is False

    def test_is_subscriber_matches_whole_source(self, customer_factory, now) -> None:
        """Subscriber is one of the comma-separated sources."""
        subscriber = customer_factory(source="booking, subscriber")
        lookalike = customer_factory(source="subscribers")

        assert compute_customer_fields(subscriber, now=now).is_subscriber is True
        assert compute_customer_fields(lookalike, now=now).is_subscriber is False

    def test_is_repeat_counts_bookings_and_messages(self, customer_factory, now) -> None:
        """More than one interaction of any kind is a repeat customer."""
        once = customer_factory(total_bookings=1)
        twice = customer_factory(total_bookings=1, total_messages=1)

        assert compute_customer_fields(once, now=now).is_repeat is False
        assert compute_customer_fields(twice, now=now).is_repeat is True

    def test_contact_richness(self, customer_factory, now) -> None:
        """Richness counts email, phone and LINE."""
        customer = customer_factory(email="a@example.com", line_user_id="U123")

        computed = compute_customer_fields(customer, now=now)

        assert computed.has_email is True
        assert computed.has_phone is False
        assert computed.has_line is True
        assert computed.contact_richness == 2


# -----------------------------
# Engagement Tests
# -----------------------------


class TestEngagementScore:
    """Tests for the engagement score and level."""

    def test_maximum_score_is_capped(self, customer_factory, now) -> None:
        """Recent, frequent, fully reachable customers score 100."""
        customer = customer_factory(
            days_since_last_seen=0,
            total_bookings=25,
            email="a@example.com",
            phone="+81000",
            line_user_id="U1",
        )

        computed = compute_customer_fields(
            customer, CustomerExtras(has_stamps=True), now=now
        )

        assert computed.engagement_score == 100
        assert computed.engagement_level == EngagementLevel.HIGH

    def test_recency_decays_linearly(self, customer_factory, now) -> None:
        """45 days without a visit halves the recency part."""
        customer = customer_factory(
            days_since_last_seen=45, total_bookings=2, email="a@example.com"
        )

        computed = compute_customer_fields(customer, now=now)

        # 20 recency + 6 frequency + 10 email
        assert computed.engagement_score == 36
        assert computed.engagement_level == EngagementLevel.LOW

    def test_score_is_rounded(self, customer_factory, now) -> None:
        """Fractional recency is rounded to the nearest integer."""
        customer = customer_factory(
            days_since_last_seen=5, total_bookings=3, email="a@example.com"
        )

        computed = compute_customer_fields(customer, now=now)

        # 37.78 recency + 9 frequency + 10 email
        assert computed.engagement_score == 57
        assert computed.engagement_level == EngagementLevel.MEDIUM

    def test_long_gone_customer_scores_zero(self, customer_factory, now) -> None:
        """Recency never goes negative."""
        customer = customer_factory(days_since_first_seen=400, days_since_last_seen=200)

        computed = compute_customer_fields(customer, now=now)

        assert computed.engagement_score == 0
        assert computed.engagement_level == EngagementLevel.LOW

    def test_to_dict_serializes_level(self, customer_factory, now) -> None:
        """The API shape carries the level as a plain string."""
        computed = compute_customer_fields(customer_factory(), now=now)

        data = computed.to_dict()

        assert isinstance(computed, ComputedFields)
        assert data["engagement_level"] in {"low", "medium", "high"}
        assert data["days_since_last_seen"] == 5
