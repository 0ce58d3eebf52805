"""
Customer Field Computer.

Derives behavioral attributes (recency, frequency, lifecycle stage) from a
customer record plus auxiliary signals. Pure and clock-injectable: the only
time dependency is the ``now`` used for the "days since" fields.

Lifecycle rules:
- new:      first seen within 30 days
- active:   last seen within 60 days
- at risk:  2+ bookings, last seen 45-90 days ago
- churned:  1+ booking, last seen more than 90 days ago
- VIP:      10+ bookings, or 5+ bookings with referrals
"""

import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum

from packages.core.segmentation.models import CustomerExtras, CustomerRecord

NEW_CUSTOMER_DAYS = 30
ACTIVE_DAYS = 60
AT_RISK_MIN_DAYS = 45
AT_RISK_MAX_DAYS = 90
CHURNED_AFTER_DAYS = 90

_SECONDS_PER_DAY = 60 * 60 * 24


class EngagementLevel(str, Enum):
    """Bucketed engagement score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ComputedFields:
    """Derived, ephemeral attributes of one customer at one point in time."""

    days_since_first_seen: int
    days_since_last_seen: int
    is_new: bool
    is_active: bool
    is_at_risk: bool
    is_churned: bool
    is_vip: bool
    is_subscriber: bool
    is_repeat: bool
    has_email: bool
    has_phone: bool
    has_line: bool
    has_referrals: bool
    has_stamps: bool
    contact_richness: int
    engagement_score: int
    engagement_level: EngagementLevel

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        data = asdict(self)
        data["engagement_level"] = self.engagement_level.value
        return data


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _days_between(earlier: datetime | None, now: datetime) -> int:
    """Whole days elapsed since ``earlier``; 0 for missing or future values."""
    if earlier is None:
        return 0
    elapsed = (now - _as_utc(earlier)).total_seconds()
    return max(0, math.floor(elapsed / _SECONDS_PER_DAY))


def _engagement_score(
    days_since_last_seen: int,
    total_bookings: int,
    has_email: bool,
    has_phone: bool,
    has_line: bool,
    has_stamps: bool,
) -> int:
    """
    Engagement score from 0 to 100.

    Recency contributes up to 40 (linear decay over 90 days), frequency up
    to 30 (3 per booking, capped at 10 bookings), and contact depth up to 30.
    """
    recency = max(0.0, 40 - (days_since_last_seen / 90) * 40)
    frequency = min(max(total_bookings, 0), 10) * 3
    depth = (
        (10 if has_email else 0)
        + (10 if has_line else 0)
        + (5 if has_phone else 0)
        + (5 if has_stamps else 0)
    )
    # Round half up, like the dashboard charts do.
    return int(math.floor(min(100.0, recency + frequency + depth) + 0.5))


def _engagement_level(score: int) -> EngagementLevel:
    if score >= 70:
        return EngagementLevel.HIGH
    if score >= 40:
        return EngagementLevel.MEDIUM
    return EngagementLevel.LOW


def compute_customer_fields(
    customer: CustomerRecord,
    extras: CustomerExtras | None = None,
    now: datetime | None = None,
) -> ComputedFields:
    """
    Compute derived fields for a customer.

    Args:
        customer: The customer record.
        extras: Auxiliary signals; missing means every flag is False.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        ComputedFields for the customer at ``now``.
    """
    extras = extras or CustomerExtras()
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)

    first_seen = customer.first_seen_at or customer.created_at
    last_seen = customer.last_seen_at or first_seen

    days_since_first_seen = _days_between(first_seen, now)
    days_since_last_seen = _days_between(last_seen, now)

    bookings = customer.total_bookings
    has_email = bool(customer.email)
    has_phone = bool(customer.phone)
    has_line = bool(customer.line_user_id)

    engagement_score = _engagement_score(
        days_since_last_seen,
        bookings,
        has_email=has_email,
        has_phone=has_phone,
        has_line=has_line,
        has_stamps=extras.has_stamps,
    )

    return ComputedFields(
        days_since_first_seen=days_since_first_seen,
        days_since_last_seen=days_since_last_seen,
        is_new=days_since_first_seen <= NEW_CUSTOMER_DAYS,
        is_active=days_since_last_seen <= ACTIVE_DAYS,
        is_at_risk=(
            bookings >= 2
            and AT_RISK_MIN_DAYS <= days_since_last_seen <= AT_RISK_MAX_DAYS
        ),
        is_churned=bookings >= 1 and days_since_last_seen > CHURNED_AFTER_DAYS,
        is_vip=bookings >= 10 or (bookings >= 5 and extras.has_referrals),
        is_subscriber="subscriber" in customer.sources,
        is_repeat=customer.total_bookings + customer.total_messages > 1,
        has_email=has_email,
        has_phone=has_phone,
        has_line=has_line,
        has_referrals=extras.has_referrals,
        has_stamps=extras.has_stamps,
        contact_richness=int(has_email) + int(has_phone) + int(has_line),
        engagement_score=engagement_score,
        engagement_level=_engagement_level(engagement_score),
    )
