"""
System Segment Catalog.

The fixed set of built-in segments created once per tenant. The catalog is
a constant; ``get_system_segments`` only stamps the tenant id and returns
freshly allocated definitions on every call.
"""

from typing import Any
from uuid import UUID

from packages.core.segmentation.models import SegmentDefinition, SegmentType

_SYSTEM_SEGMENTS: tuple[dict[str, Any], ...] = (
    {
        "name": "New customers",
        "description": "First visit within the last 30 days",
        "criteria": {
            "match": "all",
            "rules": [{"field": "is_new", "operator": "eq", "value": True}],
        },
        "color": "#3B82F6",
        "icon": "user-plus",
    },
    {
        "name": "Regulars",
        "description": "3+ bookings and active within the last 60 days",
        "criteria": {
            "match": "all",
            "rules": [
                {"field": "total_bookings", "operator": "gte", "value": 3},
                {"field": "is_active", "operator": "eq", "value": True},
            ],
        },
        "color": "#22C55E",
        "icon": "heart",
    },
    {
        "name": "VIP customers",
        "description": "10+ bookings, or 5+ bookings with referrals",
        "criteria": {
            "match": "all",
            "rules": [{"field": "is_vip", "operator": "eq", "value": True}],
        },
        "color": "#F59E0B",
        "icon": "crown",
    },
    {
        "name": "At risk",
        "description": "2+ bookings but no visit for 45-90 days",
        "criteria": {
            "match": "all",
            "rules": [{"field": "is_at_risk", "operator": "eq", "value": True}],
        },
        "color": "#F97316",
        "icon": "alert-triangle",
    },
    {
        "name": "Churned",
        "description": "1+ booking but no visit for over 90 days",
        "criteria": {
            "match": "all",
            "rules": [{"field": "is_churned", "operator": "eq", "value": True}],
        },
        "color": "#EF4444",
        "icon": "user-x",
    },
    {
        "name": "Referrers",
        "description": "Customers who referred someone else",
        "criteria": {
            "match": "all",
            "rules": [{"field": "has_referrals", "operator": "eq", "value": True}],
        },
        "color": "#8B5CF6",
        "icon": "gift",
    },
    {
        "name": "Subscribers only",
        "description": "Subscribed by email but never booked",
        "criteria": {
            "match": "all",
            "rules": [
                {"field": "is_subscriber", "operator": "eq", "value": True},
                {"field": "total_bookings", "operator": "eq", "value": 0},
            ],
        },
        "color": "#6B7280",
        "icon": "mail",
    },
    {
        "name": "LINE connected",
        "description": "Customers with a linked LINE account",
        "criteria": {
            "match": "all",
            "rules": [{"field": "has_line", "operator": "eq", "value": True}],
        },
        "color": "#06C755",
        "icon": "message-circle",
    },
)

SYSTEM_SEGMENT_COUNT = len(_SYSTEM_SEGMENTS)


def get_system_segments(tenant_id: UUID) -> list[SegmentDefinition]:
    """
    Build the system segment definitions for a tenant.

    Args:
        tenant_id: Tenant (profile) that will own the segments.

    Returns:
        The 8 system segments in display order, unpersisted (id is None).
    """
    return [
        SegmentDefinition(
            tenant_id=tenant_id,
            type=SegmentType.SYSTEM,
            customer_count=0,
            is_active=True,
            auto_actions=[],
            **definition,
        )
        for definition in _SYSTEM_SEGMENTS
    ]
