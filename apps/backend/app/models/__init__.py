"""SQLAlchemy models."""

from app.models.tenant import Tenant
from app.models.user import User
from app.models.customer import Customer, CustomerStamp, ReferralCode, normalize_email
from app.models.segment import CustomerSegment, CustomerSegmentMember
from app.models.automation import AutomationLog, AutomationRule

__all__ = [
    "Tenant",
    "User",
    "Customer",
    "CustomerStamp",
    "ReferralCode",
    "normalize_email",
    "CustomerSegment",
    "CustomerSegmentMember",
    "AutomationLog",
    "AutomationRule",
]
