"""Automation value types shared by the trigger engine and the backend."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


class TriggerType(str, Enum):
    """Lifecycle events that can fire automation rules."""

    AFTER_BOOKING = "after_booking"
    AFTER_CONTACT = "after_contact"
    AFTER_SUBSCRIBE = "after_subscribe"
    AFTER_MESSAGE = "after_message"
    AFTER_STAMP_COMPLETE = "after_stamp_complete"
    NO_VISIT_30D = "no_visit_30d"
    NO_VISIT_60D = "no_visit_60d"
    NO_VISIT_90D = "no_visit_90d"
    BIRTHDAY = "birthday"


class ActionType(str, Enum):
    """What a rule does once its delay has elapsed."""

    SEND_EMAIL = "send_email"
    SEND_REVIEW_REQUEST = "send_review_request"
    SEND_COUPON = "send_coupon"


class AutomationStatus(str, Enum):
    """
    Lifecycle of an automation log.

    The trigger engine only creates PENDING entries; the dispatcher moves
    them to SENT, FAILED or SKIPPED.
    """

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class TriggerRule(BaseModel):
    """The slice of an automation rule the trigger engine needs."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    delay_hours: float = 0

    @field_validator("delay_hours", mode="before")
    @classmethod
    def _non_negative_delay(cls, v):
        if v is None:
            return 0
        return max(0, v)


class ScheduledAutomation(BaseModel):
    """A pending automation log to be inserted."""

    rule_id: UUID
    customer_id: UUID
    tenant_id: UUID
    status: AutomationStatus = AutomationStatus.PENDING
    scheduled_at: datetime
