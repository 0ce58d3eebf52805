"""Automation API schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from packages.core.automation.models import ActionType, TriggerType


class AutomationRuleCreateRequest(BaseModel):
    """Request schema for creating an automation rule."""

    name: str = Field(min_length=1, max_length=100)
    trigger_type: TriggerType
    action_type: ActionType
    delay_hours: float = Field(default=0, ge=0, le=24 * 365)
    subject: str | None = Field(default=None, max_length=255)
    body: str | None = None
    coupon_code: str | None = Field(default=None, max_length=50)
    coupon_title: str | None = Field(default=None, max_length=255)
    is_active: bool = True


class AutomationRuleResponse(BaseModel):
    """Response schema for an automation rule."""

    id: UUID
    tenant_id: UUID
    name: str
    trigger_type: str
    action_type: ActionType
    delay_hours: float
    subject: str | None = None
    body: str | None = None
    coupon_code: str | None = None
    coupon_title: str | None = None
    is_active: bool
    created_at: datetime | None = None
    sent_count: int = 0
    pending_count: int = 0

    model_config = {"from_attributes": True}


class AutomationRuleListResponse(BaseModel):
    """Response schema for listing automation rules."""

    rules: list[AutomationRuleResponse]


class AutomationTriggerRequest(BaseModel):
    """
    Internal trigger call from booking, contact and subscribe flows.

    All fields are optional at the schema level so that a missing field is
    answered with 400 rather than 422.
    """

    trigger_type: str | None = None
    customer_id: UUID | None = None
    profile_id: UUID | None = Field(default=None, description="Tenant (profile) id")


class AutomationTriggerResponse(BaseModel):
    """Trigger calls always succeed from the caller's point of view."""

    success: bool = True


class AutomationProcessResponse(BaseModel):
    """Response schema for one dispatch run."""

    processed: int
    sent: int
    failed: int
    skipped: int
