"""Pydantic schemas."""

from app.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserResponse,
)
from app.schemas.automations import (
    AutomationProcessResponse,
    AutomationRuleCreateRequest,
    AutomationRuleListResponse,
    AutomationRuleResponse,
    AutomationTriggerRequest,
    AutomationTriggerResponse,
)
from app.schemas.segments import (
    CustomerSegmentBadge,
    CustomerSegmentsResponse,
    RefreshSummaryResponse,
    SegmentCreateRequest,
    SegmentFieldSchema,
    SegmentFieldsResponse,
    SegmentInitResponse,
    SegmentListResponse,
    SegmentMembersResponse,
    SegmentRefreshResponse,
    SegmentResponse,
    SegmentUpdateRequest,
)

__all__ = [
    # Auth
    "LoginRequest",
    "LoginResponse",
    "RegisterRequest",
    "UserResponse",
    # Automations
    "AutomationProcessResponse",
    "AutomationRuleCreateRequest",
    "AutomationRuleListResponse",
    "AutomationRuleResponse",
    "AutomationTriggerRequest",
    "AutomationTriggerResponse",
    # Segments
    "CustomerSegmentBadge",
    "CustomerSegmentsResponse",
    "RefreshSummaryResponse",
    "SegmentCreateRequest",
    "SegmentFieldSchema",
    "SegmentFieldsResponse",
    "SegmentInitResponse",
    "SegmentListResponse",
    "SegmentMembersResponse",
    "SegmentRefreshResponse",
    "SegmentResponse",
    "SegmentUpdateRequest",
]
