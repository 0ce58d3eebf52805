"""Segment API schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.constants import (
    DEFAULT_SEGMENT_COLOR,
    DEFAULT_SEGMENT_ICON,
    SEGMENT_NAME_MAX_LENGTH,
)


class SegmentCreateRequest(BaseModel):
    """Request schema for creating a custom segment."""

    name: str = Field(min_length=1, max_length=SEGMENT_NAME_MAX_LENGTH)
    description: str | None = None
    criteria: dict[str, Any] = Field(
        ...,
        description="Segment criteria: {'match': 'all'|'any', 'rules': [...]}",
    )
    color: str = Field(default=DEFAULT_SEGMENT_COLOR, max_length=16)
    icon: str = Field(default=DEFAULT_SEGMENT_ICON, max_length=50)
    auto_actions: list[dict[str, Any]] = Field(default_factory=list)


class SegmentUpdateRequest(BaseModel):
    """
    Request schema for updating a segment.

    System segments only accept ``is_active`` and ``auto_actions``.
    """

    name: str | None = Field(default=None, min_length=1, max_length=SEGMENT_NAME_MAX_LENGTH)
    description: str | None = None
    criteria: dict[str, Any] | None = None
    color: str | None = Field(default=None, max_length=16)
    icon: str | None = Field(default=None, max_length=50)
    auto_actions: list[dict[str, Any]] | None = None
    is_active: bool | None = None


class SegmentResponse(BaseModel):
    """Response schema for a segment."""

    id: UUID
    tenant_id: UUID
    name: str
    description: str | None = None
    type: str
    criteria: dict[str, Any]
    color: str
    icon: str
    auto_actions: list[dict[str, Any]] = Field(default_factory=list)
    customer_count: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    rule_summaries: list[str] = Field(default_factory=list)
    customer_ids: list[UUID] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class SegmentListResponse(BaseModel):
    """Response schema for listing segments."""

    segments: list[SegmentResponse]


class SegmentInitResponse(BaseModel):
    """Response schema for system segment initialization."""

    initialized: bool
    segments: list[SegmentResponse]


class RefreshSummaryResponse(BaseModel):
    """Totals for one membership refresh."""

    segments_updated: int
    total_memberships: int
    customers_evaluated: int = 0
    failed_segments: list[UUID] = Field(default_factory=list)


class SegmentRefreshResponse(BaseModel):
    """Response schema for a membership refresh."""

    summary: RefreshSummaryResponse


class SegmentMembersResponse(BaseModel):
    """Response schema for persisted segment members."""

    segment_id: UUID
    customer_ids: list[UUID]
    total: int


class SegmentFieldSchema(BaseModel):
    """One field offered by the custom segment builder."""

    value: str
    label: str
    type: str
    operators: list[str]


class SegmentFieldsResponse(BaseModel):
    """Field catalog for the custom segment builder."""

    fields: list[SegmentFieldSchema]
    operator_labels: dict[str, str]
    conditions: dict[str, str]


class CustomerSegmentBadge(BaseModel):
    """A segment a customer currently belongs to."""

    id: UUID | None = None
    name: str
    type: str
    color: str
    icon: str


class CustomerSegmentsResponse(BaseModel):
    """Single-customer segment preview."""

    customer_id: UUID
    segments: list[CustomerSegmentBadge]
    computed: dict[str, Any]
