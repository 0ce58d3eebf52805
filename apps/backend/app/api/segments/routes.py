"""Segment API routes."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import AsyncSessionDep, CurrentUser, SegmentRefresherDep
from app.models.segment import CustomerSegment
from app.schemas.segments import (
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
from app.services import segment_service
from app.services.segment_service import SegmentOperationError
from packages.core.segmentation import (
    CriteriaValidationError,
    SegmentCount,
    SegmentRefreshError,
    builder_fields,
    format_rule_display,
    parse_criteria,
)
from packages.core.segmentation.registry import (
    ALLOWED_OPERATORS,
    CONDITION_LABELS,
    OPERATOR_LABELS,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def build_segment_response(
    segment: CustomerSegment,
    count: SegmentCount | None = None,
) -> SegmentResponse:
    """Serialize a segment, optionally with a live count and member ids."""
    criteria = parse_criteria(segment.criteria)
    return SegmentResponse(
        id=segment.id,
        tenant_id=segment.tenant_id,
        name=segment.name,
        description=segment.description,
        type=segment.type.value,
        criteria=criteria.to_dict(),
        color=segment.color,
        icon=segment.icon,
        auto_actions=segment.auto_actions or [],
        customer_count=count.customer_count if count else segment.customer_count,
        is_active=segment.is_active,
        created_at=segment.created_at,
        updated_at=segment.updated_at,
        rule_summaries=[format_rule_display(rule) for rule in criteria.rules],
        customer_ids=count.customer_ids if count else [],
    )


async def _get_segment_or_404(
    session: AsyncSession,
    tenant_id: UUID,
    segment_id: UUID,
) -> CustomerSegment:
    segment = await segment_service.get_segment(session, tenant_id, segment_id)
    if segment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Segment not found",
        )
    return segment


@router.post("/init", response_model=SegmentInitResponse)
async def initialize_segments(
    current_user: CurrentUser,
    session: AsyncSessionDep,
) -> SegmentInitResponse:
    """
    Create the system segments for the current tenant.

    Idempotent: when system segments already exist nothing is written and
    ``initialized`` is False.
    """
    initialized, segments = await segment_service.initialize_system_segments(
        session, current_user.tenant_id
    )
    return SegmentInitResponse(
        initialized=initialized,
        segments=[build_segment_response(s) for s in segments],
    )


@router.post("/refresh", response_model=SegmentRefreshResponse)
async def refresh_segments(
    current_user: CurrentUser,
    refresher: SegmentRefresherDep,
) -> SegmentRefreshResponse:
    """
    Recompute memberships and counts for every active segment.

    Raises:
        HTTPException 500: If segments or customers cannot be loaded.
    """
    try:
        summary = await refresher.refresh(current_user.tenant_id)
    except SegmentRefreshError as e:
        logger.error(f"Segment refresh failed for tenant {current_user.tenant_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to refresh segments",
        )

    return SegmentRefreshResponse(summary=summary.to_dict())


@router.get("/fields", response_model=SegmentFieldsResponse)
async def list_segment_fields(current_user: CurrentUser) -> SegmentFieldsResponse:
    """Field catalog for the custom segment builder."""
    fields = [
        SegmentFieldSchema(
            **field.to_dict(),
            operators=sorted(op.value for op in ALLOWED_OPERATORS[field.field_type]),
        )
        for field in builder_fields()
    ]
    return SegmentFieldsResponse(
        fields=fields,
        operator_labels=OPERATOR_LABELS,
        conditions=CONDITION_LABELS,
    )


@router.get("", response_model=SegmentListResponse)
async def list_segments(
    current_user: CurrentUser,
    session: AsyncSessionDep,
    refresher: SegmentRefresherDep,
) -> SegmentListResponse:
    """List segments, system first, with live counts and member ids."""
    segments = await segment_service.list_segments(session, current_user.tenant_id)
    if not segments:
        return SegmentListResponse(segments=[])

    try:
        counts = await segment_service.compute_live_counts(
            refresher, current_user.tenant_id, segments
        )
    except SegmentRefreshError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute segment counts",
        )

    return SegmentListResponse(
        segments=[build_segment_response(s, counts.get(s.id)) for s in segments]
    )


@router.post("", response_model=SegmentResponse, status_code=status.HTTP_201_CREATED)
async def create_segment(
    payload: SegmentCreateRequest,
    current_user: CurrentUser,
    session: AsyncSessionDep,
    refresher: SegmentRefresherDep,
) -> SegmentResponse:
    """
    Create a custom segment.

    Raises:
        HTTPException 400: If the criteria are invalid.
    """
    try:
        segment, count = await segment_service.create_custom_segment(
            session, refresher, current_user.tenant_id, payload
        )
    except CriteriaValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SegmentRefreshError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute segment count",
        )

    return build_segment_response(segment, count)


@router.get("/{segment_id}", response_model=SegmentResponse)
async def get_segment(
    segment_id: UUID,
    current_user: CurrentUser,
    session: AsyncSessionDep,
) -> SegmentResponse:
    """Get one segment with its stored count."""
    segment = await _get_segment_or_404(session, current_user.tenant_id, segment_id)
    return build_segment_response(segment)


@router.patch("/{segment_id}", response_model=SegmentResponse)
async def update_segment(
    segment_id: UUID,
    payload: SegmentUpdateRequest,
    current_user: CurrentUser,
    session: AsyncSessionDep,
    refresher: SegmentRefresherDep,
) -> SegmentResponse:
    """
    Update a segment.

    Raises:
        HTTPException 400: If a system segment's definition is edited or
            the criteria are invalid.
        HTTPException 404: If the segment does not exist.
    """
    segment = await _get_segment_or_404(session, current_user.tenant_id, segment_id)

    try:
        segment = await segment_service.update_segment(session, refresher, segment, payload)
    except (SegmentOperationError, CriteriaValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SegmentRefreshError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute segment count",
        )

    return build_segment_response(segment)


@router.delete("/{segment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_segment(
    segment_id: UUID,
    current_user: CurrentUser,
    session: AsyncSessionDep,
) -> None:
    """
    Delete a custom segment.

    Raises:
        HTTPException 400: For system segments.
        HTTPException 404: If the segment does not exist.
    """
    segment = await _get_segment_or_404(session, current_user.tenant_id, segment_id)

    try:
        await segment_service.delete_segment(session, segment)
    except SegmentOperationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{segment_id}/members", response_model=SegmentMembersResponse)
async def list_segment_members(
    segment_id: UUID,
    current_user: CurrentUser,
    session: AsyncSessionDep,
) -> SegmentMembersResponse:
    """Customer ids persisted by the last refresh."""
    segment = await _get_segment_or_404(session, current_user.tenant_id, segment_id)
    customer_ids = await segment_service.list_segment_member_ids(session, segment.id)
    return SegmentMembersResponse(
        segment_id=segment.id,
        customer_ids=customer_ids,
        total=len(customer_ids),
    )
