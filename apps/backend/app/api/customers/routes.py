"""Customer API routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from app.core.dependencies import AsyncSessionDep, CurrentUser, SegmentRefresherDep
from app.schemas.segments import CustomerSegmentBadge, CustomerSegmentsResponse
from app.services import segment_service

router = APIRouter()


@router.get("/{customer_id}/segments", response_model=CustomerSegmentsResponse)
async def get_customer_segments(
    customer_id: UUID,
    current_user: CurrentUser,
    session: AsyncSessionDep,
    refresher: SegmentRefresherDep,
) -> CustomerSegmentsResponse:
    """
    Segments the customer matches right now, with their computed fields.

    Falls back to the system catalog when the tenant has not initialized
    any segments yet.

    Raises:
        HTTPException 404: If the customer does not belong to the tenant.
    """
    preview = await segment_service.preview_customer_segments(
        session, refresher, current_user.tenant_id, customer_id
    )
    if preview is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        )

    segments, computed = preview
    return CustomerSegmentsResponse(
        customer_id=customer_id,
        segments=[
            CustomerSegmentBadge(
                id=s.id,
                name=s.name,
                type=s.type.value,
                color=s.color,
                icon=s.icon,
            )
            for s in segments
        ],
        computed=computed.to_dict(),
    )
