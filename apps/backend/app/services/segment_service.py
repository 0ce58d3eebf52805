"""Segment management: system segment setup, custom segment CRUD and previews."""

import logging
from uuid import UUID

from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer
from app.models.segment import CustomerSegment, CustomerSegmentMember
from app.schemas.segments import SegmentCreateRequest, SegmentUpdateRequest
from packages.core.segmentation import (
    ComputedFields,
    CriteriaValidator,
    CustomerRecord,
    SegmentCount,
    SegmentDefinition,
    SegmentRefresher,
    SegmentType,
    compute_customer_fields,
    get_system_segments,
    matching_segments,
    parse_criteria,
)

logger = logging.getLogger(__name__)

# Fields a system segment may change; its definition is fixed.
SYSTEM_EDITABLE_FIELDS = frozenset({"is_active", "auto_actions"})


class SegmentOperationError(Exception):
    """Raised when a segment operation is not allowed."""

    pass


def to_definition(segment: CustomerSegment) -> SegmentDefinition:
    """Convert an ORM row to the core segment definition."""
    return SegmentDefinition.model_validate(segment)


async def list_segments(session: AsyncSession, tenant_id: UUID) -> list[CustomerSegment]:
    """List a tenant's segments, system segments first, then by creation time."""
    result = await session.execute(
        select(CustomerSegment)
        .where(CustomerSegment.tenant_id == tenant_id)
        .order_by(
            case((CustomerSegment.type == SegmentType.SYSTEM, 0), else_=1),
            CustomerSegment.created_at,
        )
    )
    return list(result.scalars().all())


async def get_segment(
    session: AsyncSession,
    tenant_id: UUID,
    segment_id: UUID,
) -> CustomerSegment | None:
    """Fetch one segment scoped to the tenant."""
    result = await session.execute(
        select(CustomerSegment).where(
            CustomerSegment.id == segment_id,
            CustomerSegment.tenant_id == tenant_id,
        )
    )
    return result.scalar_one_or_none()


async def initialize_system_segments(
    session: AsyncSession,
    tenant_id: UUID,
) -> tuple[bool, list[CustomerSegment]]:
    """
    Persist the system segment catalog for a tenant, once.

    Returns:
        (initialized, segments). ``initialized`` is False when the tenant
        already had system segments; nothing is written in that case.
    """
    existing = await session.execute(
        select(CustomerSegment.id)
        .where(
            CustomerSegment.tenant_id == tenant_id,
            CustomerSegment.type == SegmentType.SYSTEM,
        )
        .limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        return False, await list_segments(session, tenant_id)

    rows = [
        CustomerSegment(
            tenant_id=tenant_id,
            name=definition.name,
            description=definition.description,
            type=SegmentType.SYSTEM,
            criteria=definition.criteria.to_dict(),
            color=definition.color,
            icon=definition.icon,
            auto_actions=[],
            customer_count=0,
            is_active=True,
        )
        for definition in get_system_segments(tenant_id)
    ]
    try:
        async with session.begin_nested():
            session.add_all(rows)
            await session.flush()
    except IntegrityError:
        # A concurrent request initialized the tenant first
        logger.info(f"System segments for tenant {tenant_id} were initialized concurrently")
        return False, await list_segments(session, tenant_id)

    logger.info(f"Initialized system segments for tenant {tenant_id}")
    return True, await list_segments(session, tenant_id)


async def compute_live_counts(
    refresher: SegmentRefresher,
    tenant_id: UUID,
    segments: list[CustomerSegment],
) -> dict[UUID, SegmentCount]:
    """Evaluate segments against current customers without persisting memberships."""
    counts = await refresher.compute_counts(
        tenant_id, [to_definition(s) for s in segments]
    )
    return {c.segment_id: c for c in counts if c.segment_id is not None}


async def create_custom_segment(
    session: AsyncSession,
    refresher: SegmentRefresher,
    tenant_id: UUID,
    payload: SegmentCreateRequest,
) -> tuple[CustomerSegment, SegmentCount]:
    """
    Validate and create a custom segment with its initial count.

    Raises:
        CriteriaValidationError: If the criteria are not valid.
    """
    criteria = parse_criteria(payload.criteria)
    CriteriaValidator().validate(criteria)

    segment = CustomerSegment(
        tenant_id=tenant_id,
        name=payload.name.strip(),
        description=payload.description,
        type=SegmentType.CUSTOM,
        criteria=criteria.to_dict(),
        color=payload.color,
        icon=payload.icon,
        auto_actions=payload.auto_actions,
        is_active=True,
    )
    session.add(segment)
    await session.flush()

    [count] = await refresher.compute_counts(tenant_id, [to_definition(segment)])
    segment.customer_count = count.customer_count
    await session.flush()
    await session.refresh(segment)

    logger.info(
        f"Created segment {segment.id} for tenant {tenant_id} "
        f"with {count.customer_count} customers"
    )
    return segment, count


async def update_segment(
    session: AsyncSession,
    refresher: SegmentRefresher,
    segment: CustomerSegment,
    payload: SegmentUpdateRequest,
) -> CustomerSegment:
    """
    Apply a partial update.

    Raises:
        SegmentOperationError: If a system segment's definition is edited.
        CriteriaValidationError: If new criteria are not valid.
    """
    changes = payload.model_dump(exclude_unset=True)

    if segment.type == SegmentType.SYSTEM:
        forbidden = set(changes) - SYSTEM_EDITABLE_FIELDS
        if forbidden:
            raise SegmentOperationError(
                f"System segments only allow changing: "
                f"{', '.join(sorted(SYSTEM_EDITABLE_FIELDS))}"
            )

    criteria_changed = False
    if changes.get("criteria") is not None:
        criteria = parse_criteria(changes.pop("criteria"))
        CriteriaValidator().validate(criteria)
        segment.criteria = criteria.to_dict()
        criteria_changed = True
    else:
        changes.pop("criteria", None)

    if changes.get("name") is not None:
        changes["name"] = changes["name"].strip()

    for key, value in changes.items():
        if value is None and key != "description":
            continue
        setattr(segment, key, value)

    if criteria_changed:
        [count] = await refresher.compute_counts(segment.tenant_id, [to_definition(segment)])
        segment.customer_count = count.customer_count

    await session.flush()
    await session.refresh(segment)
    return segment


async def delete_segment(session: AsyncSession, segment: CustomerSegment) -> None:
    """
    Delete a custom segment and its memberships.

    Raises:
        SegmentOperationError: For system segments.
    """
    if segment.type == SegmentType.SYSTEM:
        raise SegmentOperationError("System segments cannot be deleted")

    await session.delete(segment)
    await session.flush()
    logger.info(f"Deleted segment {segment.id}")


async def list_segment_member_ids(session: AsyncSession, segment_id: UUID) -> list[UUID]:
    """Persisted members as of the last refresh."""
    result = await session.execute(
        select(CustomerSegmentMember.customer_id)
        .where(CustomerSegmentMember.segment_id == segment_id)
        .order_by(CustomerSegmentMember.customer_id)
    )
    return list(result.scalars().all())


async def preview_customer_segments(
    session: AsyncSession,
    refresher: SegmentRefresher,
    tenant_id: UUID,
    customer_id: UUID,
) -> tuple[list[SegmentDefinition], ComputedFields] | None:
    """
    Segments one customer matches right now.

    Uses the tenant's persisted segments, or the system catalog when the
    tenant has none yet. Returns None if the customer does not exist.
    """
    result = await session.execute(
        select(Customer).where(
            Customer.id == customer_id,
            Customer.tenant_id == tenant_id,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        return None

    customer = CustomerRecord.model_validate(row)

    persisted = await list_segments(session, tenant_id)
    if persisted:
        definitions = [to_definition(s) for s in persisted]
    else:
        definitions = get_system_segments(tenant_id)

    extras = (await refresher.load_extras(tenant_id, [customer.id])).get(customer.id)
    matched = matching_segments(customer, definitions, extras)
    return matched, compute_customer_fields(customer, extras)
