"""Customer segment and membership models."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from packages.core.segmentation.models import SegmentType


class CustomerSegment(Base):
    """
    A named, criteria-defined subset of a tenant's customers.

    ``customer_count`` is a cached count written only by the refresh
    orchestrator (and by create/update, which compute an initial value).
    A tenant has at most one system segment per name.
    """

    __tablename__ = "customer_segments"
    __table_args__ = (
        Index(
            "uq_customer_segments_system_name",
            "tenant_id",
            "name",
            unique=True,
            postgresql_where=text("type = 'system'"),
        ),
    )

    # ── Primary key ──────────────────────────
    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    tenant_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ── Definition ───────────────────────────
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[SegmentType] = mapped_column(
        SQLEnum(
            SegmentType,
            name="segment_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=SegmentType.CUSTOM,
        index=True,
    )
    criteria: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        comment="Serialized SegmentCriteria",
    )
    color: Mapped[str] = mapped_column(String(16), nullable=False, default="#6B7280")
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="users")
    auto_actions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    # ── State ────────────────────────────────
    customer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # ── Timestamps ───────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<CustomerSegment {self.name} ({self.type.value})>"


class CustomerSegmentMember(Base):
    """Membership of one customer in one segment. Rebuilt on every refresh."""

    __tablename__ = "customer_segment_members"

    segment_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customer_segments.id", ondelete="CASCADE"),
        primary_key=True,
    )
    customer_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
