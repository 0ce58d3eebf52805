"""Automation rule and log models."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from packages.core.automation.models import ActionType, AutomationStatus


class AutomationRule(Base):
    """Tenant-configured mapping from a lifecycle trigger to a delayed action."""

    __tablename__ = "automation_rules"
    __table_args__ = (
        Index("ix_automation_rules_tenant_trigger", "tenant_id", "trigger_type"),
    )

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    tenant_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Kept as text so a retired trigger type never breaks row loading
    trigger_type: Mapped[str] = mapped_column(String(50), nullable=False)
    action_type: Mapped[ActionType] = mapped_column(
        SQLEnum(
            ActionType,
            name="automation_action_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    delay_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    # ── Action payload ───────────────────────
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    coupon_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    coupon_title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    logs: Mapped[list["AutomationLog"]] = relationship(
        "AutomationLog",
        back_populates="rule",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<AutomationRule {self.name} {self.trigger_type}>"


class AutomationLog(Base):
    """
    One scheduled or executed instance of a rule for one customer.

    At most one pending log may exist per (rule, customer); the partial
    unique index enforces this even under concurrent triggers.
    """

    __tablename__ = "automation_logs"
    __table_args__ = (
        Index(
            "uq_automation_logs_pending_rule_customer",
            "rule_id",
            "customer_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_automation_logs_status_scheduled", "status", "scheduled_at"),
    )

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    rule_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("automation_rules.id", ondelete="CASCADE"),
        nullable=False,
    )
    customer_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[AutomationStatus] = mapped_column(
        SQLEnum(
            AutomationStatus,
            name="automation_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=AutomationStatus.PENDING,
    )
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    rule: Mapped["AutomationRule"] = relationship("AutomationRule", back_populates="logs")

    def __repr__(self) -> str:
        return f"<AutomationLog {self.id} {self.status.value}>"
