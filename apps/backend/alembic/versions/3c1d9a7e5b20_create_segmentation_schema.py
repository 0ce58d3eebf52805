"""create_segmentation_schema

Revision ID: 3c1d9a7e5b20
Revises:
Create Date: 2026-03-02 10:20:00.000000

Adds:
- tenants, users (dashboard accounts, one tenant each)
- customers, referral_codes, customer_stamps (segmentation inputs)
- customer_segments, customer_segment_members
- automation_rules, automation_logs (with one-pending-log-per-rule-customer index)
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1d9a7e5b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names: str) -> list[sa.Column]:
    return [
        sa.Column(
            name,
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        )
        for name in names
    ]


def upgrade() -> None:
    """Upgrade schema: create segmentation and automation tables."""

    segment_type = postgresql.ENUM("system", "custom", name="segment_type")
    action_type = postgresql.ENUM(
        "send_email",
        "send_review_request",
        "send_coupon",
        name="automation_action_type",
    )
    automation_status = postgresql.ENUM(
        "pending", "sent", "failed", "skipped", name="automation_status"
    )

    # ── tenants ───────────────────────────────────────────────────────
    op.create_table(
        "tenants",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("review_url", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps("created_at", "updated_at"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tenants")),
    )
    op.create_index(op.f("ix_tenants_slug"), "tenants", ["slug"], unique=True)

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name=op.f("fk_users_tenant_id_tenants"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_tenant_id"), "users", ["tenant_id"])

    # ── customers ─────────────────────────────────────────────────────
    op.create_table(
        "customers",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("line_user_id", sa.String(length=100), nullable=True),
        sa.Column("total_bookings", sa.Integer(), nullable=False),
        sa.Column("total_messages", sa.Integer(), nullable=False),
        sa.Column(
            "tags",
            postgresql.ARRAY(sa.String(length=50)),
            server_default="{}",
            nullable=False,
        ),
        sa.Column(
            "source",
            sa.String(length=100),
            server_default="",
            nullable=False,
            comment="Comma-joined origins: booking, contact, subscriber",
        ),
        *_timestamps("first_seen_at", "last_seen_at", "created_at"),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name=op.f("fk_customers_tenant_id_tenants"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_customers")),
        sa.UniqueConstraint("tenant_id", "email", name="uq_customers_tenant_email"),
    )
    op.create_index(op.f("ix_customers_tenant_id"), "customers", ["tenant_id"])

    # ── referral_codes ────────────────────────────────────────────────
    op.create_table(
        "referral_codes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("customer_id", sa.UUID(), nullable=True),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("referral_count", sa.Integer(), nullable=False),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name=op.f("fk_referral_codes_tenant_id_tenants"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["customer_id"],
            ["customers.id"],
            name=op.f("fk_referral_codes_customer_id_customers"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_referral_codes")),
        sa.UniqueConstraint("code", name=op.f("uq_referral_codes_code")),
    )
    op.create_index(op.f("ix_referral_codes_tenant_id"), "referral_codes", ["tenant_id"])
    op.create_index(op.f("ix_referral_codes_customer_id"), "referral_codes", ["customer_id"])

    # ── customer_stamps ───────────────────────────────────────────────
    op.create_table(
        "customer_stamps",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("customer_id", sa.UUID(), nullable=False),
        sa.Column("current_stamps", sa.Integer(), nullable=False),
        *_timestamps("updated_at"),
        sa.ForeignKeyConstraint(
            ["customer_id"],
            ["customers.id"],
            name=op.f("fk_customer_stamps_customer_id_customers"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_customer_stamps")),
    )
    op.create_index(op.f("ix_customer_stamps_customer_id"), "customer_stamps", ["customer_id"])

    # ── customer_segments ─────────────────────────────────────────────
    op.create_table(
        "customer_segments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", segment_type, nullable=False),
        sa.Column(
            "criteria",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Serialized SegmentCriteria",
        ),
        sa.Column("color", sa.String(length=16), nullable=False),
        sa.Column("icon", sa.String(length=50), nullable=False),
        sa.Column("auto_actions", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("customer_count", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps("created_at", "updated_at"),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name=op.f("fk_customer_segments_tenant_id_tenants"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_customer_segments")),
    )
    op.create_index(op.f("ix_customer_segments_tenant_id"), "customer_segments", ["tenant_id"])
    op.create_index(op.f("ix_customer_segments_type"), "customer_segments", ["type"])
    op.create_index(
        "uq_customer_segments_system_name",
        "customer_segments",
        ["tenant_id", "name"],
        unique=True,
        postgresql_where=sa.text("type = 'system'"),
    )

    # ── customer_segment_members ──────────────────────────────────────
    op.create_table(
        "customer_segment_members",
        sa.Column("segment_id", sa.UUID(), nullable=False),
        sa.Column("customer_id", sa.UUID(), nullable=False),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(
            ["segment_id"],
            ["customer_segments.id"],
            name=op.f("fk_customer_segment_members_segment_id_customer_segments"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["customer_id"],
            ["customers.id"],
            name=op.f("fk_customer_segment_members_customer_id_customers"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "segment_id", "customer_id", name=op.f("pk_customer_segment_members")
        ),
    )
    op.create_index(
        op.f("ix_customer_segment_members_customer_id"),
        "customer_segment_members",
        ["customer_id"],
    )

    # ── automation_rules ──────────────────────────────────────────────
    op.create_table(
        "automation_rules",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("trigger_type", sa.String(length=50), nullable=False),
        sa.Column("action_type", action_type, nullable=False),
        sa.Column("delay_hours", sa.Float(), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("coupon_code", sa.String(length=50), nullable=True),
        sa.Column("coupon_title", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name=op.f("fk_automation_rules_tenant_id_tenants"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_automation_rules")),
    )
    op.create_index(
        "ix_automation_rules_tenant_trigger",
        "automation_rules",
        ["tenant_id", "trigger_type"],
    )

    # ── automation_logs ───────────────────────────────────────────────
    op.create_table(
        "automation_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("rule_id", sa.UUID(), nullable=False),
        sa.Column("customer_id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("status", automation_status, nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps("created_at"),
        sa.ForeignKeyConstraint(
            ["rule_id"],
            ["automation_rules.id"],
            name=op.f("fk_automation_logs_rule_id_automation_rules"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["customer_id"],
            ["customers.id"],
            name=op.f("fk_automation_logs_customer_id_customers"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name=op.f("fk_automation_logs_tenant_id_tenants"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_automation_logs")),
    )
    op.create_index(op.f("ix_automation_logs_tenant_id"), "automation_logs", ["tenant_id"])
    op.create_index(
        "ix_automation_logs_status_scheduled",
        "automation_logs",
        ["status", "scheduled_at"],
    )
    op.create_index(
        "uq_automation_logs_pending_rule_customer",
        "automation_logs",
        ["rule_id", "customer_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    """Downgrade schema: drop all segmentation and automation tables."""
    op.drop_table("automation_logs")
    op.drop_table("automation_rules")
    op.drop_table("customer_segment_members")
    op.drop_table("customer_segments")
    op.drop_table("customer_stamps")
    op.drop_table("referral_codes")
    op.drop_table("customers")
    op.drop_table("users")
    op.drop_table("tenants")

    op.execute("DROP TYPE IF EXISTS automation_status")
    op.execute("DROP TYPE IF EXISTS automation_action_type")
    op.execute("DROP TYPE IF EXISTS segment_type")
