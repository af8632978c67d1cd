"""booking core: properties, holds, bookings, night claims, payments, ops tasks, audit

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01 09:00:00

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20260301_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _bigid() -> sa.Column:
    return sa.Column(
        "id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True
    )


def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.Text(), nullable=True),
        _ts("created_at"),
    )
    op.create_table(
        "service_plans",
        sa.Column("code", sa.String(64), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("includes_cleaning", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("includes_inspection", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("includes_linen", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("includes_restock", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("includes_maintenance", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "property_service_configs",
        sa.Column("property_id", sa.String(64), sa.ForeignKey("properties.id"), primary_key=True),
        sa.Column("plan_code", sa.String(64), sa.ForeignKey("service_plans.code"), nullable=True),
        sa.Column("cleaning_required", sa.Boolean(), nullable=True),
        sa.Column("inspection_required", sa.Boolean(), nullable=True),
        sa.Column("linen_change_required", sa.Boolean(), nullable=True),
        sa.Column("restock_required", sa.Boolean(), nullable=True),
        sa.Column("maintenance_included", sa.Boolean(), nullable=True),
    )

    op.create_table(
        "holds",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("property_id", sa.String(64), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        _ts("created_at"),
        _ts("expires_at"),
        _ts("consumed_at", True),
        _ts("released_at", True),
        _ts("expired_at", True),
        sa.Column("booking_id", sa.String(36), nullable=True),
        sa.CheckConstraint("check_in < check_out", name="ck_holds_interval"),
    )
    op.create_index("ix_holds_property_status", "holds", ["property_id", "status"])
    op.create_index("ix_holds_status_expires", "holds", ["status", "expires_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("property_id", sa.String(64), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("hold_id", sa.String(36), sa.ForeignKey("holds.id"), nullable=True),
        sa.Column("status", sa.String(24), nullable=False),
        sa.Column("payment_ref", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(128), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        _ts("payment_expires_at", True),
        _ts("confirmed_at", True),
        _ts("cancelled_at", True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.UniqueConstraint("idempotency_key", name="uq_bookings_idempotency_key"),
        sa.CheckConstraint("check_in < check_out", name="ck_bookings_interval"),
    )
    op.create_index("ix_bookings_property_status", "bookings", ["property_id", "status"])
    op.create_index("ix_bookings_status_payment_expires", "bookings", ["status", "payment_expires_at"])

    # storage-level exclusivity: one owner per (property, night)
    op.create_table(
        "night_claims",
        _bigid(),
        sa.Column("property_id", sa.String(64), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("night", sa.Date(), nullable=False),
        sa.Column("owner_kind", sa.String(16), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        _ts("created_at"),
        sa.UniqueConstraint("property_id", "night", name="uq_night_claims_property_night"),
    )
    op.create_index("ix_night_claims_owner", "night_claims", ["owner_kind", "owner_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False, unique=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("provider_ref", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("refund_ref", sa.Text(), nullable=True),
        sa.Column("refunded_amount", sa.Numeric(12, 2), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_table(
        "payment_events",
        _bigid(),
        sa.Column("payment_id", sa.String(36), sa.ForeignKey("payments.id"), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("provider_ref", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_payment_events_payment", "payment_events", ["payment_id"])

    op.create_table(
        "ops_tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("booking_id", sa.String(36), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("property_id", sa.String(64), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("assigned_to", sa.Text(), nullable=True),
        _ts("due_at"),
        _ts("created_at"),
        _ts("updated_at"),
        _ts("completed_at", True),
        _ts("cancelled_at", True),
        sa.UniqueConstraint("booking_id", "type", name="uq_ops_tasks_booking_type"),
    )
    op.create_index("ix_ops_tasks_status", "ops_tasks", ["status"])
    op.create_table(
        "ops_task_events",
        _bigid(),
        sa.Column("task_id", sa.String(36), sa.ForeignKey("ops_tasks.id"), nullable=False),
        sa.Column("from_status", sa.String(16), nullable=True),
        sa.Column("to_status", sa.String(16), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        _ts("at"),
    )
    op.create_index("ix_ops_task_events_task", "ops_task_events", ["task_id"])

    op.create_table(
        "audit_events",
        _bigid(),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("ref", sa.Text(), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=False),
        sa.Column("trace_id", sa.String(64), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_audit_events_ref", "audit_events", ["ref"])
    op.create_index("ix_audit_events_trace_id", "audit_events", ["trace_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_events_trace_id", table_name="audit_events")
    op.drop_index("ix_audit_events_ref", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("ix_ops_task_events_task", table_name="ops_task_events")
    op.drop_table("ops_task_events")
    op.drop_index("ix_ops_tasks_status", table_name="ops_tasks")
    op.drop_table("ops_tasks")
    op.drop_index("ix_payment_events_payment", table_name="payment_events")
    op.drop_table("payment_events")
    op.drop_table("payments")
    op.drop_index("ix_night_claims_owner", table_name="night_claims")
    op.drop_table("night_claims")
    op.drop_index("ix_bookings_status_payment_expires", table_name="bookings")
    op.drop_index("ix_bookings_property_status", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_holds_status_expires", table_name="holds")
    op.drop_index("ix_holds_property_status", table_name="holds")
    op.drop_table("holds")
    op.drop_table("property_service_configs")
    op.drop_table("service_plans")
    op.drop_table("properties")
