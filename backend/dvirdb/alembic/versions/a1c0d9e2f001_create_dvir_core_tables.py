"""
Create users, vehicles, inspections, defects, link tables and audit trail.

Revision ID: a1c0d9e2f001
Revises:
Create Date: 2026-10-17
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c0d9e2f001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ACCOUNT_ROLES = ("ADMIN", "FLEET_MANAGER", "MECHANIC", "DRIVER", "VIEW_ONLY")
INSPECTION_TYPES = ("pre_trip", "post_trip", "routine")
INSPECTION_STATUSES = ("draft", "submitted", "reviewed", "approved", "requires_repair")
CHECKLIST_CATEGORIES = ("exterior", "interior", "engine", "brakes", "tires", "lights", "safety", "other")
CHECKLIST_CONDITIONS = ("satisfactory", "needs_attention", "defective")
DEFECT_SEVERITIES = ("critical", "major", "minor")
DEFECT_STATUSES = ("open", "in_progress", "corrected", "deferred")


def _ts(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum(*ACCOUNT_ROLES, name="account_role_enum"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at", server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("unit_number", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("vin", sa.String(length=17), nullable=True, unique=True),
        sa.Column("seating_capacity", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
    )
    op.create_index("ix_vehicles_unit_number", "vehicles", ["unit_number"], unique=True)
    op.create_index("ix_vehicles_is_active", "vehicles", ["is_active"])

    op.create_table(
        "inspections",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("inspection_number", sa.String(length=32), nullable=False),
        sa.Column("vehicle_id", sa.String(length=36), sa.ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("inspector_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        _ts("inspected_at"),
        sa.Column("inspection_type", sa.Enum(*INSPECTION_TYPES, name="inspection_type"), nullable=False),
        sa.Column("status", sa.Enum(*INSPECTION_STATUSES, name="inspection_status"), nullable=False),
        sa.Column("odometer_reading", sa.Integer(), nullable=True),
        sa.Column("has_defects", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("safe_to_operate", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("carry_over_degraded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("inspector_signature", sa.Text(), nullable=True),
        sa.Column("inspector_notes", sa.Text(), nullable=True),
        sa.Column("reviewed_by_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _ts("reviewed_at", nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("odometer_reading IS NULL OR odometer_reading >= 0", name="ck_inspections_odometer"),
    )
    op.create_index("ix_inspections_inspection_number", "inspections", ["inspection_number"], unique=True)
    op.create_index("ix_inspections_vehicle_id", "inspections", ["vehicle_id"])
    op.create_index("ix_inspections_inspector_user_id", "inspections", ["inspector_user_id"])
    op.create_index("ix_inspections_inspected_at", "inspections", ["inspected_at"])
    op.create_index("ix_inspections_inspection_type", "inspections", ["inspection_type"])
    op.create_index("ix_inspections_status", "inspections", ["status"])
    op.create_index("ix_inspections_vehicle_inspected", "inspections", ["vehicle_id", "inspected_at"])

    op.create_table(
        "inspection_checklist_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("inspection_id", sa.String(length=36), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("item", sa.String(length=255), nullable=False),
        sa.Column("category", sa.Enum(*CHECKLIST_CATEGORIES, name="checklist_category"), nullable=True),
        sa.Column("condition", sa.Enum(*CHECKLIST_CONDITIONS, name="checklist_condition"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("inspection_id", "position", name="uq_checklist_item_position"),
    )
    op.create_index("ix_inspection_checklist_items_inspection_id", "inspection_checklist_items", ["inspection_id"])

    op.create_table(
        "defects",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("vehicle_id", sa.String(length=36), sa.ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("origin_inspection_id", sa.String(length=36), sa.ForeignKey("inspections.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("severity", sa.Enum(*DEFECT_SEVERITIES, name="defect_severity"), nullable=False),
        sa.Column("status", sa.Enum(*DEFECT_STATUSES, name="defect_status"), nullable=False),
        sa.Column("identified_by_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        _ts("identified_at"),
        sa.Column("corrected_by_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _ts("corrected_at", nullable=True),
        sa.Column("correction_notes", sa.Text(), nullable=True),
        sa.Column("deferral_reason", sa.Text(), nullable=True),
        sa.Column("deferral_approved_by_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("carried_over_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("carried_over_count >= 0", name="ck_defects_carry_over_non_negative"),
    )
    op.create_index("ix_defects_vehicle_id", "defects", ["vehicle_id"])
    op.create_index("ix_defects_origin_inspection_id", "defects", ["origin_inspection_id"])
    op.create_index("ix_defects_severity", "defects", ["severity"])
    op.create_index("ix_defects_status", "defects", ["status"])
    op.create_index("ix_defects_identified_at", "defects", ["identified_at"])
    op.create_index("ix_defects_vehicle_status_identified", "defects", ["vehicle_id", "status", "identified_at"])

    op.create_table(
        "inspection_new_defects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("inspection_id", sa.String(length=36), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("defect_id", sa.String(length=36), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.UniqueConstraint("inspection_id", "defect_id", name="uq_inspection_new_defect"),
    )
    op.create_index("ix_inspection_new_defects_inspection_id", "inspection_new_defects", ["inspection_id"])
    op.create_index("ix_inspection_new_defects_defect_id", "inspection_new_defects", ["defect_id"])

    op.create_table(
        "inspection_carried_over_defects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("inspection_id", sa.String(length=36), sa.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("defect_id", sa.String(length=36), nullable=False),
        sa.Column(
            "carried_over_from_inspection_id",
            sa.String(length=36),
            sa.ForeignKey("inspections.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.UniqueConstraint("inspection_id", "defect_id", name="uq_inspection_carried_defect"),
    )
    op.create_index("ix_inspection_carried_over_defects_inspection_id", "inspection_carried_over_defects", ["inspection_id"])
    op.create_index("ix_inspection_carried_over_defects_defect_id", "inspection_carried_over_defects", ["defect_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _ts("occurred_at"),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_audit_events_id", "audit_events", ["id"])
    op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"])
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
    op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"])
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])
    op.create_index("ix_audit_events_correlation_id", "audit_events", ["correlation_id"])
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("inspection_carried_over_defects")
    op.drop_table("inspection_new_defects")
    op.drop_table("defects")
    op.drop_table("inspection_checklist_items")
    op.drop_table("inspections")
    op.drop_table("vehicles")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_name in (
        "defect_status",
        "defect_severity",
        "checklist_condition",
        "checklist_category",
        "inspection_status",
        "inspection_type",
        "account_role_enum",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
