"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("role", sa.String(length=16), nullable=False, server_default=sa.text("'USER'")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_team_lead", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_owner", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_active", "users", ["active"])

    op.create_table(
        "materials",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("sub_type", sa.Text(), nullable=True),
        sa.Column("material_kind", sa.Text(), nullable=True),
        sa.Column("shape_type", sa.Text(), nullable=True),
        sa.Column("dim_a_mm", sa.Integer(), nullable=True),
        sa.Column("dim_b_mm", sa.Integer(), nullable=True),
        sa.Column("thickness_mm", sa.Integer(), nullable=True),
        sa.Column("sheet_width_mm", sa.Integer(), nullable=True),
        sa.Column("sheet_height_mm", sa.Integer(), nullable=True),
        sa.Column("package_size", sa.Numeric(10, 3), nullable=True),
        sa.Column("package_unit", sa.Text(), nullable=True),
        sa.Column("spec_text", sa.Text(), nullable=True),
        sa.Column("unit", sa.Text(), nullable=False),
        sa.Column("unit_type", sa.Text(), nullable=False),
        sa.Column("unit_variant", sa.Text(), nullable=True),
        sa.Column("fingerprint", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("alert_threshold", sa.Integer(), nullable=False, server_default=sa.text("5")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity >= 0", name="ck_materials_quantity_non_negative"),
    )
    op.create_index(
        "ux_materials_fingerprint_active",
        "materials",
        ["fingerprint"],
        unique=True,
        postgresql_where=sa.text("active"),
        sqlite_where=sa.text("active"),
    )
    op.create_index("ix_materials_category_name", "materials", ["category", "name"])

    op.create_table(
        "movements",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("material_id", sa.Uuid(), sa.ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
    )
    op.create_index("ix_movements_material_id", "movements", ["material_id"])
    op.create_index("ix_movements_created_at", "movements", ["created_at"])

    op.create_table(
        "work_equipments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("delivery_date", sa.Date(), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_work_equipments_archived_delivery", "work_equipments", ["archived_at", "delivery_date"])

    op.create_table(
        "work_tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "equipment_id", sa.Uuid(), sa.ForeignKey("work_equipments.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'TODO'")),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("estimated_days", sa.Numeric(6, 2), nullable=True),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default=sa.text("'MEDIUM'")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("updated_by_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_work_tasks_equipment_id", "work_tasks", ["equipment_id"])
    op.create_index("ix_work_tasks_archived_at", "work_tasks", ["archived_at"])

    op.create_table(
        "work_task_assignees",
        sa.Column("task_id", sa.Uuid(), sa.ForeignKey("work_tasks.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_work_task_assignees_user_id", "work_task_assignees", ["user_id"])

    op.create_table(
        "work_task_history",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("task_id", sa.Uuid(), sa.ForeignKey("work_tasks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("action_type", sa.String(length=20), nullable=False),
        sa.Column("field", sa.Text(), nullable=True),
        sa.Column("from_value", sa.Text(), nullable=True),
        sa.Column("to_value", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_work_task_history_task_created", "work_task_history", ["task_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_work_task_history_task_created", table_name="work_task_history")
    op.drop_table("work_task_history")
    op.drop_index("ix_work_task_assignees_user_id", table_name="work_task_assignees")
    op.drop_table("work_task_assignees")
    op.drop_index("ix_work_tasks_archived_at", table_name="work_tasks")
    op.drop_index("ix_work_tasks_equipment_id", table_name="work_tasks")
    op.drop_table("work_tasks")
    op.drop_index("ix_work_equipments_archived_delivery", table_name="work_equipments")
    op.drop_table("work_equipments")
    op.drop_index("ix_movements_created_at", table_name="movements")
    op.drop_index("ix_movements_material_id", table_name="movements")
    op.drop_table("movements")
    op.drop_index("ix_materials_category_name", table_name="materials")
    op.drop_index("ux_materials_fingerprint_active", table_name="materials")
    op.drop_table("materials")
    op.drop_index("ix_users_active", table_name="users")
    op.drop_table("users")
