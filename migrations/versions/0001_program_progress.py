"""program catalog and progress

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    activity_state_enum = sa.Enum(
        "pending", "in_progress", "completed", name="activity_state_enum"
    )
    activity_state_enum.create(op.get_bind(), checkfirst=True)

    module_state_enum = sa.Enum(
        "blocked", "not_started", "in_progress", "completed", name="module_state_enum"
    )
    module_state_enum.create(op.get_bind(), checkfirst=True)

    # --- patients ---
    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(256), nullable=False),
        sa.Column("enrollment_number", sa.String(64), nullable=True),
        sa.Column("initial_test_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("final_test_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("enrollment_number"),
    )
    op.create_index("ix_patients_id", "patients", ["id"])

    # --- modules ---
    op.create_table(
        "modules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("position"),
    )
    op.create_index("ix_modules_id", "modules", ["id"])

    # --- activities ---
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activities_id", "activities", ["id"])
    op.create_index("ix_activities_module_id", "activities", ["module_id"])

    # --- activity_progress ---
    op.create_table(
        "activity_progress",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("activity_id", sa.Integer(), sa.ForeignKey("activities.id"), nullable=False),
        sa.Column("state", sa.Enum(
            "pending", "in_progress", "completed",
            name="activity_state_enum", create_type=False,
        ), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("patient_id", "activity_id", name="uq_activity_progress_patient_activity"),
    )
    op.create_index("ix_activity_progress_id", "activity_progress", ["id"])
    op.create_index("ix_activity_progress_patient_id", "activity_progress", ["patient_id"])
    op.create_index("ix_activity_progress_activity_id", "activity_progress", ["activity_id"])

    # --- module_progress ---
    op.create_table(
        "module_progress",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("state", sa.Enum(
            "blocked", "not_started", "in_progress", "completed",
            name="module_state_enum", create_type=False,
        ), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("patient_id", "module_id", name="uq_module_progress_patient_module"),
    )
    op.create_index("ix_module_progress_id", "module_progress", ["id"])
    op.create_index("ix_module_progress_patient_id", "module_progress", ["patient_id"])
    op.create_index("ix_module_progress_module_id", "module_progress", ["module_id"])


def downgrade() -> None:
    op.drop_table("module_progress")
    op.drop_table("activity_progress")
    op.drop_table("activities")
    op.drop_table("modules")
    op.drop_table("patients")

    op.execute("DROP TYPE IF EXISTS module_state_enum")
    op.execute("DROP TYPE IF EXISTS activity_state_enum")
