"""create reference tables

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


supervisor_role_enum = postgresql.ENUM("school", "industry", name="supervisor_role", create_type=False)


def upgrade() -> None:
    supervisor_role_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "departments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("faculty_name", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_departments_code", "departments", ["code"], unique=True)

    op.create_table(
        "placement_organizations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("matric_number", sa.String(length=50), nullable=False),
        sa.Column("department_id", sa.String(length=36), nullable=False),
        sa.Column("placement_organization_id", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_students_email", "students", ["email"], unique=True)
    op.create_index("ix_students_matric_number", "students", ["matric_number"], unique=True)
    op.create_index("ix_students_department_id", "students", ["department_id"])

    op.create_table(
        "supervisors",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", supervisor_role_enum, nullable=False),
        sa.Column("department_id", sa.String(length=36), nullable=True),
        sa.Column("placement_organization_id", sa.String(length=36), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("capacity >= 0", name="ck_supervisors_capacity_non_negative"),
    )
    op.create_index("ix_supervisors_email", "supervisors", ["email"], unique=True)
    op.create_index("ix_supervisors_department_id", "supervisors", ["department_id"])
    op.create_index("ix_supervisors_placement_organization_id", "supervisors", ["placement_organization_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("actor_role", sa.String(length=30), nullable=False, server_default="system"),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=True),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_actor_id", "activity_logs", ["actor_id"])
    op.create_index("ix_activity_logs_session_action", "activity_logs", ["session_id", "action"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_session_action", table_name="activity_logs")
    op.drop_index("ix_activity_logs_actor_id", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_supervisors_placement_organization_id", table_name="supervisors")
    op.drop_index("ix_supervisors_department_id", table_name="supervisors")
    op.drop_index("ix_supervisors_email", table_name="supervisors")
    op.drop_table("supervisors")
    op.drop_index("ix_students_department_id", table_name="students")
    op.drop_index("ix_students_matric_number", table_name="students")
    op.drop_index("ix_students_email", table_name="students")
    op.drop_table("students")
    op.drop_table("placement_organizations")
    op.drop_index("ix_departments_code", table_name="departments")
    op.drop_table("departments")
    supervisor_role_enum.drop(op.get_bind(), checkfirst=True)
