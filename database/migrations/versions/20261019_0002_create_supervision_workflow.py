"""create supervision workflow tables

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


session_status_enum = postgresql.ENUM("open", "closed", name="session_status", create_type=False)
enrollment_status_enum = postgresql.ENUM("active", "withdrawn", name="enrollment_status", create_type=False)
assignment_method_enum = postgresql.ENUM("manual", "automatic", name="assignment_method", create_type=False)
week_status_enum = postgresql.ENUM("draft", "submitted", "locked", name="week_status", create_type=False)
supervisor_role_enum = postgresql.ENUM("school", "industry", name="supervisor_role", create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (session_status_enum, enrollment_status_enum, assignment_method_enum, week_status_enum):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "internship_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_weeks", sa.Integer(), nullable=False, server_default=sa.text("24")),
        sa.Column("status", session_status_enum, nullable=False, server_default="open"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("label", name="uq_internship_sessions_label"),
        sa.CheckConstraint("end_date > start_date", name="ck_internship_sessions_dates"),
        sa.CheckConstraint("total_weeks BETWEEN 1 AND 52", name="ck_internship_sessions_total_weeks"),
    )

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("status", enrollment_status_enum, nullable=False, server_default="active"),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("student_id", "session_id", name="uq_enrollments_student_session"),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_session_id", "enrollments", ["session_id"])

    op.create_table(
        "supervisor_loads",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("supervisor_id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("current_load", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("supervisor_id", "session_id", name="uq_supervisor_loads_supervisor_session"),
        sa.CheckConstraint("current_load >= 0", name="ck_supervisor_loads_non_negative"),
    )
    op.create_index("ix_supervisor_loads_supervisor_id", "supervisor_loads", ["supervisor_id"])
    op.create_index("ix_supervisor_loads_session_id", "supervisor_loads", ["session_id"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("supervisor_id", sa.String(length=36), nullable=False),
        sa.Column("role", supervisor_role_enum, nullable=False),
        sa.Column("method", assignment_method_enum, nullable=False, server_default="manual"),
        sa.Column("assigned_by_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("student_id", "session_id", "role", name="uq_assignments_student_session_role"),
    )
    op.create_index("ix_assignments_student_id", "assignments", ["student_id"])
    op.create_index("ix_assignments_session_id", "assignments", ["session_id"])
    op.create_index("ix_assignments_supervisor_id", "assignments", ["supervisor_id"])

    op.create_table(
        "logbook_weeks",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("status", week_status_enum, nullable=False, server_default="draft"),
        sa.Column("entries", sa.JSON(), nullable=False),
        sa.Column("locked_by_id", sa.String(length=36), nullable=True),
        sa.Column("locked_by_role", supervisor_role_enum, nullable=True),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lock_reason", sa.Text(), nullable=True),
        sa.Column("review_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "student_id",
            "session_id",
            "week_number",
            name="uq_logbook_weeks_student_session_week",
        ),
    )
    op.create_index("ix_logbook_weeks_student_id", "logbook_weeks", ["student_id"])
    op.create_index("ix_logbook_weeks_session_id", "logbook_weeks", ["session_id"])

    op.create_table(
        "weekly_comments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("week_id", sa.String(length=36), nullable=False),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("author_role", supervisor_role_enum, nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_weekly_comments_week_id", "weekly_comments", ["week_id"])

    op.create_table(
        "final_evaluations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("author_role", supervisor_role_enum, nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "student_id",
            "session_id",
            "author_role",
            name="uq_final_evaluations_student_session_role",
        ),
    )
    op.create_index("ix_final_evaluations_student_id", "final_evaluations", ["student_id"])
    op.create_index("ix_final_evaluations_session_id", "final_evaluations", ["session_id"])


def downgrade() -> None:
    op.drop_index("ix_final_evaluations_session_id", table_name="final_evaluations")
    op.drop_index("ix_final_evaluations_student_id", table_name="final_evaluations")
    op.drop_table("final_evaluations")
    op.drop_index("ix_weekly_comments_week_id", table_name="weekly_comments")
    op.drop_table("weekly_comments")
    op.drop_index("ix_logbook_weeks_session_id", table_name="logbook_weeks")
    op.drop_index("ix_logbook_weeks_student_id", table_name="logbook_weeks")
    op.drop_table("logbook_weeks")
    op.drop_index("ix_assignments_supervisor_id", table_name="assignments")
    op.drop_index("ix_assignments_session_id", table_name="assignments")
    op.drop_index("ix_assignments_student_id", table_name="assignments")
    op.drop_table("assignments")
    op.drop_index("ix_supervisor_loads_session_id", table_name="supervisor_loads")
    op.drop_index("ix_supervisor_loads_supervisor_id", table_name="supervisor_loads")
    op.drop_table("supervisor_loads")
    op.drop_index("ix_enrollments_session_id", table_name="enrollments")
    op.drop_index("ix_enrollments_student_id", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("internship_sessions")

    bind = op.get_bind()
    for enum_type in (week_status_enum, assignment_method_enum, enrollment_status_enum, session_status_enum):
        enum_type.drop(bind, checkfirst=True)
