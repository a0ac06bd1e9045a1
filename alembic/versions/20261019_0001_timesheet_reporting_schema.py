"""timesheet reporting schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


timesheet_status = postgresql.ENUM(
    "draft", "submitted", "approved", "rejected", name="timesheet_status", create_type=False
)


def upgrade() -> None:
    timesheet_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("organization_id", sa.String(length=64), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("user_type", sa.String(length=32), nullable=False, server_default="staff"),
        sa.Column("supervisor_id", sa.String(length=64), nullable=True),
        sa.Column("is_supervisor", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_finance", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_accounts_org_status", "accounts", ["organization_id", "status"])
    op.create_index("ix_accounts_supervisor_id", "accounts", ["supervisor_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("project_team_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    op.create_table(
        "team_memberships",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("team_id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
    )
    op.create_index("ix_team_memberships_team_id", "team_memberships", ["team_id"])
    op.create_index("ix_team_memberships_user_id", "team_memberships", ["user_id"])

    op.create_table(
        "timesheets",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("status", timesheet_status, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_timesheets_org_status_week",
        "timesheets",
        ["organization_id", "status", "week_start"],
    )
    op.create_index("ix_timesheets_account_id", "timesheets", ["account_id"])

    op.create_table(
        "timesheet_entries",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("timesheet_id", sa.String(length=64), sa.ForeignKey("timesheets.id"), nullable=False),
        sa.Column("project_id", sa.String(length=64), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("billable", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("description", sa.String(length=2000), nullable=True),
        sa.CheckConstraint("hours >= 0", name="ck_timesheet_entries_hours_non_negative"),
    )
    op.create_index("ix_timesheet_entries_timesheet_id", "timesheet_entries", ["timesheet_id"])
    op.create_index("ix_timesheet_entries_work_date", "timesheet_entries", ["work_date"])
    op.create_index("ix_timesheet_entries_project_id", "timesheet_entries", ["project_id"])


def downgrade() -> None:
    op.drop_index("ix_timesheet_entries_project_id", table_name="timesheet_entries")
    op.drop_index("ix_timesheet_entries_work_date", table_name="timesheet_entries")
    op.drop_index("ix_timesheet_entries_timesheet_id", table_name="timesheet_entries")
    op.drop_table("timesheet_entries")

    op.drop_index("ix_timesheets_account_id", table_name="timesheets")
    op.drop_index("ix_timesheets_org_status_week", table_name="timesheets")
    op.drop_table("timesheets")

    op.drop_index("ix_team_memberships_user_id", table_name="team_memberships")
    op.drop_index("ix_team_memberships_team_id", table_name="team_memberships")
    op.drop_table("team_memberships")

    op.drop_index("ix_projects_organization_id", table_name="projects")
    op.drop_table("projects")

    op.drop_index("ix_accounts_supervisor_id", table_name="accounts")
    op.drop_index("ix_accounts_org_status", table_name="accounts")
    op.drop_table("accounts")

    timesheet_status.drop(op.get_bind(), checkfirst=True)
