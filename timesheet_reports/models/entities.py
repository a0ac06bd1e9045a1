"""ORM entities for the timesheet reporting schema."""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from timesheet_reports.db.base import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class TimesheetStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


REPORTABLE_TIMESHEET_STATUSES = (TimesheetStatus.SUBMITTED, TimesheetStatus.APPROVED)


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        Index("ix_accounts_org_status", "organization_id", "status"),
        Index("ix_accounts_supervisor_id", "supervisor_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    # Auth user id; ownership and supervision links reference this, not the row id.
    account_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    department: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    user_type: Mapped[str] = mapped_column(String(32), nullable=False, default="staff")
    supervisor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_supervisor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_finance: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (Index("ix_projects_organization_id", "organization_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    project_team_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class TeamMembership(Base):
    __tablename__ = "team_memberships"
    __table_args__ = (
        Index("ix_team_memberships_team_id", "team_id"),
        Index("ix_team_memberships_user_id", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class Timesheet(Base):
    __tablename__ = "timesheets"
    __table_args__ = (
        Index("ix_timesheets_org_status_week", "organization_id", "status", "week_start"),
        Index("ix_timesheets_account_id", "account_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[TimesheetStatus] = mapped_column(
        SQLEnum(
            TimesheetStatus,
            name="timesheet_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=TimesheetStatus.DRAFT,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)


class TimeEntry(Base):
    __tablename__ = "timesheet_entries"
    __table_args__ = (
        CheckConstraint("hours >= 0", name="ck_timesheet_entries_hours_non_negative"),
        Index("ix_timesheet_entries_timesheet_id", "timesheet_id"),
        Index("ix_timesheet_entries_work_date", "work_date"),
        Index("ix_timesheet_entries_project_id", "project_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    timesheet_id: Mapped[str] = mapped_column(String(64), ForeignKey("timesheets.id"), nullable=False)
    project_id: Mapped[str] = mapped_column(String(64), nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
