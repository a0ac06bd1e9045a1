"""Repository helpers for timesheet reporting reads."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import TypeVar

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from timesheet_reports.models.entities import (
    REPORTABLE_TIMESHEET_STATUSES,
    Account,
    Project,
    TeamMembership,
    TimeEntry,
    Timesheet,
    TimesheetStatus,
)

RowT = TypeVar("RowT")


@dataclass(frozen=True, slots=True)
class TimesheetFilter:
    """Query constraints for the timesheet collection.

    ``account_ids`` of ``None`` means no owner restriction.
    """

    organization_id: str
    statuses: tuple[TimesheetStatus, ...] = REPORTABLE_TIMESHEET_STATUSES
    week_start_from: date | None = None
    week_start_to: date | None = None
    account_ids: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class EntryFilter:
    """Query constraints for entries of already-filtered timesheets."""

    timesheet_ids: tuple[str, ...]
    work_date_from: date | None = None
    work_date_to: date | None = None
    project_id: str | None = None


def paginate(fetch_page: Callable[[int, int], Sequence[RowT]], *, page_size: int, ceiling: int) -> list[RowT]:
    """Collect offset-paginated rows until a short page or the ceiling.

    Pages are requested one after another; each offset depends on the rows
    already returned.
    """

    rows: list[RowT] = []
    offset = 0
    while len(rows) < ceiling:
        page = fetch_page(page_size, offset)
        rows.extend(page)
        offset += page_size
        if len(page) < page_size:
            break
    return rows[:ceiling]


class TimesheetRepository:
    """Read operations used by the timesheet reporting service."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Accounts ----------
    def get_account(self, account_id: str, organization_id: str) -> Account | None:
        return self.db.scalar(
            select(Account).where(
                and_(Account.account_id == account_id, Account.organization_id == organization_id)
            )
        )

    def list_supervised_account_ids(self, supervisor_id: str, organization_id: str, *, limit: int) -> list[str]:
        return list(
            self.db.scalars(
                select(Account.account_id)
                .where(
                    and_(
                        Account.supervisor_id == supervisor_id,
                        Account.organization_id == organization_id,
                        Account.status == "active",
                        Account.user_type == "staff",
                    )
                )
                .order_by(Account.account_id.asc())
                .limit(limit)
            ).all()
        )

    def list_active_staff_accounts(self, organization_id: str, *, limit: int) -> list[Account]:
        return list(
            self.db.scalars(
                select(Account)
                .where(
                    and_(
                        Account.organization_id == organization_id,
                        Account.status == "active",
                        Account.user_type == "staff",
                    )
                )
                .order_by(Account.last_name.asc(), Account.first_name.asc())
                .limit(limit)
            ).all()
        )

    # ---------- Projects and teams ----------
    def list_projects(self, organization_id: str, *, limit: int) -> list[Project]:
        return list(
            self.db.scalars(
                select(Project)
                .where(Project.organization_id == organization_id)
                .order_by(Project.code.asc(), Project.id.asc())
                .limit(limit)
            ).all()
        )

    def list_team_memberships(self, team_id: str) -> list[TeamMembership]:
        return list(
            self.db.scalars(
                select(TeamMembership)
                .where(TeamMembership.team_id == team_id)
                .order_by(TeamMembership.user_id.asc())
            ).all()
        )

    # ---------- Timesheets ----------
    def list_timesheets_page(self, filters: TimesheetFilter, *, limit: int, offset: int) -> list[Timesheet]:
        conditions = [
            Timesheet.organization_id == filters.organization_id,
            Timesheet.status.in_(filters.statuses),
        ]
        if filters.week_start_from is not None:
            conditions.append(Timesheet.week_start >= filters.week_start_from)
        if filters.week_start_to is not None:
            conditions.append(Timesheet.week_start <= filters.week_start_to)
        if filters.account_ids is not None:
            conditions.append(Timesheet.account_id.in_(filters.account_ids))

        return list(
            self.db.scalars(
                select(Timesheet)
                .where(and_(*conditions))
                .order_by(Timesheet.week_start.desc(), Timesheet.id.asc())
                .limit(limit)
                .offset(offset)
            ).all()
        )

    # ---------- Entries ----------
    def list_entries_page(self, filters: EntryFilter, *, limit: int, offset: int) -> list[TimeEntry]:
        if not filters.timesheet_ids:
            return []

        conditions = [TimeEntry.timesheet_id.in_(filters.timesheet_ids)]
        if filters.work_date_from is not None:
            conditions.append(TimeEntry.work_date >= filters.work_date_from)
        if filters.work_date_to is not None:
            conditions.append(TimeEntry.work_date <= filters.work_date_to)
        if filters.project_id:
            conditions.append(TimeEntry.project_id == filters.project_id)

        return list(
            self.db.scalars(
                select(TimeEntry)
                .where(and_(*conditions))
                .order_by(TimeEntry.work_date.desc(), TimeEntry.id.asc())
                .limit(limit)
                .offset(offset)
            ).all()
        )
