"""ORM model package."""

from timesheet_reports.models.entities import (
    REPORTABLE_TIMESHEET_STATUSES,
    Account,
    Project,
    TeamMembership,
    TimeEntry,
    Timesheet,
    TimesheetStatus,
)

__all__ = [
    "REPORTABLE_TIMESHEET_STATUSES",
    "Account",
    "Project",
    "TeamMembership",
    "TimeEntry",
    "Timesheet",
    "TimesheetStatus",
]
