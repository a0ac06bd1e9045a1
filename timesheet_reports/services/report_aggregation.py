"""Pure aggregation of enriched time entries into report shapes."""

from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from timesheet_reports.models.entities import Account, Project

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
Q1 = Decimal("0.1")
HUNDRED = Decimal("100")
TOP_LIMIT = 5


class ReportType(str, Enum):
    SUMMARY = "summary"
    BY_PROJECT = "by-project"
    BY_USER = "by-user"
    TRENDS = "trends"


class TrendFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True, slots=True)
class ReportEntry:
    """Time entry enriched with the owner inherited from its timesheet."""

    entry_id: str
    timesheet_id: str
    account_id: str | None
    project_id: str
    work_date: date
    hours: Decimal
    billable: bool
    description: str | None = None


@dataclass(slots=True)
class _HoursBucket:
    total: Decimal = ZERO
    billable: Decimal = ZERO
    non_billable: Decimal = ZERO
    entries: int = 0
    related: set[str | None] = field(default_factory=set)

    def add(self, entry: ReportEntry, related_id: str | None = None) -> None:
        self.total += entry.hours
        self.entries += 1
        self.related.add(related_id)
        if entry.billable:
            self.billable += entry.hours
        else:
            self.non_billable += entry.hours


def _q1(value: Decimal) -> Decimal:
    return value.quantize(Q1, rounding=ROUND_HALF_UP)


def format_hours(value: Decimal) -> str:
    """Hours as a fixed one-decimal string, e.g. ``"5.0"``."""

    return str(_q1(value))


def percentage(part: Decimal, whole: Decimal) -> float:
    if whole == ZERO:
        return 0.0
    return float(_q1(part * HUNDRED / whole))


def _sum_hours(entries: Iterable[ReportEntry]) -> Decimal:
    return sum((entry.hours for entry in entries), ZERO)


def project_labels(projects: Sequence[Project]) -> dict[str, str]:
    return {project.id: f"{project.code} - {project.name}" for project in projects}


def user_labels(accounts: Sequence[Account]) -> dict[str, str]:
    return {account.account_id: f"{account.first_name} {account.last_name}" for account in accounts}


def _by_hours_desc(buckets: dict[str | None, _HoursBucket]) -> list[tuple[str | None, _HoursBucket]]:
    # sorted() is stable, so ties keep first-seen order.
    return sorted(buckets.items(), key=lambda item: item[1].total, reverse=True)


# ---------- Calendar helpers ----------
def current_week_bounds(today: date) -> tuple[date, date]:
    """Sunday-to-Saturday calendar week containing ``today``."""

    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def current_month_bounds(today: date) -> tuple[date, date]:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def period_start(value: date, frequency: TrendFrequency) -> date:
    if frequency is TrendFrequency.WEEKLY:
        return value - timedelta(days=value.weekday())
    if frequency is TrendFrequency.MONTHLY:
        return value.replace(day=1)
    if frequency is TrendFrequency.YEARLY:
        return date(value.year, 1, 1)
    return value


def period_key(value: date, frequency: TrendFrequency) -> str:
    start = period_start(value, frequency)
    if frequency is TrendFrequency.YEARLY:
        return f"{start.year:04d}"
    return start.isoformat()


def _next_period(start: date, frequency: TrendFrequency) -> date:
    if frequency is TrendFrequency.WEEKLY:
        return start + timedelta(days=7)
    if frequency is TrendFrequency.MONTHLY:
        if start.month == 12:
            return date(start.year + 1, 1, 1)
        return date(start.year, start.month + 1, 1)
    if frequency is TrendFrequency.YEARLY:
        return date(start.year + 1, 1, 1)
    return start + timedelta(days=1)


def period_sequence(start: date, end: date, frequency: TrendFrequency) -> list[str]:
    """Keys of every period overlapping ``[start, end]``, snapped outward."""

    keys: list[str] = []
    current = period_start(start, frequency)
    last = period_start(end, frequency)
    while current <= last:
        keys.append(period_key(current, frequency))
        current = _next_period(current, frequency)
    return keys


def trend_range(
    entries: Sequence[ReportEntry],
    *,
    start_date: date | None,
    end_date: date | None,
    today: date,
    default_days: int = 30,
) -> tuple[date, date]:
    """Date range a trend series covers before snapping to period bounds.

    Without an explicit start the range is the trailing ``default_days``,
    widened to the earliest and latest entry so no entry falls outside it.
    """

    start = start_date or today - timedelta(days=default_days)
    end = end_date or today
    if start_date is None and entries:
        work_dates = [entry.work_date for entry in entries]
        start = min(start, min(work_dates))
        end = max(end, max(work_dates))
    return start, end


# ---------- Reports ----------
def empty_summary() -> dict[str, object]:
    return {
        "totalHours": "0.0",
        "billableHours": "0.0",
        "nonBillableHours": "0.0",
        "billablePercentage": 0.0,
        "totalEntries": 0,
        "uniqueUsers": 0,
        "uniqueProjects": 0,
        "avgHoursPerUser": 0.0,
        "thisWeekHours": "0.0",
        "thisMonthHours": "0.0",
    }


def empty_report(report_type: ReportType) -> dict[str, object] | list[dict[str, object]]:
    """Type-appropriate empty payload."""

    if report_type is ReportType.SUMMARY:
        return {"summary": empty_summary(), "topProjects": [], "topUsers": []}
    return []


def top_projects(
    entries: Sequence[ReportEntry],
    projects: Sequence[Project],
    limit: int = TOP_LIMIT,
) -> list[dict[str, object]]:
    labels = project_labels(projects)
    hours: dict[str | None, _HoursBucket] = {}
    for entry in entries:
        hours.setdefault(entry.project_id, _HoursBucket()).add(entry)

    return [
        {
            "projectId": project_id,
            "projectName": labels.get(project_id, project_id),
            "hours": format_hours(bucket.total),
        }
        for project_id, bucket in _by_hours_desc(hours)[:limit]
    ]


def top_users(
    entries: Sequence[ReportEntry],
    accounts: Sequence[Account],
    limit: int = TOP_LIMIT,
) -> list[dict[str, object]]:
    labels = user_labels(accounts)
    hours: dict[str | None, _HoursBucket] = {}
    for entry in entries:
        hours.setdefault(entry.account_id, _HoursBucket()).add(entry)

    return [
        {
            "userId": account_id,
            "userName": labels.get(account_id, account_id),
            "hours": format_hours(bucket.total),
        }
        for account_id, bucket in _by_hours_desc(hours)[:limit]
    ]


def summary_report(
    entries: Sequence[ReportEntry],
    projects: Sequence[Project],
    accounts: Sequence[Account],
    *,
    today: date,
) -> dict[str, object]:
    """Totals, distinct counts, current week/month hours, and top lists.

    Week and month figures are relative to ``today``, not to any requested
    date range.
    """

    total = _sum_hours(entries)
    billable = _sum_hours(entry for entry in entries if entry.billable)
    unique_users = {entry.account_id for entry in entries}
    unique_projects = {entry.project_id for entry in entries}

    week_start, week_end = current_week_bounds(today)
    month_start, month_end = current_month_bounds(today)
    this_week = _sum_hours(entry for entry in entries if week_start <= entry.work_date <= week_end)
    this_month = _sum_hours(entry for entry in entries if month_start <= entry.work_date <= month_end)

    avg_per_user = float(_q1(total / len(unique_users))) if unique_users else 0.0

    return {
        "summary": {
            "totalHours": format_hours(total),
            "billableHours": format_hours(billable),
            "nonBillableHours": format_hours(total - billable),
            "billablePercentage": percentage(billable, total),
            "totalEntries": len(entries),
            "uniqueUsers": len(unique_users),
            "uniqueProjects": len(unique_projects),
            "avgHoursPerUser": avg_per_user,
            "thisWeekHours": format_hours(this_week),
            "thisMonthHours": format_hours(this_month),
        },
        "topProjects": top_projects(entries, projects),
        "topUsers": top_users(entries, accounts),
    }


def by_project_report(entries: Sequence[ReportEntry], projects: Sequence[Project]) -> list[dict[str, object]]:
    labels = project_labels(projects)
    buckets: dict[str | None, _HoursBucket] = {}
    for entry in entries:
        buckets.setdefault(entry.project_id, _HoursBucket()).add(entry, entry.account_id)

    return [
        {
            "projectId": project_id,
            "projectName": labels.get(project_id, project_id),
            "totalHours": format_hours(bucket.total),
            "billableHours": format_hours(bucket.billable),
            "nonBillableHours": format_hours(bucket.non_billable),
            "billablePercentage": percentage(bucket.billable, bucket.total),
            "entries": bucket.entries,
            "users": len(bucket.related),
        }
        for project_id, bucket in _by_hours_desc(buckets)
    ]


def by_user_report(entries: Sequence[ReportEntry], accounts: Sequence[Account]) -> list[dict[str, object]]:
    labels = user_labels(accounts)
    buckets: dict[str | None, _HoursBucket] = {}
    for entry in entries:
        buckets.setdefault(entry.account_id, _HoursBucket()).add(entry, entry.project_id)

    return [
        {
            "userId": account_id,
            "userName": labels.get(account_id, account_id),
            "totalHours": format_hours(bucket.total),
            "billableHours": format_hours(bucket.billable),
            "nonBillableHours": format_hours(bucket.non_billable),
            "billablePercentage": percentage(bucket.billable, bucket.total),
            "entries": bucket.entries,
            "projects": len(bucket.related),
        }
        for account_id, bucket in _by_hours_desc(buckets)
    ]


def trends_report(
    entries: Sequence[ReportEntry],
    *,
    frequency: TrendFrequency = TrendFrequency.WEEKLY,
    start_date: date | None = None,
    end_date: date | None = None,
    today: date,
    default_days: int = 30,
) -> list[dict[str, object]]:
    """Dense, chronologically sorted period series.

    Every period in range is seeded with zeros first so empty periods are
    reported rather than omitted.
    """

    range_start, range_end = trend_range(
        entries,
        start_date=start_date,
        end_date=end_date,
        today=today,
        default_days=default_days,
    )
    buckets: dict[str, _HoursBucket] = {
        key: _HoursBucket() for key in period_sequence(range_start, range_end, frequency)
    }

    dropped = 0
    for entry in entries:
        bucket = buckets.get(period_key(entry.work_date, frequency))
        if bucket is None:
            dropped += 1
            continue
        bucket.add(entry)
    if dropped:
        logger.debug("Trend entries outside seeded periods dropped", extra={"dropped": dropped})

    return [
        {
            "periodStart": key,
            "totalHours": format_hours(buckets[key].total),
            "billableHours": format_hours(buckets[key].billable),
            "nonBillableHours": format_hours(buckets[key].non_billable),
            "entries": buckets[key].entries,
        }
        for key in sorted(buckets)
    ]
