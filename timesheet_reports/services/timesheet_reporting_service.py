"""Role-scoped timesheet report generation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from timesheet_reports.core.auth import MembershipLookup, RequestIdentity, RoleFacts, resolve_role_facts
from timesheet_reports.core.config import Settings, get_settings
from timesheet_reports.models.entities import TeamMembership, TimeEntry
from timesheet_reports.repositories.timesheet_repository import (
    EntryFilter,
    TimesheetFilter,
    TimesheetRepository,
    paginate,
)
from timesheet_reports.services.access_scope import build_access_scope
from timesheet_reports.services.report_aggregation import (
    ReportEntry,
    ReportType,
    TrendFrequency,
    by_project_report,
    by_user_report,
    empty_report,
    summary_report,
    trends_report,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReportResult:
    report_type: ReportType
    payload: dict[str, object]
    denied: bool = False

    @property
    def data(self) -> object:
        return self.payload["data"]


def parse_report_type(value: str) -> ReportType:
    try:
        return ReportType(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown report type: {value}",
        ) from None


def parse_frequency(value: str) -> TrendFrequency:
    try:
        return TrendFrequency(value)
    except ValueError:
        allowed = ", ".join(member.value for member in TrendFrequency)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown trend frequency: {value}. Expected one of: {allowed}.",
        ) from None


def enrich_entries(entries: Sequence[TimeEntry], owners: dict[str, str]) -> list[ReportEntry]:
    """Attach the owning account of each entry's timesheet."""

    return [
        ReportEntry(
            entry_id=entry.id,
            timesheet_id=entry.timesheet_id,
            account_id=owners.get(entry.timesheet_id),
            project_id=entry.project_id,
            work_date=entry.work_date,
            hours=Decimal(str(entry.hours)),
            billable=bool(entry.billable),
            description=entry.description,
        )
        for entry in entries
    ]


def scope_manager_entries(
    entries: list[ReportEntry],
    facts: RoleFacts,
    *,
    requester_id: str,
    project_id: str | None,
    user_id: str | None,
) -> list[ReportEntry]:
    """Restrict a manager to their own time plus time on projects they manage."""

    if not facts.is_manager or facts.is_privileged:
        return entries

    if not user_id and not project_id:
        return [
            entry
            for entry in entries
            if entry.account_id == requester_id or facts.manages_project(entry.project_id)
        ]
    if project_id and not facts.manages_project(project_id):
        return [entry for entry in entries if entry.account_id == requester_id]
    return entries


class TimesheetReportingService:
    """Service resolving caller scope and building timesheet reports."""

    def __init__(
        self,
        db: Session,
        *,
        lookup_memberships: MembershipLookup | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.repo = TimesheetRepository(db)
        self.settings = settings or get_settings()
        self.lookup_memberships = lookup_memberships or self._stored_memberships

    async def _stored_memberships(self, team_id: str) -> list[TeamMembership]:
        return self.repo.list_team_memberships(team_id)

    # ---------- Access / scope ----------
    def resolve_role_facts(self, identity: RequestIdentity) -> RoleFacts:
        return asyncio.run(
            resolve_role_facts(
                self.repo,
                identity,
                lookup_memberships=self.lookup_memberships,
                settings=self.settings,
            )
        )

    def access_context(self, identity: RequestIdentity) -> dict[str, object]:
        facts = self.resolve_role_facts(identity)
        return {
            "accountId": identity.account_id,
            "organizationId": identity.organization_id,
            "labels": list(identity.labels),
            **self._role_fields(facts),
            "supervisedAccounts": list(facts.supervised_account_ids),
        }

    # ---------- Fetching ----------
    def _fetch_timesheet_owners(self, timesheet_filter: TimesheetFilter) -> dict[str, str]:
        timesheets = paginate(
            lambda limit, offset: self.repo.list_timesheets_page(timesheet_filter, limit=limit, offset=offset),
            page_size=self.settings.report_page_size,
            ceiling=self.settings.report_max_timesheets,
        )
        return {timesheet.id: timesheet.account_id for timesheet in timesheets}

    def _fetch_entries(
        self,
        owners: dict[str, str],
        *,
        start_date: date | None,
        end_date: date | None,
        project_id: str | None,
    ) -> list[ReportEntry]:
        entry_filter = EntryFilter(
            timesheet_ids=tuple(owners),
            work_date_from=start_date,
            work_date_to=end_date,
            project_id=project_id,
        )
        rows = paginate(
            lambda limit, offset: self.repo.list_entries_page(entry_filter, limit=limit, offset=offset),
            page_size=self.settings.report_page_size,
            ceiling=self.settings.report_max_entries,
        )
        return enrich_entries(rows, owners)

    # ---------- Serialization ----------
    @staticmethod
    def _role_fields(facts: RoleFacts) -> dict[str, object]:
        return {
            "role": facts.role.value,
            "isAdmin": facts.is_admin,
            "isFinance": facts.is_finance,
            "isSupervisor": facts.is_supervisor,
            "isManager": facts.is_manager,
            "supervisedUsersCount": len(facts.supervised_account_ids),
            "managedProjectsCount": len(facts.managed_project_ids),
            "managedProjects": list(facts.managed_project_ids),
        }

    @staticmethod
    def _serialize_filters(
        *,
        start_date: date | None,
        end_date: date | None,
        project_id: str | None,
        user_id: str | None,
    ) -> dict[str, str]:
        return {
            "startDate": start_date.isoformat() if start_date else "all",
            "endDate": end_date.isoformat() if end_date else "all",
            "projectId": project_id or "all",
            "userId": user_id or "all",
        }

    # ---------- Reports ----------
    def generate_report(
        self,
        *,
        identity: RequestIdentity,
        report_type: str = ReportType.SUMMARY.value,
        frequency: str = TrendFrequency.WEEKLY.value,
        start_date: date | None = None,
        end_date: date | None = None,
        project_id: str | None = None,
        user_id: str | None = None,
        today: date | None = None,
    ) -> ReportResult:
        # Parameter validation happens before any store access.
        parsed_type = parse_report_type(report_type)
        parsed_frequency = parse_frequency(frequency)
        if start_date is not None and end_date is not None and end_date < start_date:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="endDate must be greater than or equal to startDate.",
            )
        today = today or date.today()

        facts = self.resolve_role_facts(identity)
        payload: dict[str, object] = {
            "success": True,
            "type": parsed_type.value,
            **self._role_fields(facts),
            "filters": self._serialize_filters(
                start_date=start_date,
                end_date=end_date,
                project_id=project_id,
                user_id=user_id,
            ),
        }

        scope = build_access_scope(
            facts,
            requester_id=identity.account_id,
            organization_id=identity.organization_id,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
        )
        if scope.denied:
            logger.info(
                "Timesheet report denied",
                extra={"account_id": identity.account_id, "reason": scope.denial},
            )
            payload["error"] = scope.denial
            payload["data"] = empty_report(parsed_type)
            return ReportResult(parsed_type, payload, denied=True)

        owners = self._fetch_timesheet_owners(scope.timesheet_filter)
        if not owners:
            payload["data"] = empty_report(parsed_type)
            return ReportResult(parsed_type, payload)

        entries = self._fetch_entries(owners, start_date=start_date, end_date=end_date, project_id=project_id)
        entries = scope_manager_entries(
            entries,
            facts,
            requester_id=identity.account_id,
            project_id=project_id,
            user_id=user_id,
        )

        if parsed_type is ReportType.SUMMARY:
            data: object = summary_report(
                entries,
                self.repo.list_projects(identity.organization_id, limit=self.settings.report_lookup_limit),
                self.repo.list_active_staff_accounts(identity.organization_id, limit=self.settings.report_lookup_limit),
                today=today,
            )
        elif parsed_type is ReportType.BY_PROJECT:
            data = by_project_report(
                entries,
                self.repo.list_projects(identity.organization_id, limit=self.settings.report_lookup_limit),
            )
        elif parsed_type is ReportType.BY_USER:
            data = by_user_report(
                entries,
                self.repo.list_active_staff_accounts(identity.organization_id, limit=self.settings.report_lookup_limit),
            )
        else:
            data = trends_report(
                entries,
                frequency=parsed_frequency,
                start_date=start_date,
                end_date=end_date,
                today=today,
                default_days=self.settings.report_trend_default_days,
            )

        logger.debug(
            "Timesheet report generated",
            extra={
                "report_type": parsed_type.value,
                "role": facts.role.value,
                "timesheets": len(owners),
                "entries": len(entries),
            },
        )
        payload["data"] = data
        return ReportResult(parsed_type, payload)
