"""Translate resolved role facts into timesheet query constraints."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date

from timesheet_reports.core.auth import RoleFacts
from timesheet_reports.repositories.timesheet_repository import TimesheetFilter

NOT_AUTHORIZED_FOR_USER = "Not authorized to view this user"
NO_SUPERVISED_USERS = "No supervised users found"


@dataclass(frozen=True, slots=True)
class AccessScope:
    """Either a timesheet filter to run, or the reason the request was denied."""

    timesheet_filter: TimesheetFilter | None
    denial: str | None = None

    @property
    def denied(self) -> bool:
        return self.denial is not None


def build_access_scope(
    facts: RoleFacts,
    *,
    requester_id: str,
    organization_id: str,
    user_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> AccessScope:
    """Build the timesheet filter for the requester's effective role.

    Rules are evaluated in role precedence order. A supervisor asking for a
    user outside their team is denied rather than silently re-scoped.
    """

    base = TimesheetFilter(
        organization_id=organization_id,
        week_start_from=start_date,
        week_start_to=end_date,
    )

    if facts.is_privileged:
        if user_id:
            return AccessScope(replace(base, account_ids=(user_id,)))
        return AccessScope(base)

    if facts.is_supervisor:
        if user_id:
            if user_id not in facts.supervised_account_ids:
                return AccessScope(None, denial=NOT_AUTHORIZED_FOR_USER)
            return AccessScope(replace(base, account_ids=(user_id,)))
        if not facts.supervised_account_ids:
            return AccessScope(None, denial=NO_SUPERVISED_USERS)
        return AccessScope(replace(base, account_ids=facts.supervised_account_ids))

    if facts.is_manager:
        # Entry-level scoping to managed projects happens after the fetch.
        if user_id:
            return AccessScope(replace(base, account_ids=(user_id,)))
        return AccessScope(base)

    return AccessScope(replace(base, account_ids=(requester_id,)))
