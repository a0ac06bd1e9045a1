"""Request identity extraction and effective role resolution."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from fastapi import HTTPException, Query, status

from timesheet_reports.core.config import Settings, get_settings
from timesheet_reports.repositories.timesheet_repository import TimesheetRepository

logger = logging.getLogger(__name__)

MANAGER_TEAM_ROLE = "manager"


class AppRole(str, Enum):
    """Effective report roles, highest precedence first."""

    ADMIN = "admin"
    FINANCE = "finance"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    STAFF = "staff"


class MembershipLike(Protocol):
    user_id: str
    roles: Sequence[str]


MembershipLookup = Callable[[str], Awaitable[Sequence[MembershipLike]]]


@dataclass(frozen=True)
class RequestIdentity:
    """Caller identity as supplied by the authenticated front end."""

    account_id: str
    organization_id: str
    labels: tuple[str, ...]


@dataclass(frozen=True)
class RoleFacts:
    """Role facts resolved for a single request."""

    is_admin: bool
    is_finance: bool
    is_supervisor: bool
    is_manager: bool
    managed_project_ids: tuple[str, ...] = ()
    supervised_account_ids: tuple[str, ...] = ()

    @property
    def role(self) -> AppRole:
        """Highest-precedence role: admin > finance > supervisor > manager > staff."""

        if self.is_admin:
            return AppRole.ADMIN
        if self.is_finance:
            return AppRole.FINANCE
        if self.is_supervisor:
            return AppRole.SUPERVISOR
        if self.is_manager:
            return AppRole.MANAGER
        return AppRole.STAFF

    @property
    def is_privileged(self) -> bool:
        """Admin and finance see the whole organization."""

        return self.is_admin or self.is_finance

    def manages_project(self, project_id: str) -> bool:
        return project_id in self.managed_project_ids


def parse_labels(raw: str) -> tuple[str, ...]:
    """Parse a JSON array of labels; any other value is treated as one label."""

    try:
        parsed = json.loads(raw)
    except ValueError:
        return (raw,)
    if not isinstance(parsed, list):
        return (raw,)
    return tuple(str(label) for label in parsed)


def get_request_identity(
    account_id: str | None = Query(default=None, alias="accountId"),
    organization_id: str | None = Query(default=None, alias="organizationId"),
    labels: str | None = Query(default=None),
) -> RequestIdentity:
    """Resolve caller identity from query parameters.

    This layer authorizes only; the labels are trusted as issued by the
    session layer in front of it.
    """

    if not account_id or not organization_id or not labels:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="accountId, organizationId, and labels are required",
        )
    return RequestIdentity(
        account_id=account_id.strip(),
        organization_id=organization_id.strip(),
        labels=parse_labels(labels),
    )


def has_role(facts: RoleFacts, allowed_roles: set[AppRole]) -> bool:
    """Check whether the effective role is one of the allowed roles."""

    return facts.role in allowed_roles


def _holds_manager_role(memberships: Sequence[MembershipLike], account_id: str) -> bool:
    return any(
        membership.user_id == account_id and MANAGER_TEAM_ROLE in (membership.roles or ())
        for membership in memberships
    )


async def _managed_project_ids(
    repo: TimesheetRepository,
    identity: RequestIdentity,
    *,
    lookup_memberships: MembershipLookup,
    settings: Settings,
) -> tuple[str, ...]:
    projects = repo.list_projects(identity.organization_id, limit=settings.report_manager_project_scan_limit)
    teams = [(project.id, project.project_team_id) for project in projects if project.project_team_id]

    managed: list[str] = []
    batch_size = settings.report_membership_batch_size
    for start in range(0, len(teams), batch_size):
        batch = teams[start : start + batch_size]
        results = await asyncio.gather(
            *(lookup_memberships(team_id) for _, team_id in batch),
            return_exceptions=True,
        )
        for (project_id, team_id), result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Team membership lookup failed; project treated as not managed",
                    extra={"project_id": project_id, "team_id": team_id, "error": str(result)},
                )
                continue
            if _holds_manager_role(result, identity.account_id):
                managed.append(project_id)
    return tuple(managed)


async def resolve_role_facts(
    repo: TimesheetRepository,
    identity: RequestIdentity,
    *,
    lookup_memberships: MembershipLookup,
    settings: Settings | None = None,
) -> RoleFacts:
    """Resolve effective role facts for the requester.

    Admin and finance come from labels. Supervisor comes from the label or the
    requester's account flag, and loads the supervised staff list. Manager is
    derived from project team memberships and is checked for every caller,
    since an admin may also manage individual projects.
    """

    settings = settings or get_settings()
    labels = set(identity.labels)
    is_admin = AppRole.ADMIN.value in labels
    is_finance = AppRole.FINANCE.value in labels

    is_supervisor = AppRole.SUPERVISOR.value in labels
    if not is_supervisor:
        account = repo.get_account(identity.account_id, identity.organization_id)
        is_supervisor = bool(account is not None and account.is_supervisor)

    supervised: tuple[str, ...] = ()
    if is_supervisor and not (is_admin or is_finance):
        supervised = tuple(
            repo.list_supervised_account_ids(
                identity.account_id,
                identity.organization_id,
                limit=settings.report_lookup_limit,
            )
        )

    managed = await _managed_project_ids(
        repo,
        identity,
        lookup_memberships=lookup_memberships,
        settings=settings,
    )

    return RoleFacts(
        is_admin=is_admin,
        is_finance=is_finance,
        is_supervisor=is_supervisor,
        is_manager=bool(managed),
        managed_project_ids=managed,
        supervised_account_ids=supervised,
    )
