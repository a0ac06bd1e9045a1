from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timesheet_reports.core.auth import RequestIdentity
from timesheet_reports.core.config import Settings
from timesheet_reports.models.entities import Account, Project, TeamMembership, TimeEntry, Timesheet, TimesheetStatus
from timesheet_reports.repositories.timesheet_repository import TimesheetRepository
from timesheet_reports.services.timesheet_reporting_service import TimesheetReportingService

REPORTS_URL = "/api/v1/timesheets/reports"


def _params(account_id: str, labels: list[str], **extra: str) -> dict[str, str]:
    return {
        "accountId": account_id,
        "organizationId": "org-1",
        "labels": json.dumps(labels),
        **extra,
    }


def _seed(db: Session) -> None:
    db.add_all(
        [
            Account(account_id="acc-1", organization_id="org-1", first_name="Ada", last_name="Lovelace", supervisor_id="acc-boss"),
            Account(account_id="acc-2", organization_id="org-1", first_name="Alan", last_name="Turing"),
            Account(account_id="acc-boss", organization_id="org-1", first_name="Grace", last_name="Hopper"),
            Account(account_id="acc-m", organization_id="org-1", first_name="Mary", last_name="Manager"),
            Project(id="p-a", organization_id="org-1", code="PA", name="Alpha", project_team_id="team-a"),
            Project(id="p-b", organization_id="org-1", code="PB", name="Beta", project_team_id="team-b"),
            TeamMembership(team_id="team-a", user_id="acc-m", roles=["manager"]),
            TeamMembership(team_id="team-b", user_id="acc-m", roles=["member"]),
        ]
    )
    week = date(2026, 10, 5)
    timesheets = [
        ("ts-1", "acc-1", TimesheetStatus.APPROVED, week),
        ("ts-2", "acc-2", TimesheetStatus.SUBMITTED, week),
        ("ts-m", "acc-m", TimesheetStatus.SUBMITTED, week),
        ("ts-draft", "acc-1", TimesheetStatus.DRAFT, date(2026, 10, 12)),
        ("ts-rejected", "acc-2", TimesheetStatus.REJECTED, date(2026, 10, 12)),
    ]
    for timesheet_id, account_id, status, week_start in timesheets:
        db.add(
            Timesheet(
                id=timesheet_id,
                organization_id="org-1",
                account_id=account_id,
                status=status,
                week_start=week_start,
            )
        )
    db.flush()

    entries = [
        ("e-1", "ts-1", "p-a", date(2026, 10, 5), "3.0", True),
        ("e-2", "ts-1", "p-b", date(2026, 10, 6), "2.0", False),
        ("e-3", "ts-2", "p-a", date(2026, 10, 7), "4.0", True),
        ("e-4", "ts-m", "p-b", date(2026, 10, 8), "1.0", True),
        ("e-5", "ts-draft", "p-a", date(2026, 10, 12), "10.0", True),
        ("e-6", "ts-rejected", "p-b", date(2026, 10, 13), "20.0", True),
    ]
    for entry_id, timesheet_id, project_id, work_date, hours, billable in entries:
        db.add(
            TimeEntry(
                id=entry_id,
                timesheet_id=timesheet_id,
                project_id=project_id,
                work_date=work_date,
                hours=Decimal(hours),
                billable=billable,
            )
        )
    db.commit()


def test_identity_is_required(client: TestClient) -> None:
    response = client.get(REPORTS_URL, params={"accountId": "acc-1", "organizationId": "org-1"})

    assert response.status_code == 400
    assert response.json()["detail"] == "accountId, organizationId, and labels are required"


def test_unknown_report_type_is_rejected(client: TestClient) -> None:
    response = client.get(REPORTS_URL, params=_params("acc-1", ["staff"], type="heatmap"))

    assert response.status_code == 400
    assert response.json()["detail"] == "Unknown report type: heatmap"


def test_unknown_report_type_never_touches_the_store(db_session: Session) -> None:
    calls: list[str] = []

    class RecordingRepository:
        def __getattr__(self, name: str):
            calls.append(name)
            raise AssertionError(f"unexpected repository call: {name}")

    service = TimesheetReportingService(db_session, settings=Settings())
    service.repo = RecordingRepository()
    identity = RequestIdentity(account_id="acc-1", organization_id="org-1", labels=("staff",))

    with pytest.raises(HTTPException) as exc_info:
        service.generate_report(identity=identity, report_type="heatmap")

    assert exc_info.value.status_code == 400
    assert calls == []


def test_unknown_frequency_and_inverted_range_are_rejected(client: TestClient) -> None:
    response = client.get(REPORTS_URL, params=_params("acc-1", ["staff"], type="trends", frequency="hourly"))
    assert response.status_code == 400

    response = client.get(
        REPORTS_URL,
        params=_params("acc-1", ["staff"], startDate="2026-10-10", endDate="2026-10-01"),
    )
    assert response.status_code == 422

    response = client.get(REPORTS_URL, params=_params("acc-1", ["staff"], startDate="not-a-date"))
    assert response.status_code == 422


def test_admin_summary_excludes_draft_and_rejected(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(REPORTS_URL, params=_params("acc-admin", ["admin"]))

    assert response.status_code == 200
    assert response.headers["cache-control"] == "private, max-age=60, stale-while-revalidate=300"
    payload = response.json()
    assert payload["success"] is True
    assert payload["type"] == "summary"
    assert payload["role"] == "admin"
    assert payload["isAdmin"] is True
    assert payload["filters"] == {"startDate": "all", "endDate": "all", "projectId": "all", "userId": "all"}
    summary = payload["data"]["summary"]
    assert summary["totalHours"] == "10.0"
    assert summary["billableHours"] == "8.0"
    assert summary["nonBillableHours"] == "2.0"
    assert summary["billablePercentage"] == 80.0
    assert summary["totalEntries"] == 4
    assert summary["uniqueUsers"] == 3
    assert summary["uniqueProjects"] == 2
    assert payload["data"]["topProjects"][0] == {"projectId": "p-a", "projectName": "PA - Alpha", "hours": "7.0"}
    assert payload["data"]["topUsers"][0] == {"userId": "acc-1", "userName": "Ada Lovelace", "hours": "5.0"}


def test_staff_only_sees_own_time_even_when_naming_another_user(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    own = client.get(REPORTS_URL, params=_params("acc-1", ["staff"])).json()
    other = client.get(REPORTS_URL, params=_params("acc-1", ["staff"], userId="acc-2")).json()

    assert own["role"] == "staff"
    assert own["data"]["summary"]["totalHours"] == "5.0"
    assert own["data"]["summary"]["billablePercentage"] == 60.0
    assert other["data"]["summary"]["totalHours"] == "5.0"
    assert other["data"]["topUsers"] == [{"userId": "acc-1", "userName": "Ada Lovelace", "hours": "5.0"}]


def test_supervisor_is_scoped_to_team(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(REPORTS_URL, params=_params("acc-boss", ["staff", "supervisor"], type="by-user"))

    payload = response.json()
    assert payload["role"] == "supervisor"
    assert payload["supervisedUsersCount"] == 1
    assert [row["userId"] for row in payload["data"]] == ["acc-1"]


def test_supervisor_denials_return_empty_data_with_error(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    outsider = client.get(REPORTS_URL, params=_params("acc-boss", ["supervisor"], userId="acc-2"))
    assert outsider.status_code == 200
    assert outsider.json()["error"] == "Not authorized to view this user"
    assert outsider.json()["data"]["summary"]["totalHours"] == "0.0"

    lonely = client.get(REPORTS_URL, params=_params("acc-2", ["supervisor"], type="by-project", export="csv"))
    assert lonely.status_code == 200
    assert lonely.headers["content-type"].startswith("application/json")
    assert lonely.json()["error"] == "No supervised users found"
    assert lonely.json()["data"] == []


def test_manager_sees_own_time_and_managed_projects(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    overall = client.get(REPORTS_URL, params=_params("acc-m", ["staff"])).json()
    assert overall["role"] == "manager"
    assert overall["isManager"] is True
    assert overall["managedProjects"] == ["p-a"]
    assert overall["managedProjectsCount"] == 1
    assert overall["data"]["summary"]["totalHours"] == "8.0"

    managed = client.get(REPORTS_URL, params=_params("acc-m", ["staff"], projectId="p-a")).json()
    assert managed["data"]["summary"]["totalHours"] == "7.0"

    unmanaged = client.get(REPORTS_URL, params=_params("acc-m", ["staff"], projectId="p-b")).json()
    assert unmanaged["data"]["summary"]["totalHours"] == "1.0"
    assert unmanaged["filters"]["projectId"] == "p-b"


def test_trends_report_for_explicit_range(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(
        REPORTS_URL,
        params=_params("acc-admin", ["finance"], type="trends", startDate="2026-10-05", endDate="2026-10-11"),
    )

    payload = response.json()
    assert payload["role"] == "finance"
    assert payload["data"] == [
        {
            "periodStart": "2026-10-05",
            "totalHours": "10.0",
            "billableHours": "8.0",
            "nonBillableHours": "2.0",
            "entries": 4,
        }
    ]


def test_no_matching_timesheets_returns_empty_shape(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(REPORTS_URL, params=_params("acc-new", ["staff"], type="by-project"))

    assert response.status_code == 200
    assert response.json()["data"] == []
    assert "error" not in response.json()


def test_repeated_requests_are_identical(client: TestClient, db_session: Session) -> None:
    _seed(db_session)
    params = _params("acc-admin", ["admin"], type="by-user")

    first = client.get(REPORTS_URL, params=params).json()
    second = client.get(REPORTS_URL, params=params).json()

    assert first == second
    assert [row["userId"] for row in first["data"]] == ["acc-1", "acc-2", "acc-m"]


def test_csv_export_download(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get(REPORTS_URL, params=_params("acc-admin", ["admin"], type="by-project", export="csv"))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="timesheet-report-by-project-')
    assert disposition.endswith('.csv"')
    assert response.text.splitlines() == [
        "Project,Total Hours,Billable Hours,Non-Billable Hours,Billable %,Entries,Users",
        "PA - Alpha,7.0,7.0,0.0,100,2,2",
        "PB - Beta,3.0,1.0,2.0,33.3,2,2",
    ]


def test_store_failure_returns_500(client: TestClient, db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    _seed(db_session)

    def broken_page(self, filters, *, limit, offset):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(TimesheetRepository, "list_timesheets_page", broken_page)

    response = client.get(REPORTS_URL, params=_params("acc-admin", ["admin"]))

    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail.startswith("Failed to generate report: ")
    assert "connection lost" in detail


def test_access_context_reports_resolved_roles(client: TestClient, db_session: Session) -> None:
    _seed(db_session)

    response = client.get("/api/v1/access/context", params=_params("acc-boss", ["supervisor"]))

    assert response.status_code == 200
    payload = response.json()
    assert payload["accountId"] == "acc-boss"
    assert payload["labels"] == ["supervisor"]
    assert payload["role"] == "supervisor"
    assert payload["supervisedAccounts"] == ["acc-1"]
    assert payload["isManager"] is False
