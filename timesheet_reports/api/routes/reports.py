"""Timesheet reporting endpoint."""

from __future__ import annotations

import time
from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from timesheet_reports.core.auth import RequestIdentity, get_request_identity
from timesheet_reports.db.dependencies import get_db_session
from timesheet_reports.services.report_export import export_report
from timesheet_reports.services.timesheet_reporting_service import TimesheetReportingService

router = APIRouter(prefix="/timesheets", tags=["reports"])

EXPORT_FORMATS = {"csv", "xlsx"}


def _service(db: Session) -> TimesheetReportingService:
    return TimesheetReportingService(db)


@router.get("/reports")
def get_timesheet_report(
    report_type: str = Query(default="summary", alias="type"),
    frequency: str = Query(default="weekly"),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    project_id: str | None = Query(default=None, alias="projectId"),
    user_id: str | None = Query(default=None, alias="userId"),
    export_format: str | None = Query(default=None, alias="export"),
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db_session),
) -> Response:
    """Generate a role-scoped timesheet report, optionally as a file download."""

    service = _service(db)
    result = service.generate_report(
        identity=identity,
        report_type=report_type,
        frequency=frequency,
        start_date=start_date,
        end_date=end_date,
        project_id=project_id or None,
        user_id=user_id or None,
    )
    if result.denied:
        return JSONResponse(content=result.payload)

    normalized_format = (export_format or "").strip().lower()
    if normalized_format in EXPORT_FORMATS:
        exported = export_report(
            result.data,
            report_type=result.report_type.value,
            format_name=normalized_format,
            generated_at_ms=int(time.time() * 1000),
        )
        return Response(
            content=exported.content,
            media_type=exported.media_type,
            headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
        )

    return JSONResponse(
        content=result.payload,
        headers={"Cache-Control": service.settings.report_cache_control},
    )
