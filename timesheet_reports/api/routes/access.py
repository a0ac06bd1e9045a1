"""Access context endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timesheet_reports.core.auth import RequestIdentity, get_request_identity
from timesheet_reports.db.dependencies import get_db_session
from timesheet_reports.services.timesheet_reporting_service import TimesheetReportingService

router = APIRouter(prefix="/access", tags=["access"])


@router.get("/context")
def get_access_context(
    identity: RequestIdentity = Depends(get_request_identity),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    """Return the effective report role resolved for the caller."""

    return TimesheetReportingService(db).access_context(identity)
