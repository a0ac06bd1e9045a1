"""CSV and XLSX rendering of computed report payloads."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from io import BytesIO

from openpyxl import Workbook

CSV_HEADERS: dict[str, list[str]] = {
    "by-project": [
        "Project",
        "Total Hours",
        "Billable Hours",
        "Non-Billable Hours",
        "Billable %",
        "Entries",
        "Users",
    ],
    "by-user": [
        "User",
        "Total Hours",
        "Billable Hours",
        "Non-Billable Hours",
        "Billable %",
        "Entries",
        "Projects",
    ],
    "trends": ["Period Start", "Total Hours", "Billable Hours", "Non-Billable Hours", "Entries"],
    "summary": ["Metric", "Value"],
}

NO_DATA_CSV = "No data\n"


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def _format_number(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _summary_rows(data: dict[str, object]) -> list[list[str]]:
    summary = data["summary"]
    return [
        ["Total Hours", _format_number(summary["totalHours"])],
        ["Billable Hours", _format_number(summary["billableHours"])],
        ["Non-Billable Hours", _format_number(summary["nonBillableHours"])],
        ["Billable Percentage", f"{_format_number(summary['billablePercentage'])}%"],
        ["Total Entries", _format_number(summary["totalEntries"])],
        ["Unique Users", _format_number(summary["uniqueUsers"])],
        ["Unique Projects", _format_number(summary["uniqueProjects"])],
        ["Average Hours Per User", _format_number(summary["avgHoursPerUser"])],
        ["This Week Hours", _format_number(summary["thisWeekHours"])],
        ["This Month Hours", _format_number(summary["thisMonthHours"])],
    ]


def _group_rows(data: list[dict[str, object]], label_key: str, count_key: str) -> list[list[str]]:
    return [
        [
            str(row[label_key]),
            _format_number(row["totalHours"]),
            _format_number(row["billableHours"]),
            _format_number(row["nonBillableHours"]),
            _format_number(row["billablePercentage"]),
            _format_number(row["entries"]),
            _format_number(row[count_key]),
        ]
        for row in data
    ]


def _trend_rows(data: list[dict[str, object]]) -> list[list[str]]:
    return [
        [
            str(row["periodStart"]),
            _format_number(row["totalHours"]),
            _format_number(row["billableHours"]),
            _format_number(row["nonBillableHours"]),
            _format_number(row["entries"]),
        ]
        for row in data
    ]


def report_rows(data: object, report_type: str) -> list[list[str]] | None:
    """Header plus data rows for a report, or ``None`` for unknown types."""

    if report_type == "summary":
        body = _summary_rows(data)
    elif report_type == "by-project":
        body = _group_rows(data, "projectName", "users")
    elif report_type == "by-user":
        body = _group_rows(data, "userName", "projects")
    elif report_type == "trends":
        body = _trend_rows(data)
    else:
        return None
    return [CSV_HEADERS[report_type], *body]


def render_csv(data: object, report_type: str) -> str:
    rows = report_rows(data, report_type)
    if rows is None:
        return NO_DATA_CSV

    sio = io.StringIO()
    writer = csv.writer(sio, lineterminator="\n")
    writer.writerows(rows)
    return sio.getvalue()


def render_xlsx(data: object, report_type: str) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "report"

    rows = report_rows(data, report_type)
    if rows is None:
        sheet.append(["No data"])
    else:
        for row in rows:
            sheet.append(row)

    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


def export_report(data: object, *, report_type: str, format_name: str, generated_at_ms: int) -> ExportFilePayload:
    """Render a report for download. ``format_name`` is ``csv`` or ``xlsx``."""

    base_filename = f"timesheet-report-{report_type}-{generated_at_ms}"
    if format_name == "xlsx":
        return ExportFilePayload(
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=f"{base_filename}.xlsx",
            content=render_xlsx(data, report_type),
        )
    return ExportFilePayload(
        media_type="text/csv; charset=utf-8",
        filename=f"{base_filename}.csv",
        content=render_csv(data, report_type).encode("utf-8"),
    )
