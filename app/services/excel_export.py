from io import BytesIO
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from app.services.durations import format_clock, format_total_hours

HEADERS = [
    "Unique ID",
    "Job ID",
    "Date",
    "Company",
    "Job Type",
    "Crew Chief",
    "Employee Code",
    "Time In",
    "Time Out",
    "Total Hours",
]

COLUMN_WIDTHS = [18, 22, 12, 24, 10, 22, 15, 10, 10, 12]


def build_export_rows(entries: Iterable) -> list[list[str]]:
    rows: list[list[str]] = [list(HEADERS)]

    for entry in entries:
        intervals = sorted(entry.intervals, key=lambda iv: iv.time_in)
        company = entry.company
        crew = entry.crew_chief
        head = [
            entry.unique_id,
            entry.job_id,
            entry.entry_date.isoformat(),
            company.name if company is not None else "",
            entry.job_type or "",
            crew.name if crew is not None else "",
            (crew.employee_code or "") if crew is not None else "",
            "",
            "",
            format_total_hours(intervals),
        ]

        if not intervals:
            rows.append(head)
            continue

        for i, iv in enumerate(intervals):
            # entry-level columns stay blank on continuation rows
            row = list(head) if i == 0 else [""] * len(head)
            row[7] = format_clock(iv.time_in)
            row[8] = format_clock(iv.time_out)
            rows.append(row)

    return rows


def generate_workbook(entries: Iterable) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Timesheets"

    for row in build_export_rows(entries):
        ws.append(row)

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="305496", end_color="305496", fill_type="solid")
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")

    for idx, width in enumerate(COLUMN_WIDTHS, start=1):
        ws.column_dimensions[ws.cell(row=1, column=idx).column_letter].width = width

    ws.freeze_panes = "A2"

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()
