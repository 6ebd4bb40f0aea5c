from __future__ import annotations

from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy.orm import Session

from workledger.models import SalaryRecord
from workledger.services.attendance_calc import parse_month
from workledger.services.payroll import list_salary_records

REGISTER_HEADERS = [
    "Employee",
    "Email",
    "Working Days",
    "Paid Days",
    "Present",
    "Absent",
    "Leave",
    "Week Off",
    "Holiday",
    "Basic",
    "HRA",
    "TA",
    "CEA",
    "Fixed Incentive",
    "Attendance Adj.",
    "Gross",
    "Employee PF",
    "Employee ESI",
    "LWF",
    "Late Penalty",
    "Advance Recovery",
    "Other Deductions",
    "Additions",
    "Total Deductions",
    "Net",
    "Status",
]

HEADER_FILL = PatternFill(fill_type="solid", fgColor="0B4F73")
META_LABEL_FILL = PatternFill(fill_type="solid", fgColor="EAF4F9")
META_VALUE_FILL = PatternFill(fill_type="solid", fgColor="F8FCFF")
ZEBRA_FILL = PatternFill(fill_type="solid", fgColor="F7FBFE")
LOCKED_FILL = PatternFill(fill_type="solid", fgColor="E6F4EA")
SUMMARY_FILL = PatternFill(fill_type="solid", fgColor="E9F1F7")

HEADER_FONT = Font(bold=True, color="FFFFFF")
BOLD_FONT = Font(bold=True, color="0F172A")
TITLE_FONT = Font(bold=True, color="0B4F73", size=14)
MUTED_FONT = Font(color="334155")

THIN_SIDE = Side(style="thin", color="D5E2EC")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)


def _style_header(ws: Worksheet, row: int) -> None:
    for cell in ws[row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet) -> None:
    for column_cells in ws.iter_cols(min_row=1, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        max_len = 0
        col_letter = get_column_letter(column_cells[0].column)
        for cell in column_cells:
            if cell.coordinate in ws.merged_cells:
                continue
            value = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(value))
        ws.column_dimensions[col_letter].width = min(max_len + 2, 45)


def _merge_title(ws: Worksheet, row: int, text: str) -> None:
    ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=len(REGISTER_HEADERS))
    cell = ws.cell(row=row, column=1, value=text)
    cell.font = TITLE_FONT
    cell.alignment = Alignment(horizontal="left", vertical="center")


def _style_metadata_rows(ws: Worksheet, *, start_row: int, end_row: int) -> None:
    for row_idx in range(start_row, end_row + 1):
        label_cell = ws.cell(row=row_idx, column=1)
        value_cell = ws.cell(row=row_idx, column=2)
        label_cell.font = BOLD_FONT
        label_cell.fill = META_LABEL_FILL
        label_cell.border = THIN_BORDER
        value_cell.font = MUTED_FONT
        value_cell.fill = META_VALUE_FILL
        value_cell.border = THIN_BORDER


def _register_row(record: SalaryRecord) -> list[object]:
    details = record.details or {}
    return [
        record.employee_name,
        record.employee_email,
        record.total_working_days,
        record.total_paid_days,
        record.present_days,
        record.absent_days,
        record.leave_days,
        record.weekoff_days,
        record.holiday_days,
        details.get("basic_salary", 0),
        details.get("hra", 0),
        details.get("travelling_allowance", 0),
        details.get("children_education_allowance", 0),
        details.get("fixed_incentive", 0),
        round(record.attendance_adjustments, 2),
        round(record.gross_salary, 2),
        details.get("employee_pf", 0),
        details.get("employee_esi", 0),
        details.get("labour_welfare_employee", 0),
        round(float(details.get("late_penalty", 0)), 2),
        round(float(details.get("advance_recovery", 0)), 2),
        round(float(details.get("other_deductions", 0)), 2),
        round(float(details.get("additions", 0)), 2),
        round(record.total_deductions, 2),
        round(record.net_salary, 2),
        record.status.value.upper(),
    ]


def build_salary_register_xlsx(db: Session, *, month: str) -> bytes:
    parse_month(month)
    records = list_salary_records(db, month=month)

    wb = Workbook()
    ws = wb.active
    ws.title = f"Salary {month}"

    _merge_title(ws, 1, f"Salary Register {month}")
    ws.append(["Month", month])
    ws.append(["Employees", len(records)])
    ws.append(["Locked", sum(1 for record in records if record.locked)])
    _style_metadata_rows(ws, start_row=2, end_row=4)

    header_row = 6
    for col_idx, header in enumerate(REGISTER_HEADERS, start=1):
        ws.cell(row=header_row, column=col_idx, value=header)
    _style_header(ws, header_row)

    data_start_row = header_row + 1
    for offset, record in enumerate(records):
        for col_idx, value in enumerate(_register_row(record), start=1):
            ws.cell(row=data_start_row + offset, column=col_idx, value=value)
    data_end_row = data_start_row + len(records) - 1

    for row_idx in range(data_start_row, data_end_row + 1):
        record = records[row_idx - data_start_row]
        row_fill = LOCKED_FILL if record.locked else (ZEBRA_FILL if row_idx % 2 == 0 else None)
        for col_idx in range(1, len(REGISTER_HEADERS) + 1):
            cell = ws.cell(row=row_idx, column=col_idx)
            cell.border = THIN_BORDER
            if row_fill is not None:
                cell.fill = row_fill
            if isinstance(cell.value, (int, float)):
                cell.alignment = Alignment(horizontal="center", vertical="center")
            else:
                cell.alignment = Alignment(horizontal="left", vertical="center")

    if records:
        ws.auto_filter.ref = f"A{header_row}:{get_column_letter(len(REGISTER_HEADERS))}{data_end_row}"
        total_row = data_end_row + 1
        ws.cell(row=total_row, column=1, value="TOTAL")
        for header in ("Gross", "Total Deductions", "Net"):
            col_idx = REGISTER_HEADERS.index(header) + 1
            column_total = sum(
                float(ws.cell(row=row_idx, column=col_idx).value or 0)
                for row_idx in range(data_start_row, data_end_row + 1)
            )
            ws.cell(row=total_row, column=col_idx, value=round(column_total, 2))
        for col_idx in range(1, len(REGISTER_HEADERS) + 1):
            cell = ws.cell(row=total_row, column=col_idx)
            cell.fill = SUMMARY_FILL
            cell.font = BOLD_FONT
            cell.border = THIN_BORDER
    ws.freeze_panes = f"A{header_row + 1}"
    _auto_width(ws)

    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()
