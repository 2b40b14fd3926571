from __future__ import annotations

import csv
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from io import BytesIO, StringIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from kintai.models import DailyRecord, LeaveType, WorkType
from kintai.services.labels import (
    LEAVE_TYPE_LABELS,
    WORK_TYPE_LABELS,
    approval_status_label,
    holiday_type_label,
    leave_type_label,
    work_type_label,
)
from kintai.services.monthly import MonthlyReport
from kintai.services.time_math import (
    TimeInput,
    days_in_month,
    is_present,
    to_minutes,
    to_time_string,
    weekday_label,
)

CSV_HEADERS = (
    "日付",
    "曜日",
    "勤務種類",
    "出勤時刻",
    "退勤時刻",
    "遅刻時間",
    "早退時間",
    "残業時間",
    "深夜残業",
    "休暇種類",
    "補足",
)
CSV_BOM = "\ufeff"
MINUTES_SUFFIX = "分"

HEADER_FILL = PatternFill(fill_type="solid", fgColor="0B4F73")
META_LABEL_FILL = PatternFill(fill_type="solid", fgColor="EAF4F9")
WEEKEND_FILL = PatternFill(fill_type="solid", fgColor="F7FBFE")
HOLIDAY_FILL = PatternFill(fill_type="solid", fgColor="FDE2E4")
SUMMARY_FILL = PatternFill(fill_type="solid", fgColor="E9F1F7")

HEADER_FONT = Font(bold=True, color="FFFFFF")
BOLD_FONT = Font(bold=True, color="0F172A")
TITLE_FONT = Font(bold=True, color="0B4F73", size=14)

THIN_SIDE = Side(style="thin", color="CBD5E1")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)

_WORK_TYPES_BY_LABEL = {label: WorkType(code) for code, label in WORK_TYPE_LABELS.items()}
_LEAVE_TYPES_BY_LABEL = {label: LeaveType(code) for code, label in LEAVE_TYPE_LABELS.items()}


@dataclass(frozen=True)
class ParsedCsvRow:
    work_date: date
    weekday: str
    work_type: WorkType | None
    start_time: str
    end_time: str
    late_time: int
    early_leave_time: int
    overtime: int
    night_overtime: int
    leave_type: LeaveType | None
    note: str


def _time_cell(value: TimeInput) -> str:
    if not is_present(value):
        return ""
    minutes = to_minutes(value)
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _minutes_cell(value: int | None) -> str:
    return f"{value}{MINUTES_SUFFIX}" if value else ""


def _quote(value: str | None) -> str:
    return '"' + (value or "").replace('"', '""') + '"'


def _csv_row(year: int, month: int, day: int, record: DailyRecord | None) -> str:
    weekday = weekday_label(date(year, month, day))
    if record is None:
        cells = [f"{year}/{month}/{day}", weekday, "", "", "", "", "", "", "", "", _quote(None)]
    else:
        cells = [
            f"{year}/{month}/{day}",
            weekday,
            work_type_label(record.work_type),
            _time_cell(record.start_time),
            _time_cell(record.end_time),
            _minutes_cell(record.late_time),
            _minutes_cell(record.early_leave_time),
            _minutes_cell(record.overtime),
            _minutes_cell(record.night_overtime),
            leave_type_label(record.leave_type),
            _quote(record.note),
        ]
    return ",".join(cells)


def build_month_csv(records: Iterable[DailyRecord], year: int, month: int) -> str:
    """One header line plus one line per calendar day, joined with ``\\n``."""
    records_by_day = {record.work_date.day: record for record in records}
    rows = [",".join(CSV_HEADERS)]
    for day in range(1, days_in_month(year, month) + 1):
        rows.append(_csv_row(year, month, day, records_by_day.get(day)))
    return "\n".join(rows)


def build_month_csv_bytes(records: Iterable[DailyRecord], year: int, month: int) -> bytes:
    return (CSV_BOM + build_month_csv(records, year, month)).encode("utf-8")


def csv_filename(label: str, year: int, month: int) -> str:
    return f"{label}_{year}年{month}月.csv"


def xlsx_filename(label: str, year: int, month: int) -> str:
    return f"{label}_{year}年{month}月.xlsx"


def _parse_minutes(cell: str) -> int:
    value = cell.strip()
    if not value:
        return 0
    if value.endswith(MINUTES_SUFFIX):
        value = value[: -len(MINUTES_SUFFIX)]
    return int(value)


def parse_month_csv(content: str) -> list[ParsedCsvRow]:
    if content.startswith(CSV_BOM):
        content = content[len(CSV_BOM) :]
    reader = csv.reader(StringIO(content))
    header = next(reader, None)
    if header is None or tuple(header) != CSV_HEADERS:
        raise ValueError("Unexpected CSV header")

    rows: list[ParsedCsvRow] = []
    for cells in reader:
        if not cells:
            continue
        if len(cells) != len(CSV_HEADERS):
            raise ValueError(f"Expected {len(CSV_HEADERS)} columns, got {len(cells)}")
        year_str, month_str, day_str = cells[0].split("/")
        rows.append(
            ParsedCsvRow(
                work_date=date(int(year_str), int(month_str), int(day_str)),
                weekday=cells[1],
                work_type=_WORK_TYPES_BY_LABEL.get(cells[2]),
                start_time=cells[3],
                end_time=cells[4],
                late_time=_parse_minutes(cells[5]),
                early_leave_time=_parse_minutes(cells[6]),
                overtime=_parse_minutes(cells[7]),
                night_overtime=_parse_minutes(cells[8]),
                leave_type=_LEAVE_TYPES_BY_LABEL.get(cells[9]),
                note=cells[10],
            )
        )
    return rows


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
        ws.column_dimensions[col_letter].width = min(max_len * 2 + 2, 45)


def _append_metadata(ws: Worksheet, report: MonthlyReport) -> None:
    settings = report.settings
    rows = [
        ("氏名", settings.name if settings is not None else None),
        ("部署", settings.department if settings is not None else None),
        ("所定労働時間", float(settings.standard_hours) if settings is not None else None),
        ("承認状況", approval_status_label(report.status)),
    ]
    for label, value in rows:
        ws.append([label, value if value is not None else ""])
        label_cell = ws.cell(row=ws.max_row, column=1)
        label_cell.font = BOLD_FONT
        label_cell.fill = META_LABEL_FILL
        label_cell.border = THIN_BORDER


def _append_summary(ws: Worksheet, report: MonthlyReport) -> None:
    summary = report.summary
    ws.append([])
    rows = [
        ("出勤日数", str(summary.work_days)),
        ("総労働時間", to_time_string(summary.total_work_minutes)),
        ("残業時間", to_time_string(summary.total_overtime)),
        ("深夜残業", to_time_string(summary.night_overtime)),
        ("法定休日労働", to_time_string(summary.legal_holiday_overtime)),
        ("法定外休日労働", to_time_string(summary.extra_holiday_overtime)),
    ]
    for label, value in rows:
        ws.append([label, value])
        label_cell = ws.cell(row=ws.max_row, column=1)
        value_cell = ws.cell(row=ws.max_row, column=2)
        label_cell.font = BOLD_FONT
        label_cell.fill = SUMMARY_FILL
        label_cell.border = THIN_BORDER
        value_cell.border = THIN_BORDER
        value_cell.alignment = Alignment(horizontal="center", vertical="center")


def build_month_xlsx_bytes(report: MonthlyReport) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = f"{report.year}-{report.month:02d}"

    ws.append([f"勤務表 {report.year}年{report.month}月"])
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(CSV_HEADERS))
    ws.cell(row=1, column=1).font = TITLE_FONT
    _append_metadata(ws, report)
    ws.append([])

    ws.append(list(CSV_HEADERS))
    header_row = ws.max_row
    _style_header(ws, header_row)
    ws.freeze_panes = f"A{header_row + 1}"

    for item in report.days:
        record = item.record
        if record is None:
            values = [item.day, item.weekday, "", "", "", None, None, None, None, "", ""]
        else:
            values = [
                item.day,
                item.weekday,
                work_type_label(record.work_type),
                _time_cell(record.start_time),
                _time_cell(record.end_time),
                record.late_time or None,
                record.early_leave_time or None,
                record.overtime or None,
                record.night_overtime or None,
                leave_type_label(record.leave_type),
                record.note or "",
            ]
        ws.append(values)
        row_idx = ws.max_row
        ws.cell(row=row_idx, column=1).number_format = "yyyy/m/d"
        if item.holiday_type is not None:
            row_fill = HOLIDAY_FILL
        elif item.is_saturday or item.is_sunday:
            row_fill = WEEKEND_FILL
        else:
            row_fill = None
        for col_idx in range(1, len(CSV_HEADERS) + 1):
            cell = ws.cell(row=row_idx, column=col_idx)
            cell.border = THIN_BORDER
            if row_fill is not None:
                cell.fill = row_fill
        if item.holiday_type is not None and record is None:
            ws.cell(row=row_idx, column=11, value=holiday_type_label(item.holiday_type))

    _append_summary(ws, report)
    _auto_width(ws)

    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()
