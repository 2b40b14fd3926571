import unittest
from datetime import date, time
from decimal import Decimal
from io import BytesIO

from openpyxl import load_workbook

from kintai.models import ApprovalStatus, DailyRecord, HolidayType, LeaveType, MonthlySettings, WorkType
from kintai.services.exports import (
    CSV_HEADERS,
    build_month_csv,
    build_month_csv_bytes,
    build_month_xlsx_bytes,
    csv_filename,
    parse_month_csv,
)
from kintai.services.monthly import MonthlyReport, build_report_days, summarize_month


def _records() -> list[DailyRecord]:
    return [
        DailyRecord(
            user_id="u-1",
            work_date=date(2024, 2, 1),
            work_type=WorkType.WORK,
            start_time=time(9, 0),
            end_time=time(20, 0),
            late_time=0,
            early_leave_time=0,
            overtime=120,
            night_overtime=0,
            work_pattern=1,
            note=None,
        ),
        DailyRecord(
            user_id="u-1",
            work_date=date(2024, 2, 2),
            work_type=WorkType.LATE,
            start_time=time(9, 30),
            end_time=time(18, 0),
            late_time=30,
            early_leave_time=0,
            overtime=0,
            night_overtime=0,
            work_pattern=1,
            note='電車遅延 "中央線"',
        ),
        DailyRecord(
            user_id="u-1",
            work_date=date(2024, 2, 5),
            work_type=WorkType.WORK,
            start_time=None,
            end_time=None,
            late_time=0,
            early_leave_time=0,
            overtime=0,
            night_overtime=0,
            leave_type=LeaveType.PAID,
            work_pattern=1,
            note="有休, 午前",
        ),
    ]


class CsvExportTests(unittest.TestCase):
    def test_layout(self) -> None:
        content = build_month_csv(_records(), 2024, 2)
        lines = content.split("\n")

        self.assertEqual(len(lines), 29 + 1)
        self.assertEqual(lines[0], ",".join(CSV_HEADERS))
        self.assertEqual(lines[1], '2024/2/1,木,出勤,09:00,20:00,,,120分,,,""')
        self.assertEqual(lines[2], '2024/2/2,金,遅刻,09:30,18:00,30分,,,,,"電車遅延 ""中央線"""')
        self.assertEqual(lines[3], '2024/2/3,土,,,,,,,,,""')
        self.assertEqual(lines[5], '2024/2/5,月,出勤,,,,,,,有休,"有休, 午前"')
        self.assertFalse(content.endswith("\n"))

    def test_bytes_carry_bom(self) -> None:
        payload = build_month_csv_bytes(_records(), 2024, 2)

        self.assertTrue(payload.startswith(b"\xef\xbb\xbf"))
        self.assertIn("日付".encode("utf-8"), payload)

    def test_filename(self) -> None:
        self.assertEqual(csv_filename("勤務表", 2024, 2), "勤務表_2024年2月.csv")

    def test_round_trip_preserves_days(self) -> None:
        payload = build_month_csv_bytes(_records(), 2024, 2).decode("utf-8")

        rows = parse_month_csv(payload)

        self.assertEqual(len(rows), 29)
        self.assertEqual(rows[0].work_type, WorkType.WORK)
        self.assertEqual((rows[0].start_time, rows[0].end_time), ("09:00", "20:00"))
        self.assertEqual(rows[0].overtime, 120)
        self.assertEqual(rows[1].work_type, WorkType.LATE)
        self.assertEqual(rows[1].late_time, 30)
        self.assertEqual(rows[1].note, '電車遅延 "中央線"')
        self.assertIsNone(rows[2].work_type)
        self.assertEqual(rows[4].leave_type, LeaveType.PAID)
        self.assertEqual(rows[4].note, "有休, 午前")

    def test_parse_rejects_foreign_header(self) -> None:
        with self.assertRaises(ValueError):
            parse_month_csv("a,b,c\n1,2,3")


class XlsxExportTests(unittest.TestCase):
    def test_workbook_contains_every_day_and_summary(self) -> None:
        records = _records()
        settings = MonthlySettings(
            user_id="u-1",
            year=2024,
            month=2,
            name="山田 太郎",
            department="開発部",
            standard_hours=Decimal("8"),
        )
        report = MonthlyReport(
            user_id="u-1",
            year=2024,
            month=2,
            status=ApprovalStatus.PENDING,
            editable=True,
            settings=settings,
            approval=None,
            days=build_report_days(2024, 2, records, {date(2024, 2, 11): HolidayType.LEGAL_HOLIDAY}),
            summary=summarize_month(records, settings),
        )

        payload = build_month_xlsx_bytes(report)
        ws = load_workbook(BytesIO(payload)).active

        values = [cell.value for row in ws.iter_rows() for cell in row if cell.value is not None]
        self.assertIn("山田 太郎", values)
        self.assertIn("承認待ち", values)
        self.assertIn("日付", values)
        self.assertIn("法定", values)
        self.assertIn("出勤日数", values)
        self.assertEqual(ws.title, "2024-02")


if __name__ == "__main__":
    unittest.main()
