from __future__ import annotations

import unittest

from kintai.models import ApprovalStatus, HolidayType, LeaveType, WorkType
from kintai.services.labels import (
    approval_status_label,
    holiday_type_label,
    leave_type_label,
    work_type_label,
)


class LabelTests(unittest.TestCase):
    def test_work_type_labels(self) -> None:
        self.assertEqual(work_type_label(WorkType.REMOTE), "出勤（リモート）")
        self.assertEqual(work_type_label("late-early"), "遅刻＋早退")
        self.assertEqual(work_type_label(None), "")

    def test_leave_and_holiday_labels(self) -> None:
        self.assertEqual(leave_type_label(LeaveType.CONGRATULATION), "慶弔")
        self.assertEqual(leave_type_label(None), "")
        self.assertEqual(holiday_type_label(HolidayType.SATURDAY_WORK), "土曜出勤")

    def test_unknown_approval_status(self) -> None:
        self.assertEqual(approval_status_label(ApprovalStatus.REJECTED), "却下")
        self.assertEqual(approval_status_label("archived"), "不明")


if __name__ == "__main__":
    unittest.main()
