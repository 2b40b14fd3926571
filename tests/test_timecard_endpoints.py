from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import date, datetime, time, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient

from kintai.db import get_db
from kintai.errors import MONTH_LOCKED, NOT_FOUND, STATE_CONFLICT, STORAGE_ERROR
from kintai.main import app
from kintai.models import AnnualHoliday, Approval, ApprovalStatus, DailyRecord, HolidayType, WorkType
from kintai.security import CurrentActor, require_actor
from kintai.services.monthly import MonthlyReport, build_report_days, summarize_month
from kintai.services.results import ActionResult


class _FakeDB:
    def commit(self) -> None:
        return

    def rollback(self) -> None:
        return


def _override_get_db(fake_db: _FakeDB):
    def _override() -> Generator[_FakeDB, None, None]:
        yield fake_db

    return _override


def _actor(*, is_approver: bool = False):
    def _override() -> CurrentActor:
        return CurrentActor(user_id="boss" if is_approver else "u-1", is_approver=is_approver)

    return _override


def _record() -> DailyRecord:
    return DailyRecord(
        id=5,
        user_id="u-1",
        work_date=date(2024, 6, 3),
        work_type=WorkType.WORK,
        start_time=time(9, 0),
        end_time=time(20, 0),
        late_time=0,
        early_leave_time=0,
        overtime=120,
        night_overtime=0,
        work_pattern=1,
        note=None,
    )


def _approval(status: ApprovalStatus) -> Approval:
    return Approval(
        id=11,
        user_id="u-1",
        year=2024,
        month=6,
        status=status,
        requested_at=datetime(2024, 7, 1, tzinfo=timezone.utc),
        approved_by=None,
        approved_at=None,
        rejection_reason=None,
    )


def _report() -> MonthlyReport:
    records = [_record()]
    return MonthlyReport(
        user_id="u-1",
        year=2024,
        month=6,
        status=ApprovalStatus.DRAFT,
        editable=True,
        settings=None,
        approval=None,
        days=build_report_days(2024, 6, records, {}),
        summary=summarize_month(records, None),
    )


@patch("kintai.routers.common.log_audit")
class TimecardEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        app.dependency_overrides[get_db] = _override_get_db(_FakeDB())
        app.dependency_overrides[require_actor] = _actor()
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    @patch("kintai.routers.timecard.build_monthly_report")
    def test_month_report(self, mock_report, _mock_audit) -> None:
        mock_report.return_value = _report()

        response = self.client.get("/api/timecard/2024/6")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "draft")
        self.assertEqual(body["status_label"], "未申請")
        self.assertTrue(body["editable"])
        self.assertEqual(len(body["days"]), 30)
        self.assertEqual(body["days"][2]["record"]["start_time"], "09:00")
        self.assertEqual(body["summary"]["total_work_minutes"], 600)
        self.assertEqual(body["summary"]["total_overtime_hours"], "2:00")

    def test_invalid_month_is_rejected(self, _mock_audit) -> None:
        response = self.client.get("/api/timecard/2024/13")

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    @patch("kintai.routers.timecard.upsert_daily_record")
    def test_save_record_in_locked_month(self, mock_upsert, mock_audit) -> None:
        mock_upsert.return_value = ActionResult.failure(MONTH_LOCKED, "承認済みのため編集できません")

        response = self.client.put(
            "/api/timecard/records/2024-06-03",
            json={"work_type": "work", "start_time": "09:00", "end_time": "18:00"},
        )

        self.assertEqual(response.status_code, 409)
        error = response.json()["error"]
        self.assertEqual(error["code"], MONTH_LOCKED)
        self.assertEqual(error["message"], "承認済みのため編集できません")
        self.assertFalse(mock_audit.call_args.kwargs["success"])

    @patch("kintai.routers.timecard.upsert_daily_record")
    def test_save_record(self, mock_upsert, mock_audit) -> None:
        mock_upsert.return_value = ActionResult.ok("保存しました", _record())

        response = self.client.put(
            "/api/timecard/records/2024-06-03",
            json={"work_type": "work", "start_time": "09:00", "end_time": "20:00"},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["record"]["overtime"], 120)
        self.assertEqual(mock_audit.call_args.kwargs["action"], "DAILY_RECORD_SAVED")
        self.assertEqual((mock_audit.call_args.kwargs["year"], mock_audit.call_args.kwargs["month"]), (2024, 6))

    def test_save_record_crossing_midnight_is_rejected(self, _mock_audit) -> None:
        response = self.client.put(
            "/api/timecard/records/2024-06-03",
            json={"work_type": "work", "start_time": "22:00", "end_time": "02:00"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")
        self.assertIn("end_time must be greater than or equal to start_time", response.json()["error"]["message"])

    def test_save_record_with_bad_clock_time(self, _mock_audit) -> None:
        response = self.client.put(
            "/api/timecard/records/2024-06-03",
            json={"work_type": "work", "start_time": "25:00"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertIn("start_time", response.json()["error"]["message"])

    @patch("kintai.services.daily_records.get_monthly_settings", return_value=None)
    def test_preview_record(self, _mock_settings, _mock_audit) -> None:
        response = self.client.post(
            "/api/timecard/records/preview",
            json={"work_date": "2024-06-03", "work_type": "work", "start_time": "20:00", "end_time": "23:00"},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["worked_minutes"], 120)
        self.assertEqual(body["night_overtime"], 60)
        self.assertEqual(body["late_time"], 660)
        self.assertEqual(body["pattern"]["start"], "09:00")

    @patch("kintai.routers.timecard.build_monthly_report")
    def test_csv_export(self, mock_report, _mock_audit) -> None:
        mock_report.return_value = _report()

        response = self.client.get("/api/timecard/2024/6/export.csv")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        self.assertIn("filename*=UTF-8''%E5%8B%A4%E5%8B%99%E8%A1%A8_2024", response.headers["content-disposition"])
        self.assertTrue(response.content.startswith(b"\xef\xbb\xbf"))
        lines = response.content.decode("utf-8-sig").split("\n")
        self.assertEqual(len(lines), 31)
        self.assertTrue(lines[3].startswith("2024/6/3,月,出勤,09:00,20:00"))

    @patch("kintai.routers.timecard.request_approval")
    def test_request_approval_when_already_approved(self, mock_request, _mock_audit) -> None:
        mock_request.return_value = ActionResult.failure(
            STATE_CONFLICT,
            "すでに承認されています",
            _approval(ApprovalStatus.APPROVED),
        )

        response = self.client.post("/api/timecard/2024/6/approval-request")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], STATE_CONFLICT)

    @patch("kintai.routers.timecard.request_approval")
    def test_request_approval(self, mock_request, _mock_audit) -> None:
        mock_request.return_value = ActionResult.ok("承認申請を送信しました", _approval(ApprovalStatus.PENDING))

        response = self.client.post("/api/timecard/2024/6/approval-request")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "承認申請を送信しました")
        self.assertEqual(body["approval"]["status_label"], "承認待ち")

    @patch("kintai.routers.holidays.delete_annual_holiday")
    def test_delete_unknown_holiday(self, mock_delete, _mock_audit) -> None:
        mock_delete.return_value = ActionResult.failure(NOT_FOUND, "休日設定が見つかりません")

        response = self.client.delete("/api/holidays/2024-05-03")

        self.assertEqual(response.status_code, 404)

    @patch("kintai.routers.holidays.upsert_annual_holiday")
    def test_save_holiday(self, mock_upsert, _mock_audit) -> None:
        mock_upsert.return_value = ActionResult.ok(
            "休日を保存しました",
            AnnualHoliday(
                id=2,
                user_id="u-1",
                year=2024,
                holiday_date=date(2024, 5, 3),
                holiday_type=HolidayType.LEGAL_HOLIDAY,
                note="憲法記念日",
            ),
        )

        response = self.client.put("/api/holidays/2024-05-03", json={"holiday_type": "legal-holiday", "note": "憲法記念日"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["holiday_type_label"], "法定")


@patch("kintai.routers.common.log_audit")
class ApprovalEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        app.dependency_overrides[get_db] = _override_get_db(_FakeDB())
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def test_non_approver_is_forbidden(self, _mock_audit) -> None:
        app.dependency_overrides[require_actor] = _actor(is_approver=False)

        response = self.client.post("/api/approvals/11/approve")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")

    @patch("kintai.routers.approvals.approve")
    def test_approve(self, mock_approve, _mock_audit) -> None:
        app.dependency_overrides[require_actor] = _actor(is_approver=True)
        approval = _approval(ApprovalStatus.APPROVED)
        approval.approved_by = "boss"
        mock_approve.return_value = ActionResult.ok("承認しました", approval)

        response = self.client.post("/api/approvals/11/approve")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["approval"]["approved_by"], "boss")
        self.assertEqual(mock_approve.call_args.kwargs["approver_id"], "boss")
        self.assertTrue(mock_approve.call_args.kwargs["actor_can_approve"])

    @patch("kintai.routers.approvals.reject")
    def test_reject_requires_reason(self, mock_reject, _mock_audit) -> None:
        app.dependency_overrides[require_actor] = _actor(is_approver=True)

        response = self.client.post("/api/approvals/11/reject", json={"reason": ""})

        self.assertEqual(response.status_code, 422)
        mock_reject.assert_not_called()

    @patch("kintai.routers.approvals.cancel_approval")
    def test_storage_failure_maps_to_503(self, mock_cancel, _mock_audit) -> None:
        app.dependency_overrides[require_actor] = _actor(is_approver=True)
        mock_cancel.return_value = ActionResult(
            success=False,
            message="承認取り消しに失敗しました: timeout",
            code=STORAGE_ERROR,
        )

        response = self.client.post("/api/approvals/11/cancel")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["error"]["code"], STORAGE_ERROR)

    @patch("kintai.routers.approvals.list_approvals")
    def test_list_pending(self, mock_list, _mock_audit) -> None:
        app.dependency_overrides[require_actor] = _actor(is_approver=True)
        mock_list.return_value = [(_approval(ApprovalStatus.PENDING), None)]

        response = self.client.get("/api/approvals", params={"status": "pending"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()[0]["status"], "pending")
        self.assertEqual(mock_list.call_args.kwargs["status"], ApprovalStatus.PENDING)

    def test_missing_token(self, _mock_audit) -> None:
        response = self.client.get("/api/approvals")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")
        self.assertIn("X-Request-Id", response.headers)


class HealthEndpointTests(unittest.TestCase):
    def test_health_reports_schema_guard_state(self) -> None:
        response = TestClient(app).get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertIn("schema_guard", response.json())


if __name__ == "__main__":
    unittest.main()
