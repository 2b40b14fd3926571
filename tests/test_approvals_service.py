from __future__ import annotations

import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError

from kintai.errors import FORBIDDEN, NOT_FOUND, STATE_CONFLICT, STORAGE_ERROR
from kintai.models import Approval, ApprovalStatus
from kintai.services.approvals import (
    ApprovalAction,
    approve,
    cancel_approval,
    effective_status,
    ensure_month_editable,
    evaluate_transition,
    is_month_editable,
    reject,
    request_approval,
)

NOW = datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc)


class _FakeDB:
    def __init__(self, approval: Approval | None = None, *, fail: bool = False):
        self.approval = approval
        self.fail = fail
        self.commits = 0
        self.rollbacks = 0

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        if self.fail:
            raise SQLAlchemyError("connection lost")
        return self.approval

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def refresh(self, _obj):  # type: ignore[no-untyped-def]
        return


class _StatementLog:
    def __init__(self, approval: Approval):
        self.approval = approval
        self.statements: list[str] = []

    def execute(self, statement):  # type: ignore[no-untyped-def]
        self.statements.append(str(statement.compile(dialect=postgresql.dialect())))

    def scalars(self, statement):  # type: ignore[no-untyped-def]
        self.statements.append(str(statement.compile(dialect=postgresql.dialect())))
        return self

    def one(self) -> Approval:
        return self.approval


def _approval(status: ApprovalStatus, **values) -> Approval:  # type: ignore[no-untyped-def]
    return Approval(id=11, user_id="u-1", year=2024, month=6, status=status, **values)


class TransitionTableTests(unittest.TestCase):
    def test_request_allowed_from_draft_pending_and_rejected(self) -> None:
        for status in (None, ApprovalStatus.DRAFT, ApprovalStatus.PENDING, ApprovalStatus.REJECTED):
            check = evaluate_transition(status, ApprovalAction.REQUEST, actor_can_approve=False)
            self.assertTrue(check.allowed, status)
            self.assertEqual(check.target, ApprovalStatus.PENDING)

    def test_request_refused_once_approved(self) -> None:
        check = evaluate_transition(ApprovalStatus.APPROVED, ApprovalAction.REQUEST, actor_can_approve=False)

        self.assertFalse(check.allowed)
        self.assertEqual(check.code, STATE_CONFLICT)
        self.assertEqual(check.message, "すでに承認されています")

    def test_approver_actions_need_permission(self) -> None:
        for action in (ApprovalAction.APPROVE, ApprovalAction.REJECT, ApprovalAction.CANCEL):
            check = evaluate_transition(ApprovalStatus.PENDING, action, actor_can_approve=False)
            self.assertFalse(check.allowed)
            self.assertEqual(check.code, FORBIDDEN)

    def test_approve_and_reject_only_from_pending(self) -> None:
        for action in (ApprovalAction.APPROVE, ApprovalAction.REJECT):
            self.assertTrue(evaluate_transition(ApprovalStatus.PENDING, action, actor_can_approve=True).allowed)
            for status in (ApprovalStatus.DRAFT, ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
                check = evaluate_transition(status, action, actor_can_approve=True)
                self.assertFalse(check.allowed)
                self.assertEqual(check.code, STATE_CONFLICT)

    def test_cancel_only_from_approved(self) -> None:
        check = evaluate_transition(ApprovalStatus.APPROVED, ApprovalAction.CANCEL, actor_can_approve=True)
        self.assertTrue(check.allowed)
        self.assertEqual(check.target, ApprovalStatus.DRAFT)

        refused = evaluate_transition(ApprovalStatus.PENDING, ApprovalAction.CANCEL, actor_can_approve=True)
        self.assertFalse(refused.allowed)

    def test_effective_status_defaults_to_draft(self) -> None:
        self.assertEqual(effective_status(None), ApprovalStatus.DRAFT)
        self.assertEqual(effective_status(_approval(ApprovalStatus.PENDING)), ApprovalStatus.PENDING)


class ApprovalServiceTests(unittest.TestCase):
    @patch("kintai.services.approvals._lock_month_approval")
    def test_request_without_existing_row_becomes_pending(self, mock_lock) -> None:
        approval = _approval(ApprovalStatus.DRAFT)
        mock_lock.return_value = approval
        db = _FakeDB()

        result = request_approval(db, user_id="u-1", year=2024, month=6, now=NOW)  # type: ignore[arg-type]

        self.assertTrue(result.success)
        self.assertEqual(result.message, "承認申請を送信しました")
        self.assertEqual(approval.status, ApprovalStatus.PENDING)
        self.assertEqual(approval.requested_at, NOW)
        self.assertEqual(db.commits, 1)

    @patch("kintai.services.approvals._lock_month_approval")
    def test_request_while_approved_leaves_state_unchanged(self, mock_lock) -> None:
        approved_at = datetime(2024, 6, 30, tzinfo=timezone.utc)
        approval = _approval(ApprovalStatus.APPROVED, approved_by="boss", approved_at=approved_at)
        mock_lock.return_value = approval
        db = _FakeDB()

        result = request_approval(db, user_id="u-1", year=2024, month=6, now=NOW)  # type: ignore[arg-type]

        self.assertFalse(result.success)
        self.assertEqual(result.code, STATE_CONFLICT)
        self.assertEqual(approval.status, ApprovalStatus.APPROVED)
        self.assertEqual(approval.approved_by, "boss")
        self.assertEqual(approval.approved_at, approved_at)
        self.assertEqual(db.commits, 0)
        self.assertEqual(db.rollbacks, 1)

    @patch("kintai.services.approvals._lock_month_approval")
    def test_request_storage_failure_is_reported(self, mock_lock) -> None:
        mock_lock.side_effect = SQLAlchemyError("deadlock detected")
        db = _FakeDB()

        result = request_approval(db, user_id="u-1", year=2024, month=6)  # type: ignore[arg-type]

        self.assertFalse(result.success)
        self.assertEqual(result.code, STORAGE_ERROR)
        self.assertIn("deadlock detected", result.message)
        self.assertEqual(db.rollbacks, 1)

    def test_approve_pending_month(self) -> None:
        approval = _approval(ApprovalStatus.PENDING, requested_at=NOW)
        db = _FakeDB(approval)

        result = approve(db, approval_id=11, approver_id="boss", actor_can_approve=True, now=NOW)  # type: ignore[arg-type]

        self.assertTrue(result.success)
        self.assertEqual(result.message, "承認しました")
        self.assertEqual(approval.status, ApprovalStatus.APPROVED)
        self.assertEqual(approval.approved_by, "boss")
        self.assertEqual(approval.approved_at, NOW)

    def test_reject_records_reason(self) -> None:
        approval = _approval(ApprovalStatus.PENDING)
        db = _FakeDB(approval)

        result = reject(  # type: ignore[arg-type]
            db,
            approval_id=11,
            approver_id="boss",
            actor_can_approve=True,
            reason="6/12 の退勤時刻を確認してください",
            now=NOW,
        )

        self.assertTrue(result.success)
        self.assertEqual(result.message, "却下しました")
        self.assertEqual(approval.status, ApprovalStatus.REJECTED)
        self.assertEqual(approval.rejection_reason, "6/12 の退勤時刻を確認してください")

    def test_cancel_clears_approval_metadata(self) -> None:
        approval = _approval(
            ApprovalStatus.APPROVED,
            approved_by="boss",
            approved_at=NOW,
            rejection_reason="old",
        )
        db = _FakeDB(approval)

        result = cancel_approval(db, approval_id=11, approver_id="boss", actor_can_approve=True)  # type: ignore[arg-type]

        self.assertTrue(result.success)
        self.assertEqual(result.message, "承認を取り消しました")
        self.assertEqual(approval.status, ApprovalStatus.DRAFT)
        self.assertIsNone(approval.approved_by)
        self.assertIsNone(approval.approved_at)
        self.assertIsNone(approval.rejection_reason)

    def test_approve_without_permission_is_forbidden(self) -> None:
        approval = _approval(ApprovalStatus.PENDING)
        db = _FakeDB(approval)

        result = approve(db, approval_id=11, approver_id="u-2", actor_can_approve=False)  # type: ignore[arg-type]

        self.assertFalse(result.success)
        self.assertEqual(result.code, FORBIDDEN)
        self.assertEqual(approval.status, ApprovalStatus.PENDING)

    def test_unknown_approval_id(self) -> None:
        db = _FakeDB(None)

        result = approve(db, approval_id=99, approver_id="boss", actor_can_approve=True)  # type: ignore[arg-type]

        self.assertFalse(result.success)
        self.assertEqual(result.code, NOT_FOUND)

    def test_transition_storage_failure(self) -> None:
        db = _FakeDB(fail=True)

        result = approve(db, approval_id=11, approver_id="boss", actor_can_approve=True)  # type: ignore[arg-type]

        self.assertFalse(result.success)
        self.assertEqual(result.code, STORAGE_ERROR)
        self.assertTrue(result.message.startswith("承認に失敗しました"))

    def test_month_editable_unless_approved(self) -> None:
        for status, expected in (
            (ApprovalStatus.DRAFT, True),
            (ApprovalStatus.PENDING, True),
            (ApprovalStatus.REJECTED, True),
            (ApprovalStatus.APPROVED, False),
        ):
            db = _FakeDB(_approval(status))
            self.assertEqual(is_month_editable(db, user_id="u-1", year=2024, month=6), expected)  # type: ignore[arg-type]

        self.assertTrue(is_month_editable(_FakeDB(None), user_id="u-1", year=2024, month=6))  # type: ignore[arg-type]


class MonthLockTests(unittest.TestCase):
    def test_missing_row_is_created_then_share_locked(self) -> None:
        db = _StatementLog(_approval(ApprovalStatus.DRAFT))

        editable = ensure_month_editable(db, user_id="u-1", year=2024, month=6)  # type: ignore[arg-type]

        self.assertTrue(editable)
        self.assertEqual(len(db.statements), 2)
        insert_sql, lock_sql = db.statements
        self.assertTrue(insert_sql.startswith("INSERT INTO approvals"))
        self.assertIn("ON CONFLICT (user_id, year, month) DO NOTHING", insert_sql)
        self.assertTrue(lock_sql.startswith("SELECT"))
        self.assertTrue(lock_sql.rstrip().endswith("FOR SHARE"))

    def test_approved_month_is_not_editable(self) -> None:
        db = _StatementLog(_approval(ApprovalStatus.APPROVED))

        self.assertFalse(ensure_month_editable(db, user_id="u-1", year=2024, month=6))  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
