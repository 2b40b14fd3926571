from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kintai.errors import FORBIDDEN, NOT_FOUND, STATE_CONFLICT
from kintai.models import Approval, ApprovalStatus, MonthlySettings
from kintai.services.results import ActionResult

logger = logging.getLogger("kintai.approvals")


class ApprovalAction(str, enum.Enum):
    REQUEST = "request"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"


@dataclass(frozen=True)
class TransitionCheck:
    allowed: bool
    target: ApprovalStatus | None
    code: str | None
    message: str


# action -> (statuses it may start from, resulting status)
_TRANSITIONS: dict[ApprovalAction, tuple[frozenset[ApprovalStatus], ApprovalStatus]] = {
    ApprovalAction.REQUEST: (
        frozenset({ApprovalStatus.DRAFT, ApprovalStatus.PENDING, ApprovalStatus.REJECTED}),
        ApprovalStatus.PENDING,
    ),
    ApprovalAction.APPROVE: (frozenset({ApprovalStatus.PENDING}), ApprovalStatus.APPROVED),
    ApprovalAction.REJECT: (frozenset({ApprovalStatus.PENDING}), ApprovalStatus.REJECTED),
    ApprovalAction.CANCEL: (frozenset({ApprovalStatus.APPROVED}), ApprovalStatus.DRAFT),
}
_APPROVER_ACTIONS = frozenset({ApprovalAction.APPROVE, ApprovalAction.REJECT, ApprovalAction.CANCEL})

_SUCCESS_MESSAGES = {
    ApprovalAction.REQUEST: "承認申請を送信しました",
    ApprovalAction.APPROVE: "承認しました",
    ApprovalAction.REJECT: "却下しました",
    ApprovalAction.CANCEL: "承認を取り消しました",
}
_CONFLICT_MESSAGES = {
    ApprovalAction.REQUEST: "すでに承認されています",
    ApprovalAction.APPROVE: "承認待ちではないため承認できません",
    ApprovalAction.REJECT: "承認待ちではないため却下できません",
    ApprovalAction.CANCEL: "承認済みではないため取り消せません",
}
_STORAGE_MESSAGES = {
    ApprovalAction.REQUEST: "承認申請に失敗しました",
    ApprovalAction.APPROVE: "承認に失敗しました",
    ApprovalAction.REJECT: "却下に失敗しました",
    ApprovalAction.CANCEL: "承認取り消しに失敗しました",
}


def effective_status(approval: Approval | None) -> ApprovalStatus:
    if approval is None:
        return ApprovalStatus.DRAFT
    return ApprovalStatus(approval.status)


def evaluate_transition(
    current: ApprovalStatus | None,
    action: ApprovalAction,
    *,
    actor_can_approve: bool,
) -> TransitionCheck:
    status = current or ApprovalStatus.DRAFT
    if action in _APPROVER_ACTIONS and not actor_can_approve:
        return TransitionCheck(
            allowed=False,
            target=None,
            code=FORBIDDEN,
            message="承認権限がありません",
        )

    allowed_from, target = _TRANSITIONS[action]
    if status not in allowed_from:
        return TransitionCheck(
            allowed=False,
            target=None,
            code=STATE_CONFLICT,
            message=_CONFLICT_MESSAGES[action],
        )
    return TransitionCheck(allowed=True, target=target, code=None, message=_SUCCESS_MESSAGES[action])


def _month_filter(user_id: str, year: int, month: int):  # type: ignore[no-untyped-def]
    return (
        Approval.user_id == user_id,
        Approval.year == year,
        Approval.month == month,
    )


def get_approval(db: Session, *, user_id: str, year: int, month: int) -> Approval | None:
    return db.scalar(select(Approval).where(*_month_filter(user_id, year, month)))


def get_approval_by_id(db: Session, approval_id: int) -> Approval | None:
    return db.get(Approval, approval_id)


def is_month_editable(db: Session, *, user_id: str, year: int, month: int) -> bool:
    approval = get_approval(db, user_id=user_id, year=year, month=month)
    return effective_status(approval) != ApprovalStatus.APPROVED


def _ensure_month_row(db: Session, *, user_id: str, year: int, month: int) -> None:
    db.execute(
        pg_insert(Approval)
        .values(user_id=user_id, year=year, month=month, status=ApprovalStatus.DRAFT)
        .on_conflict_do_nothing(index_elements=["user_id", "year", "month"])
    )


def ensure_month_editable(db: Session, *, user_id: str, year: int, month: int) -> bool:
    """Editable check for use inside a write transaction.

    A draft approval row is created when the month has none, then held with
    ``FOR SHARE`` until the caller commits. A request or approval for the
    month waits on that lock, so it cannot land between this check and the
    caller's write.
    """
    _ensure_month_row(db, user_id=user_id, year=year, month=month)
    approval = db.scalars(
        select(Approval)
        .where(*_month_filter(user_id, year, month))
        .with_for_update(read=True)
    ).one()
    return effective_status(approval) != ApprovalStatus.APPROVED


def _lock_month_approval(db: Session, *, user_id: str, year: int, month: int) -> Approval:
    _ensure_month_row(db, user_id=user_id, year=year, month=month)
    return db.scalars(
        select(Approval)
        .where(*_month_filter(user_id, year, month))
        .with_for_update()
    ).one()


def _apply_transition(
    approval: Approval,
    action: ApprovalAction,
    *,
    actor_id: str,
    now: datetime,
    reason: str | None,
) -> None:
    if action == ApprovalAction.REQUEST:
        approval.status = ApprovalStatus.PENDING
        approval.requested_at = now
    elif action == ApprovalAction.APPROVE:
        approval.status = ApprovalStatus.APPROVED
        approval.approved_by = actor_id
        approval.approved_at = now
    elif action == ApprovalAction.REJECT:
        approval.status = ApprovalStatus.REJECTED
        approval.approved_by = actor_id
        approval.approved_at = now
        approval.rejection_reason = reason
    elif action == ApprovalAction.CANCEL:
        approval.status = ApprovalStatus.DRAFT
        approval.approved_by = None
        approval.approved_at = None
        approval.rejection_reason = None


def _run_transition(
    db: Session,
    approval: Approval,
    action: ApprovalAction,
    *,
    actor_id: str,
    actor_can_approve: bool,
    now: datetime | None,
    reason: str | None = None,
) -> ActionResult[Approval]:
    approval_id = approval.id
    from_status = effective_status(approval)
    check = evaluate_transition(from_status, action, actor_can_approve=actor_can_approve)
    if not check.allowed:
        db.rollback()
        logger.info(
            "approval_transition_refused",
            extra={
                "approval_id": approval_id,
                "action": action.value,
                "from_status": from_status.value,
                "actor_id": actor_id,
                "code": check.code,
            },
        )
        return ActionResult.failure(check.code or STATE_CONFLICT, check.message, approval)

    _apply_transition(
        approval,
        action,
        actor_id=actor_id,
        now=now or datetime.now(timezone.utc),
        reason=reason,
    )
    db.commit()
    db.refresh(approval)
    logger.info(
        "approval_transition",
        extra={
            "approval_id": approval_id,
            "user_id": approval.user_id,
            "year": approval.year,
            "month": approval.month,
            "action": action.value,
            "from_status": from_status.value,
            "to_status": effective_status(approval).value,
            "actor_id": actor_id,
        },
    )
    return ActionResult.ok(check.message, approval)


def request_approval(
    db: Session,
    *,
    user_id: str,
    year: int,
    month: int,
    now: datetime | None = None,
) -> ActionResult[Approval]:
    try:
        approval = _lock_month_approval(db, user_id=user_id, year=year, month=month)
        return _run_transition(
            db,
            approval,
            ApprovalAction.REQUEST,
            actor_id=user_id,
            actor_can_approve=False,
            now=now,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "approval_storage_failed",
            extra={"action": ApprovalAction.REQUEST.value, "user_id": user_id, "year": year, "month": month},
        )
        return ActionResult.storage_failure(_STORAGE_MESSAGES[ApprovalAction.REQUEST], exc)


def _transition_by_id(
    db: Session,
    *,
    approval_id: int,
    action: ApprovalAction,
    actor_id: str,
    actor_can_approve: bool,
    now: datetime | None,
    reason: str | None = None,
) -> ActionResult[Approval]:
    try:
        approval = db.scalar(select(Approval).where(Approval.id == approval_id).with_for_update())
        if approval is None:
            db.rollback()
            return ActionResult.failure(NOT_FOUND, "承認データが見つかりません")
        return _run_transition(
            db,
            approval,
            action,
            actor_id=actor_id,
            actor_can_approve=actor_can_approve,
            now=now,
            reason=reason,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "approval_storage_failed",
            extra={"action": action.value, "approval_id": approval_id, "actor_id": actor_id},
        )
        return ActionResult.storage_failure(_STORAGE_MESSAGES[action], exc)


def approve(
    db: Session,
    *,
    approval_id: int,
    approver_id: str,
    actor_can_approve: bool,
    now: datetime | None = None,
) -> ActionResult[Approval]:
    return _transition_by_id(
        db,
        approval_id=approval_id,
        action=ApprovalAction.APPROVE,
        actor_id=approver_id,
        actor_can_approve=actor_can_approve,
        now=now,
    )


def reject(
    db: Session,
    *,
    approval_id: int,
    approver_id: str,
    actor_can_approve: bool,
    reason: str | None,
    now: datetime | None = None,
) -> ActionResult[Approval]:
    return _transition_by_id(
        db,
        approval_id=approval_id,
        action=ApprovalAction.REJECT,
        actor_id=approver_id,
        actor_can_approve=actor_can_approve,
        now=now,
        reason=reason,
    )


def cancel_approval(
    db: Session,
    *,
    approval_id: int,
    approver_id: str,
    actor_can_approve: bool,
    now: datetime | None = None,
) -> ActionResult[Approval]:
    return _transition_by_id(
        db,
        approval_id=approval_id,
        action=ApprovalAction.CANCEL,
        actor_id=approver_id,
        actor_can_approve=actor_can_approve,
        now=now,
    )


def list_approvals(
    db: Session,
    *,
    status: ApprovalStatus | None = None,
) -> list[tuple[Approval, MonthlySettings | None]]:
    """Approvals joined with the owner's settings for the same month (name, department)."""
    stmt = select(Approval, MonthlySettings).outerjoin(
        MonthlySettings,
        (MonthlySettings.user_id == Approval.user_id)
        & (MonthlySettings.year == Approval.year)
        & (MonthlySettings.month == Approval.month),
    )
    if status is None:
        stmt = stmt.order_by(Approval.year.desc(), Approval.month.desc(), Approval.id.asc())
    else:
        stmt = stmt.where(Approval.status == status).order_by(
            Approval.requested_at.asc(),
            Approval.id.asc(),
        )
    return [(row[0], row[1]) for row in db.execute(stmt).all()]


def list_pending_approvals(db: Session) -> list[tuple[Approval, MonthlySettings | None]]:
    return list_approvals(db, status=ApprovalStatus.PENDING)
