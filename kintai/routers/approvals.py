from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.orm import Session

from kintai.db import get_db
from kintai.errors import ApiError
from kintai.models import Approval, ApprovalStatus
from kintai.routers.common import approval_read, audit_action, monthly_report_response, unwrap
from kintai.schemas import ApprovalActionResponse, ApprovalRead, ApprovalRejectRequest, MonthlyReportResponse
from kintai.security import CurrentActor, require_approver
from kintai.services.approvals import (
    approve,
    cancel_approval,
    get_approval_by_id,
    list_approvals,
    reject,
)
from kintai.services.monthly import build_monthly_report
from kintai.services.results import ActionResult

router = APIRouter(prefix="/api/approvals", tags=["approvals"])


@router.get("", response_model=list[ApprovalRead])
def get_approvals(
    status: ApprovalStatus | None = Query(default=None),
    _actor: CurrentActor = Depends(require_approver),
    db: Session = Depends(get_db),
) -> list[ApprovalRead]:
    return [approval_read(approval, settings) for approval, settings in list_approvals(db, status=status)]


@router.get("/{approval_id}/report", response_model=MonthlyReportResponse)
def get_approval_report(
    approval_id: int = Path(..., ge=1),
    _actor: CurrentActor = Depends(require_approver),
    db: Session = Depends(get_db),
) -> MonthlyReportResponse:
    approval = get_approval_by_id(db, approval_id)
    if approval is None:
        raise ApiError(status_code=404, code="NOT_FOUND", message="承認データが見つかりません")
    report = build_monthly_report(db, user_id=approval.user_id, year=approval.year, month=approval.month)
    return monthly_report_response(report)


def _respond(
    db: Session,
    request: Request,
    actor: CurrentActor,
    *,
    approval_id: int,
    action: str,
    result: ActionResult[Approval],
) -> ApprovalActionResponse:
    audit_action(
        db,
        request,
        actor,
        action=action,
        success=result.success,
        entity_type="approval",
        entity_id=str(approval_id),
        year=result.value.year if result.value is not None else None,
        month=result.value.month if result.value is not None else None,
        details={"code": result.code} if not result.success else None,
    )
    approval = unwrap(result)
    return ApprovalActionResponse(ok=True, message=result.message, approval=approval_read(approval))


@router.post("/{approval_id}/approve", response_model=ApprovalActionResponse)
def approve_month(
    request: Request,
    approval_id: int = Path(..., ge=1),
    actor: CurrentActor = Depends(require_approver),
    db: Session = Depends(get_db),
) -> ApprovalActionResponse:
    result = approve(
        db,
        approval_id=approval_id,
        approver_id=actor.user_id,
        actor_can_approve=actor.can_approve,
    )
    return _respond(db, request, actor, approval_id=approval_id, action="APPROVAL_APPROVED", result=result)


@router.post("/{approval_id}/reject", response_model=ApprovalActionResponse)
def reject_month(
    payload: ApprovalRejectRequest,
    request: Request,
    approval_id: int = Path(..., ge=1),
    actor: CurrentActor = Depends(require_approver),
    db: Session = Depends(get_db),
) -> ApprovalActionResponse:
    result = reject(
        db,
        approval_id=approval_id,
        approver_id=actor.user_id,
        actor_can_approve=actor.can_approve,
        reason=payload.reason,
    )
    return _respond(db, request, actor, approval_id=approval_id, action="APPROVAL_REJECTED", result=result)


@router.post("/{approval_id}/cancel", response_model=ApprovalActionResponse)
def cancel_month(
    request: Request,
    approval_id: int = Path(..., ge=1),
    actor: CurrentActor = Depends(require_approver),
    db: Session = Depends(get_db),
) -> ApprovalActionResponse:
    result = cancel_approval(
        db,
        approval_id=approval_id,
        approver_id=actor.user_id,
        actor_can_approve=actor.can_approve,
    )
    return _respond(db, request, actor, approval_id=approval_id, action="APPROVAL_CANCELLED", result=result)
