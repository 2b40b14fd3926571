from __future__ import annotations

from typing import Any, TypeVar
from urllib.parse import quote

from fastapi import Request
from sqlalchemy.orm import Session

from kintai.audit import log_audit
from kintai.errors import ApiError, get_request_id
from kintai.models import Approval, MonthlySettings
from kintai.schemas import (
    ApprovalRead,
    MonthlyReportDay,
    MonthlyReportResponse,
    MonthlySummaryRead,
)
from kintai.security import CurrentActor
from kintai.services.daily_records import daily_record_read
from kintai.services.labels import approval_status_label
from kintai.services.monthly import MonthlyReport, MonthlySummary
from kintai.services.monthly_settings import monthly_settings_read
from kintai.services.results import ActionResult
from kintai.services.time_math import to_time_string

T = TypeVar("T")


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def audit_action(
    db: Session,
    request: Request,
    actor: CurrentActor,
    *,
    action: str,
    success: bool,
    entity_type: str,
    entity_id: str,
    year: int | None = None,
    month: int | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    log_audit(
        db,
        actor_type=actor.audit_actor_type,
        actor_id=actor.user_id,
        action=action,
        success=success,
        entity_type=entity_type,
        entity_id=entity_id,
        year=year,
        month=month,
        ip=client_ip(request),
        user_agent=user_agent(request),
        details=details,
        request_id=get_request_id(request),
    )


def raise_for_failure(result: ActionResult[Any]) -> None:
    if not result.success:
        raise ApiError.from_failure(result.code or "REQUEST_FAILED", result.message)


def unwrap(result: ActionResult[T]) -> T:
    raise_for_failure(result)
    if result.value is None:
        raise ApiError(status_code=500, code="INTERNAL_ERROR", message="Operation returned no data.")
    return result.value


def attachment_disposition(filename: str, fallback: str) -> str:
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def approval_read(approval: Approval, settings: MonthlySettings | None = None) -> ApprovalRead:
    return ApprovalRead(
        id=approval.id,
        user_id=approval.user_id,
        year=approval.year,
        month=approval.month,
        status=approval.status,
        status_label=approval_status_label(approval.status),
        requested_at=approval.requested_at,
        approved_by=approval.approved_by,
        approved_at=approval.approved_at,
        rejection_reason=approval.rejection_reason,
        name=settings.name if settings is not None else None,
        department=settings.department if settings is not None else None,
    )


def summary_read(summary: MonthlySummary) -> MonthlySummaryRead:
    return MonthlySummaryRead(
        work_days=summary.work_days,
        total_work_minutes=summary.total_work_minutes,
        total_overtime=summary.total_overtime,
        night_overtime=summary.night_overtime,
        legal_holiday_overtime=summary.legal_holiday_overtime,
        extra_holiday_overtime=summary.extra_holiday_overtime,
        total_work_hours=to_time_string(summary.total_work_minutes),
        total_overtime_hours=to_time_string(summary.total_overtime),
        night_overtime_hours=to_time_string(summary.night_overtime),
        legal_holiday_overtime_hours=to_time_string(summary.legal_holiday_overtime),
        extra_holiday_overtime_hours=to_time_string(summary.extra_holiday_overtime),
    )


def monthly_report_response(report: MonthlyReport) -> MonthlyReportResponse:
    return MonthlyReportResponse(
        user_id=report.user_id,
        year=report.year,
        month=report.month,
        status=report.status,
        status_label=approval_status_label(report.status),
        editable=report.editable,
        settings=monthly_settings_read(report.settings) if report.settings is not None else None,
        approval=approval_read(report.approval, report.settings) if report.approval is not None else None,
        days=[
            MonthlyReportDay(
                date=item.day,
                weekday=item.weekday,
                is_saturday=item.is_saturday,
                is_sunday=item.is_sunday,
                holiday_type=item.holiday_type,
                default_work_type=item.default_work_type,
                record=daily_record_read(item.record) if item.record is not None else None,
            )
            for item in report.days
        ],
        summary=summary_read(report.summary),
    )
