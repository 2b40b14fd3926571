from datetime import date

from fastapi import APIRouter, Depends, Path, Request, Response
from sqlalchemy.orm import Session

from kintai.db import get_db
from kintai.schemas import (
    ApprovalActionResponse,
    DailyRecordPreviewRequest,
    DailyRecordPreviewResponse,
    DailyRecordSaveResponse,
    DailyRecordUpsertRequest,
    MonthlyReportResponse,
    MonthlySettingsSaveResponse,
    MonthlySettingsUpsertRequest,
    OvertimeSplitRead,
)
from kintai.routers.common import (
    approval_read,
    attachment_disposition,
    audit_action,
    monthly_report_response,
    unwrap,
)
from kintai.security import CurrentActor, require_actor
from kintai.services.approvals import request_approval
from kintai.services.daily_records import daily_record_read, preview_daily_record, upsert_daily_record
from kintai.services.exports import build_month_csv_bytes, build_month_xlsx_bytes, csv_filename, xlsx_filename
from kintai.services.monthly import build_monthly_report
from kintai.services.monthly_settings import (
    copy_previous_month_settings,
    monthly_settings_read,
    upsert_monthly_settings,
    work_pattern_read,
)
from kintai.settings import get_settings

router = APIRouter(prefix="/api/timecard", tags=["timecard"])


@router.get("/{year}/{month}", response_model=MonthlyReportResponse)
def get_month(
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> MonthlyReportResponse:
    report = build_monthly_report(db, user_id=actor.user_id, year=year, month=month)
    return monthly_report_response(report)


@router.put("/{year}/{month}/settings", response_model=MonthlySettingsSaveResponse)
def save_settings(
    payload: MonthlySettingsUpsertRequest,
    request: Request,
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> MonthlySettingsSaveResponse:
    result = upsert_monthly_settings(db, user_id=actor.user_id, year=year, month=month, payload=payload)
    audit_action(
        db,
        request,
        actor,
        action="MONTHLY_SETTINGS_SAVED",
        success=result.success,
        entity_type="monthly_settings",
        entity_id=f"{actor.user_id}:{year}-{month:02d}",
        year=year,
        month=month,
        details={"code": result.code} if not result.success else None,
    )
    settings = unwrap(result)
    return MonthlySettingsSaveResponse(
        ok=True,
        message=result.message,
        settings=monthly_settings_read(settings),
    )


@router.post("/{year}/{month}/settings/copy-previous", response_model=MonthlySettingsSaveResponse)
def copy_previous_settings(
    request: Request,
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> MonthlySettingsSaveResponse:
    result = copy_previous_month_settings(db, user_id=actor.user_id, year=year, month=month)
    audit_action(
        db,
        request,
        actor,
        action="MONTHLY_SETTINGS_COPIED",
        success=result.success,
        entity_type="monthly_settings",
        entity_id=f"{actor.user_id}:{year}-{month:02d}",
        year=year,
        month=month,
        details={"code": result.code} if not result.success else None,
    )
    settings = unwrap(result)
    return MonthlySettingsSaveResponse(
        ok=True,
        message=result.message,
        settings=monthly_settings_read(settings),
    )


@router.post("/records/preview", response_model=DailyRecordPreviewResponse)
def preview_record(
    payload: DailyRecordPreviewRequest,
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> DailyRecordPreviewResponse:
    derived = preview_daily_record(db, user_id=actor.user_id, work_date=payload.work_date, payload=payload)
    split = derived.computation.overtime
    return DailyRecordPreviewResponse(
        work_date=payload.work_date,
        work_type=payload.work_type,
        worked_minutes=derived.computation.worked_minutes,
        late_time=derived.late_time,
        early_leave_time=derived.early_leave_time,
        overtime=OvertimeSplitRead(
            total=split.total,
            normal=split.normal,
            night=split.night,
            legal_holiday=split.legal_holiday,
            extra_holiday=split.extra_holiday,
        ),
        night_overtime=derived.night_overtime,
        note_required=derived.computation.note_required,
        pattern=work_pattern_read(derived.pattern),
    )


@router.put("/records/{work_date}", response_model=DailyRecordSaveResponse)
def save_record(
    work_date: date,
    payload: DailyRecordUpsertRequest,
    request: Request,
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> DailyRecordSaveResponse:
    result = upsert_daily_record(db, user_id=actor.user_id, work_date=work_date, payload=payload)
    audit_action(
        db,
        request,
        actor,
        action="DAILY_RECORD_SAVED",
        success=result.success,
        entity_type="daily_record",
        entity_id=f"{actor.user_id}:{work_date.isoformat()}",
        year=work_date.year,
        month=work_date.month,
        details={"work_type": payload.work_type.value, "code": result.code},
    )
    record = unwrap(result)
    return DailyRecordSaveResponse(ok=True, message=result.message, record=daily_record_read(record))


@router.get("/{year}/{month}/export.csv")
def export_month_csv(
    request: Request,
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> Response:
    report = build_monthly_report(db, user_id=actor.user_id, year=year, month=month)
    records = [item.record for item in report.days if item.record is not None]
    content = build_month_csv_bytes(records, year, month)
    audit_action(
        db,
        request,
        actor,
        action="TIMECARD_EXPORTED",
        success=True,
        entity_type="export",
        entity_id=f"{actor.user_id}:{year}-{month:02d}",
        year=year,
        month=month,
        details={"format": "csv"},
    )
    filename = csv_filename(get_settings().csv_label, year, month)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": attachment_disposition(filename, f"timecard-{year}-{month:02d}.csv"),
        },
    )


@router.get("/{year}/{month}/export.xlsx")
def export_month_xlsx(
    request: Request,
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> Response:
    report = build_monthly_report(db, user_id=actor.user_id, year=year, month=month)
    content = build_month_xlsx_bytes(report)
    audit_action(
        db,
        request,
        actor,
        action="TIMECARD_EXPORTED",
        success=True,
        entity_type="export",
        entity_id=f"{actor.user_id}:{year}-{month:02d}",
        year=year,
        month=month,
        details={"format": "xlsx"},
    )
    filename = xlsx_filename(get_settings().csv_label, year, month)
    return Response(
        content=content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": attachment_disposition(filename, f"timecard-{year}-{month:02d}.xlsx"),
        },
    )


@router.post("/{year}/{month}/approval-request", response_model=ApprovalActionResponse)
def submit_approval_request(
    request: Request,
    year: int = Path(..., ge=1970, le=9999),
    month: int = Path(..., ge=1, le=12),
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> ApprovalActionResponse:
    result = request_approval(db, user_id=actor.user_id, year=year, month=month)
    audit_action(
        db,
        request,
        actor,
        action="APPROVAL_REQUESTED",
        success=result.success,
        entity_type="approval",
        entity_id=f"{actor.user_id}:{year}-{month:02d}",
        year=year,
        month=month,
        details={"code": result.code} if not result.success else None,
    )
    approval = unwrap(result)
    return ApprovalActionResponse(ok=True, message=result.message, approval=approval_read(approval))
