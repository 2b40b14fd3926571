from datetime import date

from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.orm import Session

from kintai.db import get_db
from kintai.routers.common import audit_action, raise_for_failure, unwrap
from kintai.schemas import AnnualHolidayRead, AnnualHolidayUpsertRequest, DeleteResponse
from kintai.security import CurrentActor, require_actor
from kintai.services.holidays import (
    annual_holiday_read,
    delete_annual_holiday,
    list_annual_holidays,
    upsert_annual_holiday,
)

router = APIRouter(prefix="/api/holidays", tags=["holidays"])


@router.get("/{year}", response_model=list[AnnualHolidayRead])
def get_holidays(
    year: int = Path(..., ge=1970, le=9999),
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> list[AnnualHolidayRead]:
    return [annual_holiday_read(item) for item in list_annual_holidays(db, user_id=actor.user_id, year=year)]


@router.put("/{holiday_date}", response_model=AnnualHolidayRead)
def save_holiday(
    holiday_date: date,
    payload: AnnualHolidayUpsertRequest,
    request: Request,
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> AnnualHolidayRead:
    result = upsert_annual_holiday(
        db,
        user_id=actor.user_id,
        holiday_date=holiday_date,
        holiday_type=payload.holiday_type,
        note=payload.note,
    )
    audit_action(
        db,
        request,
        actor,
        action="ANNUAL_HOLIDAY_SAVED",
        success=result.success,
        entity_type="annual_holiday",
        entity_id=f"{actor.user_id}:{holiday_date.isoformat()}",
        year=holiday_date.year,
        month=holiday_date.month,
        details={"holiday_type": payload.holiday_type.value},
    )
    return annual_holiday_read(unwrap(result))


@router.delete("/{holiday_date}", response_model=DeleteResponse)
def remove_holiday(
    holiday_date: date,
    request: Request,
    actor: CurrentActor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> DeleteResponse:
    result = delete_annual_holiday(db, user_id=actor.user_id, holiday_date=holiday_date)
    audit_action(
        db,
        request,
        actor,
        action="ANNUAL_HOLIDAY_DELETED",
        success=result.success,
        entity_type="annual_holiday",
        entity_id=f"{actor.user_id}:{holiday_date.isoformat()}",
        year=holiday_date.year,
        month=holiday_date.month,
        details={"code": result.code} if not result.success else None,
    )
    raise_for_failure(result)
    return DeleteResponse(ok=True)
