from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kintai.errors import NOT_FOUND
from kintai.models import AnnualHoliday, HolidayType, WorkType
from kintai.schemas import AnnualHolidayRead
from kintai.services.labels import holiday_type_label
from kintai.services.results import ActionResult
from kintai.services.time_math import month_bounds

logger = logging.getLogger("kintai.holidays")

SAVE_FAILED_MESSAGE = "休日設定の保存に失敗しました"
DELETE_FAILED_MESSAGE = "休日設定の削除に失敗しました"

_DEFAULT_WORK_TYPES = {
    HolidayType.LEGAL_HOLIDAY: WorkType.LEGAL_HOLIDAY,
    HolidayType.EXTRA_HOLIDAY: WorkType.EXTRA_HOLIDAY,
}


def default_work_type_for(holiday_type: HolidayType | str | None) -> WorkType:
    if holiday_type is None:
        return WorkType.WORK
    return _DEFAULT_WORK_TYPES.get(HolidayType(holiday_type), WorkType.WORK)


def list_annual_holidays(db: Session, *, user_id: str, year: int) -> list[AnnualHoliday]:
    return list(
        db.scalars(
            select(AnnualHoliday)
            .where(AnnualHoliday.user_id == user_id, AnnualHoliday.year == year)
            .order_by(AnnualHoliday.holiday_date.asc())
        ).all()
    )


def holidays_for_month(db: Session, *, user_id: str, year: int, month: int) -> dict[date, AnnualHoliday]:
    first_day, last_day = month_bounds(year, month)
    rows = db.scalars(
        select(AnnualHoliday).where(
            AnnualHoliday.user_id == user_id,
            AnnualHoliday.holiday_date >= first_day,
            AnnualHoliday.holiday_date <= last_day,
        )
    ).all()
    return {row.holiday_date: row for row in rows}


def upsert_annual_holiday(
    db: Session,
    *,
    user_id: str,
    holiday_date: date,
    holiday_type: HolidayType,
    note: str | None = None,
) -> ActionResult[AnnualHoliday]:
    columns = {"holiday_type": holiday_type, "note": note}
    try:
        stmt = (
            pg_insert(AnnualHoliday)
            .values(user_id=user_id, year=holiday_date.year, holiday_date=holiday_date, **columns)
            .on_conflict_do_update(
                index_elements=["user_id", "year", "holiday_date"],
                set_={**columns, "updated_at": func.now()},
            )
            .returning(AnnualHoliday)
        )
        holiday = db.scalars(stmt, execution_options={"populate_existing": True}).one()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "annual_holiday_storage_failed",
            extra={"user_id": user_id, "holiday_date": holiday_date.isoformat()},
        )
        return ActionResult.storage_failure(SAVE_FAILED_MESSAGE, exc)

    logger.info(
        "annual_holiday_saved",
        extra={
            "user_id": user_id,
            "holiday_date": holiday_date.isoformat(),
            "holiday_type": holiday_type.value,
        },
    )
    return ActionResult.ok("休日を保存しました", holiday)


def delete_annual_holiday(db: Session, *, user_id: str, holiday_date: date) -> ActionResult[None]:
    try:
        deleted_id = db.scalar(
            delete(AnnualHoliday)
            .where(
                AnnualHoliday.user_id == user_id,
                AnnualHoliday.holiday_date == holiday_date,
            )
            .returning(AnnualHoliday.id)
        )
        if deleted_id is None:
            db.rollback()
            return ActionResult.failure(NOT_FOUND, "休日設定が見つかりません")
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "annual_holiday_storage_failed",
            extra={"user_id": user_id, "holiday_date": holiday_date.isoformat()},
        )
        return ActionResult.storage_failure(DELETE_FAILED_MESSAGE, exc)

    logger.info(
        "annual_holiday_deleted",
        extra={"user_id": user_id, "holiday_date": holiday_date.isoformat(), "holiday_id": deleted_id},
    )
    return ActionResult.ok("休日を削除しました")


def annual_holiday_read(holiday: AnnualHoliday) -> AnnualHolidayRead:
    return AnnualHolidayRead(
        id=holiday.id,
        user_id=holiday.user_id,
        year=holiday.year,
        holiday_date=holiday.holiday_date,
        holiday_type=holiday.holiday_type,
        holiday_type_label=holiday_type_label(holiday.holiday_type),
        note=holiday.note,
    )
