from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kintai.errors import MONTH_LOCKED
from kintai.models import DailyRecord, MonthlySettings
from kintai.schemas import DailyRecordRead, DailyRecordUpsertRequest
from kintai.services.approvals import ensure_month_editable
from kintai.services.monthly_settings import MONTH_LOCKED_MESSAGE, get_monthly_settings
from kintai.services.patterns import WorkPattern, resolve_pattern
from kintai.services.results import ActionResult
from kintai.services.shift_calc import DayComputation, compute_day, note_required
from kintai.services.time_math import format_hhmm, month_bounds, parse_hhmm
from kintai.settings import get_settings

logger = logging.getLogger("kintai.daily_records")

SAVED_MESSAGE = "保存しました"
SAVE_FAILED_MESSAGE = "勤務記録の保存に失敗しました"


@dataclass(frozen=True)
class DerivedRecord:
    computation: DayComputation
    pattern: WorkPattern
    late_time: int
    early_leave_time: int
    overtime: int
    night_overtime: int


def standard_hours_for(settings: MonthlySettings | None) -> Decimal:
    if settings is None or settings.standard_hours is None:
        return Decimal(str(get_settings().default_standard_hours))
    return Decimal(settings.standard_hours)


def _optional_time(value: str | None) -> time | None:
    if value is None or not value.strip():
        return None
    return parse_hhmm(value)


def derive_record_values(
    payload: DailyRecordUpsertRequest,
    settings: MonthlySettings | None,
) -> DerivedRecord:
    """Calculator output for one day, with user corrections applied.

    Late, early-leave and overtime minutes entered by the user replace the
    derived values. The stored overtime is the split total, so holiday work
    keeps its full worked minutes there.
    """
    pattern = resolve_pattern(settings, payload.work_pattern)
    computation = compute_day(
        start=payload.start_time,
        end=payload.end_time,
        work_type=payload.work_type,
        pattern=pattern,
        standard_hours=standard_hours_for(settings),
        note=payload.note,
    )
    return DerivedRecord(
        computation=computation,
        pattern=pattern,
        late_time=payload.late_time if payload.late_time is not None else computation.late_minutes,
        early_leave_time=(
            payload.early_leave_time
            if payload.early_leave_time is not None
            else computation.early_leave_minutes
        ),
        overtime=payload.overtime if payload.overtime is not None else computation.overtime.total,
        night_overtime=computation.night_overtime_minutes,
    )


def list_daily_records(db: Session, *, user_id: str, year: int, month: int) -> list[DailyRecord]:
    first_day, last_day = month_bounds(year, month)
    return list(
        db.scalars(
            select(DailyRecord)
            .where(
                DailyRecord.user_id == user_id,
                DailyRecord.work_date >= first_day,
                DailyRecord.work_date <= last_day,
            )
            .order_by(DailyRecord.work_date.asc())
        ).all()
    )


def preview_daily_record(
    db: Session,
    *,
    user_id: str,
    work_date: date,
    payload: DailyRecordUpsertRequest,
) -> DerivedRecord:
    settings = get_monthly_settings(db, user_id=user_id, year=work_date.year, month=work_date.month)
    return derive_record_values(payload, settings)


def _record_columns(payload: DailyRecordUpsertRequest, derived: DerivedRecord) -> dict[str, Any]:
    return {
        "work_type": payload.work_type,
        "start_time": _optional_time(payload.start_time),
        "end_time": _optional_time(payload.end_time),
        "late_time": derived.late_time,
        "early_leave_time": derived.early_leave_time,
        "overtime": derived.overtime,
        "night_overtime": derived.night_overtime,
        "leave_type": payload.leave_type,
        "work_pattern": payload.work_pattern,
        "note": payload.note,
    }


def upsert_daily_record(
    db: Session,
    *,
    user_id: str,
    work_date: date,
    payload: DailyRecordUpsertRequest,
) -> ActionResult[DailyRecord]:
    year, month = work_date.year, work_date.month
    try:
        if not ensure_month_editable(db, user_id=user_id, year=year, month=month):
            db.rollback()
            logger.info(
                "month_locked",
                extra={"user_id": user_id, "work_date": work_date.isoformat(), "target": "daily_record"},
            )
            return ActionResult.failure(MONTH_LOCKED, MONTH_LOCKED_MESSAGE)

        settings = get_monthly_settings(db, user_id=user_id, year=year, month=month)
        columns = _record_columns(payload, derive_record_values(payload, settings))
        stmt = (
            pg_insert(DailyRecord)
            .values(user_id=user_id, work_date=work_date, **columns)
            .on_conflict_do_update(
                index_elements=["user_id", "work_date"],
                set_={**columns, "updated_at": func.now()},
            )
            .returning(DailyRecord)
        )
        record = db.scalars(stmt, execution_options={"populate_existing": True}).one()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "daily_record_storage_failed",
            extra={"user_id": user_id, "work_date": work_date.isoformat()},
        )
        return ActionResult.storage_failure(SAVE_FAILED_MESSAGE, exc)

    logger.info(
        "daily_record_saved",
        extra={
            "user_id": user_id,
            "work_date": work_date.isoformat(),
            "record_id": record.id,
            "work_type": columns["work_type"].value,
            "overtime": record.overtime,
            "night_overtime": record.night_overtime,
        },
    )
    return ActionResult.ok(SAVED_MESSAGE, record)


def daily_record_read(record: DailyRecord) -> DailyRecordRead:
    return DailyRecordRead(
        id=record.id,
        user_id=record.user_id,
        work_date=record.work_date,
        work_type=record.work_type,
        start_time=format_hhmm(record.start_time) or None,
        end_time=format_hhmm(record.end_time) or None,
        late_time=record.late_time,
        early_leave_time=record.early_leave_time,
        overtime=record.overtime,
        night_overtime=record.night_overtime,
        leave_type=record.leave_type,
        work_pattern=record.work_pattern,
        note=record.note,
        note_required=note_required(record.work_type, record.note),
    )
