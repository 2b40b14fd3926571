from __future__ import annotations

import logging
from datetime import time
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kintai.errors import MONTH_LOCKED, NOT_FOUND
from kintai.models import MonthlySettings
from kintai.schemas import (
    BreakPayload,
    MonthlySettingsRead,
    MonthlySettingsUpsertRequest,
    WorkPatternPayload,
    WorkPatternRead,
)
from kintai.services.approvals import ensure_month_editable
from kintai.services.patterns import PATTERN_NUMBERS, WorkPattern, settings_patterns
from kintai.services.results import ActionResult
from kintai.services.shift_calc import break_minutes
from kintai.services.time_math import format_hhmm, parse_hhmm, previous_month

logger = logging.getLogger("kintai.monthly_settings")

MONTH_LOCKED_MESSAGE = "承認済みのため編集できません"
SAVED_MESSAGE = "月次設定を保存しました"
COPIED_MESSAGE = "前月の設定をコピーしました"
NO_PREVIOUS_MESSAGE = "前月の設定がありません"
SAVE_FAILED_MESSAGE = "月次設定の保存に失敗しました"

PATTERN_COLUMN_NAMES: tuple[str, ...] = (
    "pattern1_start",
    "pattern1_end",
    "pattern1_break1_start",
    "pattern1_break1_end",
    "pattern1_break2_start",
    "pattern1_break2_end",
    "pattern1_break3_start",
    "pattern1_break3_end",
    "pattern2_start",
    "pattern2_end",
    "pattern2_break1_start",
    "pattern2_break1_end",
    "pattern2_break2_start",
    "pattern2_break2_end",
    "pattern2_break3_start",
    "pattern2_break3_end",
    "pattern3_start",
    "pattern3_end",
    "pattern3_break1_start",
    "pattern3_break1_end",
    "pattern3_break2_start",
    "pattern3_break2_end",
    "pattern3_break3_start",
    "pattern3_break3_end",
)


def _optional_time(value: str | None) -> time | None:
    if value is None or not value.strip():
        return None
    return parse_hhmm(value)


def _pattern_values(pattern: WorkPatternPayload | None) -> list[time | None]:
    if pattern is None:
        return [None] * 8
    values = [_optional_time(pattern.start), _optional_time(pattern.end)]
    for index in range(3):
        interval = pattern.breaks[index] if index < len(pattern.breaks) else None
        if interval is None:
            values.extend([None, None])
        else:
            values.extend([_optional_time(interval.start), _optional_time(interval.end)])
    return values


def pattern_columns(patterns: list[WorkPatternPayload]) -> dict[str, time | None]:
    """Column values for the three pattern slots; slots not given are cleared."""
    values: list[time | None] = []
    for index in range(len(PATTERN_NUMBERS)):
        values.extend(_pattern_values(patterns[index] if index < len(patterns) else None))
    return dict(zip(PATTERN_COLUMN_NAMES, values))


def settings_columns(settings: MonthlySettings) -> dict[str, Any]:
    columns: dict[str, Any] = {
        "name": settings.name,
        "department": settings.department,
        "standard_hours": settings.standard_hours,
    }
    for column_name in PATTERN_COLUMN_NAMES:
        columns[column_name] = getattr(settings, column_name)
    return columns


def get_monthly_settings(db: Session, *, user_id: str, year: int, month: int) -> MonthlySettings | None:
    return db.scalar(
        select(MonthlySettings).where(
            MonthlySettings.user_id == user_id,
            MonthlySettings.year == year,
            MonthlySettings.month == month,
        )
    )


def get_previous_month_settings(db: Session, *, user_id: str, year: int, month: int) -> MonthlySettings | None:
    prev_year, prev_month = previous_month(year, month)
    return get_monthly_settings(db, user_id=user_id, year=prev_year, month=prev_month)


def _upsert(db: Session, *, user_id: str, year: int, month: int, columns: dict[str, Any]) -> MonthlySettings:
    stmt = (
        pg_insert(MonthlySettings)
        .values(user_id=user_id, year=year, month=month, **columns)
        .on_conflict_do_update(
            index_elements=["user_id", "year", "month"],
            set_={**columns, "updated_at": func.now()},
        )
        .returning(MonthlySettings)
    )
    return db.scalars(stmt, execution_options={"populate_existing": True}).one()


def _save_locked(
    db: Session,
    *,
    user_id: str,
    year: int,
    month: int,
    columns: dict[str, Any],
    success_message: str,
    source: str,
) -> ActionResult[MonthlySettings]:
    try:
        if not ensure_month_editable(db, user_id=user_id, year=year, month=month):
            db.rollback()
            logger.info(
                "month_locked",
                extra={"user_id": user_id, "year": year, "month": month, "target": "monthly_settings"},
            )
            return ActionResult.failure(MONTH_LOCKED, MONTH_LOCKED_MESSAGE)

        settings = _upsert(db, user_id=user_id, year=year, month=month, columns=columns)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "monthly_settings_storage_failed",
            extra={"user_id": user_id, "year": year, "month": month},
        )
        return ActionResult.storage_failure(SAVE_FAILED_MESSAGE, exc)

    logger.info(
        "monthly_settings_saved",
        extra={
            "user_id": user_id,
            "year": year,
            "month": month,
            "settings_id": settings.id,
            "source": source,
        },
    )
    return ActionResult.ok(success_message, settings)


def upsert_monthly_settings(
    db: Session,
    *,
    user_id: str,
    year: int,
    month: int,
    payload: MonthlySettingsUpsertRequest,
) -> ActionResult[MonthlySettings]:
    columns: dict[str, Any] = {
        "name": payload.name,
        "department": payload.department,
        "standard_hours": Decimal(payload.standard_hours),
        **pattern_columns(payload.patterns),
    }
    return _save_locked(
        db,
        user_id=user_id,
        year=year,
        month=month,
        columns=columns,
        success_message=SAVED_MESSAGE,
        source="form",
    )


def copy_previous_month_settings(
    db: Session,
    *,
    user_id: str,
    year: int,
    month: int,
) -> ActionResult[MonthlySettings]:
    try:
        previous = get_previous_month_settings(db, user_id=user_id, year=year, month=month)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "monthly_settings_storage_failed",
            extra={"user_id": user_id, "year": year, "month": month},
        )
        return ActionResult.storage_failure(SAVE_FAILED_MESSAGE, exc)
    if previous is None:
        return ActionResult.failure(NOT_FOUND, NO_PREVIOUS_MESSAGE)

    return _save_locked(
        db,
        user_id=user_id,
        year=year,
        month=month,
        columns=settings_columns(previous),
        success_message=COPIED_MESSAGE,
        source="previous_month",
    )


def work_pattern_read(pattern: WorkPattern) -> WorkPatternRead:
    return WorkPatternRead(
        start=format_hhmm(pattern.start),
        end=format_hhmm(pattern.end),
        breaks=[
            BreakPayload(start=format_hhmm(item.start) or None, end=format_hhmm(item.end) or None)
            for item in pattern.breaks
        ],
        break_minutes=break_minutes(pattern),
    )


def monthly_settings_read(settings: MonthlySettings) -> MonthlySettingsRead:
    return MonthlySettingsRead(
        id=settings.id,
        user_id=settings.user_id,
        year=settings.year,
        month=settings.month,
        name=settings.name,
        department=settings.department,
        standard_hours=settings.standard_hours,
        patterns=[work_pattern_read(pattern) for pattern in settings_patterns(settings)],
        updated_at=settings.updated_at,
    )
