from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from kintai.models import (
    HOLIDAY_WORK_TYPES,
    Approval,
    ApprovalStatus,
    DailyRecord,
    HolidayType,
    MonthlySettings,
    WorkType,
)
from kintai.services.approvals import effective_status, get_approval
from kintai.services.daily_records import list_daily_records
from kintai.services.holidays import default_work_type_for, holidays_for_month
from kintai.services.monthly_settings import get_monthly_settings
from kintai.services.patterns import resolve_pattern
from kintai.services.shift_calc import worked_minutes
from kintai.services.time_math import days_in_month, is_present, is_weekend, weekday_label


@dataclass(frozen=True)
class MonthlySummary:
    work_days: int = 0
    total_work_minutes: int = 0
    total_overtime: int = 0
    night_overtime: int = 0
    legal_holiday_overtime: int = 0
    extra_holiday_overtime: int = 0


@dataclass(frozen=True)
class ReportDay:
    day: date
    weekday: str
    is_saturday: bool
    is_sunday: bool
    holiday_type: HolidayType | None
    default_work_type: WorkType
    record: DailyRecord | None


@dataclass(frozen=True)
class MonthlyReport:
    user_id: str
    year: int
    month: int
    status: ApprovalStatus
    editable: bool
    settings: MonthlySettings | None
    approval: Approval | None
    days: list[ReportDay]
    summary: MonthlySummary


def summarize_month(records: Iterable[DailyRecord], settings: MonthlySettings | None) -> MonthlySummary:
    """Month totals over saved records.

    Worked minutes are recomputed from the clock times with each record's own
    pattern. Overtime and night overtime are summed from the stored values,
    with overtime routed by work type into the holiday buckets.
    """
    work_days = 0
    total_work = 0
    total_overtime = 0
    night_overtime = 0
    legal_holiday = 0
    extra_holiday = 0

    for record in records:
        has_times = is_present(record.start_time) and is_present(record.end_time)
        work_type = WorkType(record.work_type) if record.work_type else None
        if work_type is not None and work_type not in HOLIDAY_WORK_TYPES and has_times:
            work_days += 1

        if has_times:
            pattern = resolve_pattern(settings, record.work_pattern or 1)
            total_work += worked_minutes(record.start_time, record.end_time, pattern)

        if record.overtime:
            if work_type == WorkType.LEGAL_HOLIDAY:
                legal_holiday += record.overtime
            elif work_type == WorkType.EXTRA_HOLIDAY:
                extra_holiday += record.overtime
            else:
                total_overtime += record.overtime

        if record.night_overtime:
            night_overtime += record.night_overtime

    return MonthlySummary(
        work_days=work_days,
        total_work_minutes=total_work,
        total_overtime=total_overtime,
        night_overtime=night_overtime,
        legal_holiday_overtime=legal_holiday,
        extra_holiday_overtime=extra_holiday,
    )


def build_report_days(
    year: int,
    month: int,
    records: Iterable[DailyRecord],
    holiday_types: dict[date, HolidayType],
) -> list[ReportDay]:
    records_by_day = {record.work_date: record for record in records}
    days: list[ReportDay] = []
    for day_number in range(1, days_in_month(year, month) + 1):
        day_value = date(year, month, day_number)
        is_saturday, is_sunday = is_weekend(day_value)
        holiday_type = holiday_types.get(day_value)
        days.append(
            ReportDay(
                day=day_value,
                weekday=weekday_label(day_value),
                is_saturday=is_saturday,
                is_sunday=is_sunday,
                holiday_type=holiday_type,
                default_work_type=default_work_type_for(holiday_type),
                record=records_by_day.get(day_value),
            )
        )
    return days


def build_monthly_report(db: Session, *, user_id: str, year: int, month: int) -> MonthlyReport:
    settings = get_monthly_settings(db, user_id=user_id, year=year, month=month)
    approval = get_approval(db, user_id=user_id, year=year, month=month)
    records = list_daily_records(db, user_id=user_id, year=year, month=month)
    holidays = holidays_for_month(db, user_id=user_id, year=year, month=month)
    status = effective_status(approval)

    return MonthlyReport(
        user_id=user_id,
        year=year,
        month=month,
        status=status,
        editable=status != ApprovalStatus.APPROVED,
        settings=settings,
        approval=approval,
        days=build_report_days(
            year,
            month,
            records,
            {day: HolidayType(item.holiday_type) for day, item in holidays.items()},
        ),
        summary=summarize_month(records, settings),
    )
