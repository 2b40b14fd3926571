from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from kintai.models import WorkType
from kintai.services.patterns import WorkPattern
from kintai.services.time_math import MINUTES_PER_DAY, TimeInput, is_present, to_minutes

NIGHT_START_MINUTES = 22 * 60
MORNING_END_MINUTES = 5 * 60
NOTE_FREE_WORK_TYPES = frozenset({WorkType.WORK, WorkType.REMOTE})


@dataclass(frozen=True)
class OvertimeSplit:
    total: int
    normal: int
    night: int
    legal_holiday: int
    extra_holiday: int


@dataclass(frozen=True)
class DayComputation:
    worked_minutes: int
    late_minutes: int
    early_leave_minutes: int
    overtime: OvertimeSplit
    night_overtime_minutes: int
    note_required: bool


def break_minutes(pattern: WorkPattern) -> int:
    total = 0
    for interval in pattern.breaks:
        if interval.is_complete:
            total += to_minutes(interval.end) - to_minutes(interval.start)
    return total


def worked_minutes(start: TimeInput, end: TimeInput, pattern: WorkPattern) -> int:
    # Not clamped: breaks longer than the span yield a negative value.
    if not is_present(start) or not is_present(end):
        return 0
    return to_minutes(end) - to_minutes(start) - break_minutes(pattern)


def calculate_overtime(
    worked: int,
    standard_hours: Decimal | float | int,
    work_type: WorkType | str,
) -> OvertimeSplit:
    work_type = WorkType(work_type)
    if work_type == WorkType.LEGAL_HOLIDAY:
        return OvertimeSplit(total=worked, normal=0, night=0, legal_holiday=worked, extra_holiday=0)
    if work_type == WorkType.EXTRA_HOLIDAY:
        return OvertimeSplit(total=worked, normal=0, night=0, legal_holiday=0, extra_holiday=worked)

    standard_minutes = Decimal(str(standard_hours)) * 60
    overtime = max(0, int(worked - standard_minutes))
    return OvertimeSplit(total=overtime, normal=overtime, night=0, legal_holiday=0, extra_holiday=0)


def night_overtime_minutes(
    start: TimeInput,
    end: TimeInput,
    standard_hours: Decimal | float | int | None = None,
) -> int:
    """Minutes inside 22:00-24:00 plus minutes before 05:00.

    Both times belong to the same calendar day; a shift crossing midnight has
    to be recorded as two days. ``standard_hours`` does not affect the result.
    """
    _ = standard_hours
    if not is_present(start) or not is_present(end):
        return 0

    start_minutes = to_minutes(start)
    end_minutes = to_minutes(end)
    late_night = max(0, min(end_minutes, MINUTES_PER_DAY) - max(start_minutes, NIGHT_START_MINUTES))
    early_morning = max(0, min(end_minutes, MORNING_END_MINUTES) - start_minutes)
    return max(0, late_night + early_morning)


def late_minutes(actual_start: TimeInput, scheduled_start: TimeInput) -> int:
    if not is_present(actual_start) or not is_present(scheduled_start):
        return 0
    return max(0, to_minutes(actual_start) - to_minutes(scheduled_start))


def early_leave_minutes(actual_end: TimeInput, scheduled_end: TimeInput) -> int:
    if not is_present(actual_end) or not is_present(scheduled_end):
        return 0
    return max(0, to_minutes(scheduled_end) - to_minutes(actual_end))


def note_required(work_type: WorkType | str, note: str | None) -> bool:
    return WorkType(work_type) not in NOTE_FREE_WORK_TYPES and not (note or "").strip()


def compute_day(
    *,
    start: TimeInput,
    end: TimeInput,
    work_type: WorkType | str,
    pattern: WorkPattern,
    standard_hours: Decimal | float | int,
    note: str | None = None,
) -> DayComputation:
    worked = worked_minutes(start, end, pattern)
    return DayComputation(
        worked_minutes=worked,
        late_minutes=late_minutes(start, pattern.start),
        early_leave_minutes=early_leave_minutes(end, pattern.end),
        overtime=calculate_overtime(worked, standard_hours, work_type),
        night_overtime_minutes=night_overtime_minutes(start, end, standard_hours),
        note_required=note_required(work_type, note),
    )
