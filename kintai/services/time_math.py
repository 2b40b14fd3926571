from __future__ import annotations

from calendar import monthrange
from datetime import date, time

MINUTES_PER_DAY = 24 * 60
WEEKDAY_LABELS = ("月", "火", "水", "木", "金", "土", "日")

TimeInput = str | time | None


def to_minutes(value: TimeInput) -> int:
    """Minutes since midnight for an ``HH:MM`` string or a ``time``.

    Absent input (``None`` or an empty string) is treated as zero so that the
    day calculations stay total over partially filled records. A string that
    is present but unparseable raises ``ValueError``.
    """
    if value is None:
        return 0
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    raw = value.strip()
    if not raw:
        return 0
    parts = raw.split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time value: {value!r}")
    hours = int(parts[0])
    minutes = int(parts[1])
    return hours * 60 + minutes


def to_time_string(minutes: int) -> str:
    value = max(0, int(minutes))
    return f"{value // 60}:{value % 60:02d}"


def is_present(value: TimeInput) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def parse_hhmm(value: str) -> time:
    hour_str, minute_str = value.strip().split(":")
    hour = int(hour_str)
    minute = int(minute_str)
    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise ValueError(f"Invalid time value: {value!r}")
    return time(hour=hour, minute=minute)


def format_hhmm(value: time | None) -> str:
    if value is None:
        return ""
    return f"{value.hour:02d}:{value.minute:02d}"


def days_in_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def weekday_label(day_value: date) -> str:
    return WEEKDAY_LABELS[day_value.weekday()]


def is_weekend(day_value: date) -> tuple[bool, bool]:
    weekday = day_value.weekday()
    return weekday == 5, weekday == 6
