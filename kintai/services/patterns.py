from __future__ import annotations

from dataclasses import dataclass
from datetime import time

from kintai.models import MonthlySettings

PATTERN_NUMBERS = (1, 2, 3)
DEFAULT_START = time(9, 0)
DEFAULT_END = time(18, 0)


@dataclass(frozen=True)
class BreakInterval:
    start: time | None
    end: time | None

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None


@dataclass(frozen=True)
class WorkPattern:
    start: time | None
    end: time | None
    breaks: tuple[BreakInterval, BreakInterval, BreakInterval]


_NO_BREAK = BreakInterval(start=None, end=None)

DEFAULT_PATTERN = WorkPattern(
    start=DEFAULT_START,
    end=DEFAULT_END,
    breaks=(BreakInterval(start=time(12, 0), end=time(13, 0)), _NO_BREAK, _NO_BREAK),
)


def _pattern(
    start: time | None,
    end: time | None,
    break1: tuple[time | None, time | None],
    break2: tuple[time | None, time | None],
    break3: tuple[time | None, time | None],
) -> WorkPattern:
    return WorkPattern(
        start=start,
        end=end,
        breaks=(
            BreakInterval(*break1),
            BreakInterval(*break2),
            BreakInterval(*break3),
        ),
    )


def settings_patterns(settings: MonthlySettings) -> tuple[WorkPattern, WorkPattern, WorkPattern]:
    """The three configured pattern slots exactly as stored, without defaults."""
    s = settings
    return (
        _pattern(
            s.pattern1_start,
            s.pattern1_end,
            (s.pattern1_break1_start, s.pattern1_break1_end),
            (s.pattern1_break2_start, s.pattern1_break2_end),
            (s.pattern1_break3_start, s.pattern1_break3_end),
        ),
        _pattern(
            s.pattern2_start,
            s.pattern2_end,
            (s.pattern2_break1_start, s.pattern2_break1_end),
            (s.pattern2_break2_start, s.pattern2_break2_end),
            (s.pattern2_break3_start, s.pattern2_break3_end),
        ),
        _pattern(
            s.pattern3_start,
            s.pattern3_end,
            (s.pattern3_break1_start, s.pattern3_break1_end),
            (s.pattern3_break2_start, s.pattern3_break2_end),
            (s.pattern3_break3_start, s.pattern3_break3_end),
        ),
    )


def resolve_pattern(settings: MonthlySettings | None, pattern_number: int) -> WorkPattern:
    """Concrete pattern for a day.

    Without settings the system default (09:00-18:00, break 12:00-13:00) is
    used. With settings, a missing start or end falls back to 09:00 / 18:00
    while missing breaks stay empty: a pattern always needs bounds, but no
    break is a legitimate configuration.
    """
    if pattern_number not in PATTERN_NUMBERS:
        raise ValueError(f"pattern_number must be 1, 2 or 3, got {pattern_number}")
    if settings is None:
        return DEFAULT_PATTERN

    raw = settings_patterns(settings)[pattern_number - 1]
    return WorkPattern(
        start=raw.start if raw.start is not None else DEFAULT_START,
        end=raw.end if raw.end is not None else DEFAULT_END,
        breaks=raw.breaks,
    )
