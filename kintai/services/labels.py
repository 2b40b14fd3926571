from __future__ import annotations

from enum import Enum

from kintai.models import ApprovalStatus, HolidayType, LeaveType, WorkType

WORK_TYPE_LABELS: dict[str, str] = {
    WorkType.WORK.value: "出勤",
    WorkType.REMOTE.value: "出勤（リモート）",
    WorkType.LATE.value: "遅刻",
    WorkType.EARLY_LEAVE.value: "早退",
    WorkType.LATE_EARLY.value: "遅刻＋早退",
    WorkType.LEGAL_HOLIDAY.value: "休日（法定）",
    WorkType.EXTRA_HOLIDAY.value: "休日（法定外）",
}

LEAVE_TYPE_LABELS: dict[str, str] = {
    LeaveType.PAID.value: "有休",
    LeaveType.ABSENT.value: "欠勤",
    LeaveType.SPECIAL.value: "特休",
    LeaveType.CONGRATULATION.value: "慶弔",
}

HOLIDAY_TYPE_LABELS: dict[str, str] = {
    HolidayType.LEGAL_HOLIDAY.value: "法定",
    HolidayType.EXTRA_HOLIDAY.value: "法定外",
    HolidayType.SATURDAY_WORK.value: "土曜出勤",
}

APPROVAL_STATUS_LABELS: dict[str, str] = {
    ApprovalStatus.DRAFT.value: "未申請",
    ApprovalStatus.PENDING.value: "承認待ち",
    ApprovalStatus.APPROVED.value: "承認済み",
    ApprovalStatus.REJECTED.value: "却下",
}
UNKNOWN_STATUS_LABEL = "不明"


def _key(value: Enum | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    return value


def work_type_label(value: WorkType | str | None) -> str:
    return WORK_TYPE_LABELS.get(_key(value), "")


def leave_type_label(value: LeaveType | str | None) -> str:
    return LEAVE_TYPE_LABELS.get(_key(value), "")


def holiday_type_label(value: HolidayType | str | None) -> str:
    return HOLIDAY_TYPE_LABELS.get(_key(value), "")


def approval_status_label(value: ApprovalStatus | str | None) -> str:
    return APPROVAL_STATUS_LABELS.get(_key(value), UNKNOWN_STATUS_LABEL)
