from datetime import date, datetime
from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, StringConstraints, model_validator

from kintai.models import ApprovalStatus, HolidayType, LeaveType, WorkType
from kintai.services.time_math import parse_hhmm

HHMM_PATTERN = r"^\d{2}:\d{2}$"


def _check_hhmm(value: str) -> str:
    parse_hhmm(value)
    return value


HHMM = Annotated[str, StringConstraints(pattern=HHMM_PATTERN), AfterValidator(_check_hhmm)]


class BreakPayload(BaseModel):
    start: HHMM | None = None
    end: HHMM | None = None


class WorkPatternPayload(BaseModel):
    start: HHMM | None = None
    end: HHMM | None = None
    breaks: list[BreakPayload] = Field(default_factory=list, max_length=3)


class MonthlySettingsUpsertRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=255)
    standard_hours: Decimal = Field(default=Decimal("8"), ge=0, le=24, decimal_places=2)
    patterns: list[WorkPatternPayload] = Field(default_factory=list, max_length=3)


class WorkPatternRead(BaseModel):
    start: str
    end: str
    breaks: list[BreakPayload]
    break_minutes: int


class MonthlySettingsRead(BaseModel):
    id: int
    user_id: str
    year: int
    month: int
    name: str | None
    department: str | None
    standard_hours: Decimal
    patterns: list[WorkPatternRead]
    updated_at: datetime | None = None


class DailyRecordUpsertRequest(BaseModel):
    work_type: WorkType = WorkType.WORK
    start_time: HHMM | None = None
    end_time: HHMM | None = None
    leave_type: LeaveType | None = None
    work_pattern: int = Field(default=1, ge=1, le=3)
    note: str | None = Field(default=None, max_length=2000)
    late_time: int | None = Field(default=None, ge=0)
    early_leave_time: int | None = Field(default=None, ge=0)
    overtime: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _validate_same_day(self) -> "DailyRecordUpsertRequest":
        # A shift that crosses midnight has to be entered as two days.
        if self.start_time and self.end_time and self.end_time < self.start_time:
            raise ValueError("end_time must be greater than or equal to start_time")
        return self


class DailyRecordPreviewRequest(DailyRecordUpsertRequest):
    work_date: date


class OvertimeSplitRead(BaseModel):
    total: int
    normal: int
    night: int
    legal_holiday: int
    extra_holiday: int


class DailyRecordPreviewResponse(BaseModel):
    work_date: date
    work_type: WorkType
    worked_minutes: int
    late_time: int
    early_leave_time: int
    overtime: OvertimeSplitRead
    night_overtime: int
    note_required: bool
    pattern: WorkPatternRead


class DailyRecordRead(BaseModel):
    id: int
    user_id: str
    work_date: date
    work_type: WorkType
    start_time: str | None
    end_time: str | None
    late_time: int
    early_leave_time: int
    overtime: int
    night_overtime: int
    leave_type: LeaveType | None
    work_pattern: int
    note: str | None
    note_required: bool = False


class SaveResponse(BaseModel):
    ok: bool
    message: str


class DailyRecordSaveResponse(SaveResponse):
    record: DailyRecordRead


class MonthlySettingsSaveResponse(SaveResponse):
    settings: MonthlySettingsRead


class ApprovalRead(BaseModel):
    id: int
    user_id: str
    year: int
    month: int
    status: ApprovalStatus
    status_label: str
    requested_at: datetime | None
    approved_by: str | None
    approved_at: datetime | None
    rejection_reason: str | None
    name: str | None = None
    department: str | None = None


class ApprovalActionResponse(SaveResponse):
    approval: ApprovalRead


class ApprovalRejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class MonthlySummaryRead(BaseModel):
    work_days: int
    total_work_minutes: int
    total_overtime: int
    night_overtime: int
    legal_holiday_overtime: int
    extra_holiday_overtime: int
    total_work_hours: str
    total_overtime_hours: str
    night_overtime_hours: str
    legal_holiday_overtime_hours: str
    extra_holiday_overtime_hours: str


class MonthlyReportDay(BaseModel):
    date: date
    weekday: str
    is_saturday: bool
    is_sunday: bool
    holiday_type: HolidayType | None = None
    default_work_type: WorkType
    record: DailyRecordRead | None = None


class MonthlyReportResponse(BaseModel):
    user_id: str
    year: int
    month: int
    status: ApprovalStatus
    status_label: str
    editable: bool
    settings: MonthlySettingsRead | None
    approval: ApprovalRead | None
    days: list[MonthlyReportDay]
    summary: MonthlySummaryRead


class AnnualHolidayUpsertRequest(BaseModel):
    holiday_type: HolidayType
    note: str | None = Field(default=None, max_length=1000)


class AnnualHolidayRead(BaseModel):
    id: int
    user_id: str
    year: int
    holiday_date: date
    holiday_type: HolidayType
    holiday_type_label: str
    note: str | None


class DeleteResponse(BaseModel):
    ok: bool
